"""
Fraction-selection policies and per-trade return formulas.

The right way to turn a Kelly edge into a per-trade return is found
empirically by calibration, so every variant is a small strategy object
that the growth model and the calibration search accept interchangeably.
"""
from typing import Any, Protocol, runtime_checkable

from tradejournal.models import HybridParameters, KellyParameters, Scenario


@runtime_checkable
class FractionPolicy(Protocol):
    """Chooses the fraction of full Kelly risked per trade."""

    name: str

    def fraction(self, params: KellyParameters) -> float: ...

    def parameters(self) -> dict[str, Any]: ...


@runtime_checkable
class ReturnFormula(Protocol):
    """Maps a scenario to the per-trade return that gets compounded."""

    name: str

    def per_trade_return(self, scenario: Scenario) -> float: ...

    def parameters(self) -> dict[str, Any]: ...


class ConstantFraction:
    def __init__(self, value: float, name: str | None = None):
        if not 0.0 < value <= 1.0:
            raise ValueError(f"kelly fraction must be in (0, 1], got {value}")
        self.value = value
        self.name = name or f"constant {value:.4f}"

    def fraction(self, params: KellyParameters) -> float:
        return self.value

    def parameters(self) -> dict[str, Any]:
        return {"kelly_fraction": self.value}


class ExpectedValueTierFraction:
    """
    Piecewise fraction table keyed by expected value.

    Tiers are (minimum expected value, fraction) pairs checked from the
    highest threshold down; scenarios below every threshold get `floor`.
    """

    def __init__(self, tiers: list[tuple[float, float]], floor: float, name: str = "ev tiers"):
        for _, value in tiers:
            if not 0.0 < value <= 1.0:
                raise ValueError(f"tier fraction must be in (0, 1], got {value}")
        if not 0.0 < floor <= 1.0:
            raise ValueError(f"floor fraction must be in (0, 1], got {floor}")
        self.tiers = sorted(tiers, key=lambda tier: tier[0], reverse=True)
        self.floor = floor
        self.name = name

    def fraction(self, params: KellyParameters) -> float:
        for threshold, value in self.tiers:
            if params.expected_value >= threshold:
                return value
        return self.floor

    def parameters(self) -> dict[str, Any]:
        table = {f"ev>={threshold:g}": value for threshold, value in self.tiers}
        table["floor"] = self.floor
        return table


# Fitted against the $1000 / 10 trades / 50% / 1:3 reference (EV 1.0 -> 0.8712).
CALIBRATED_TIERS = [(2.5, 0.92), (2.0, 0.89), (1.5, 0.87), (1.0, 0.8712), (0.5, 0.80)]
CALIBRATED_FLOOR = 0.70

INITIAL_TIERS = [(2.5, 0.90), (2.0, 0.85), (1.5, 0.80), (1.0, 0.75), (0.5, 0.70)]
INITIAL_FLOOR = 0.60


def calibrated_tier_policy() -> ExpectedValueTierFraction:
    return ExpectedValueTierFraction(CALIBRATED_TIERS, CALIBRATED_FLOOR, name="calibrated ev tiers")


def initial_tier_policy() -> ExpectedValueTierFraction:
    return ExpectedValueTierFraction(INITIAL_TIERS, INITIAL_FLOOR, name="initial ev tiers")


class AdaptiveFraction:
    """Fraction that grows with win rate inside each expected-value band."""

    name = "adaptive"

    def __init__(self, minimum: float = 0.30, maximum: float = 0.85):
        self.minimum = minimum
        self.maximum = maximum

    def fraction(self, params: KellyParameters) -> float:
        ev = params.expected_value
        win_rate = params.win_rate

        if ev >= 1.5:
            value = 0.70 + (win_rate - 0.5) * 0.3
        elif ev >= 1.0:
            value = 0.60 + (win_rate - 0.5) * 0.25
        elif ev >= 0.5:
            value = 0.50 + (win_rate - 0.4) * 0.4
        elif ev > 0:
            value = 0.40 + ev * 0.3
        else:
            value = 0.20

        return max(self.minimum, min(self.maximum, value))

    def parameters(self) -> dict[str, Any]:
        return {"minimum": self.minimum, "maximum": self.maximum}


class KellyFractionFormula:
    """per-trade return = kelly x fraction chosen by a policy."""

    def __init__(self, policy: FractionPolicy, name: str | None = None):
        self.policy = policy
        self.name = name or f"kelly x {policy.name}"

    def per_trade_return(self, scenario: Scenario) -> float:
        params = scenario.kelly_parameters
        return params.kelly * self.policy.fraction(params)

    def parameters(self) -> dict[str, Any]:
        return self.policy.parameters()


class HybridPowerLawFormula:
    """
    Risk/reward banded blend of fractional Kelly, expected value and
    power-law boosts in win rate and R.
    """

    def __init__(self, params: HybridParameters | None = None, name: str = "hybrid power law"):
        self.params = params or HybridParameters()
        self.name = name

    def per_trade_return(self, scenario: Scenario) -> float:
        kp = scenario.kelly_parameters
        ratio = scenario.risk_reward_ratio
        tier = self.params.tier_for(ratio)

        fractional_kelly = kp.kelly * tier.kelly_fraction
        accuracy_boost = kp.win_rate ** tier.accuracy_exponent
        rr_boost = ratio ** tier.rr_exponent
        return fractional_kelly * kp.expected_value * accuracy_boost * rr_boost * tier.scaling_factor

    def parameters(self) -> dict[str, Any]:
        return self.params.flatten()


class FlatPowerLawFormula:
    """Single-band power law: fraction x EV x p^a x R^b x scale (no kelly term)."""

    def __init__(
        self,
        kelly_fraction: float,
        scaling_factor: float,
        accuracy_exponent: float,
        rr_exponent: float,
        name: str = "flat power law",
    ):
        self.kelly_fraction = kelly_fraction
        self.scaling_factor = scaling_factor
        self.accuracy_exponent = accuracy_exponent
        self.rr_exponent = rr_exponent
        self.name = name

    def per_trade_return(self, scenario: Scenario) -> float:
        kp = scenario.kelly_parameters
        return (
            self.kelly_fraction
            * kp.expected_value
            * kp.win_rate ** self.accuracy_exponent
            * scenario.risk_reward_ratio ** self.rr_exponent
            * self.scaling_factor
        )

    def parameters(self) -> dict[str, Any]:
        return {
            "kelly_fraction": self.kelly_fraction,
            "scaling_factor": self.scaling_factor,
            "accuracy_exponent": self.accuracy_exponent,
            "rr_exponent": self.rr_exponent,
        }


class MultiFactorFormula:
    name = "multi factor"

    def per_trade_return(self, scenario: Scenario) -> float:
        kp = scenario.kelly_parameters
        fractional_kelly = kp.kelly * 0.25
        rr_factor = scenario.risk_reward_ratio ** 0.6
        accuracy_factor = kp.win_rate ** 1.2
        return fractional_kelly * kp.expected_value * rr_factor * accuracy_factor * 0.15

    def parameters(self) -> dict[str, Any]:
        return {"kelly_fraction": 0.25, "rr_exponent": 0.6, "accuracy_exponent": 1.2, "scale": 0.15}


class RiskRewardScalingFormula:
    name = "rr scaling"

    def per_trade_return(self, scenario: Scenario) -> float:
        kp = scenario.kelly_parameters
        ratio = scenario.risk_reward_ratio
        if ratio <= 2:
            scale = 0.08
        elif ratio <= 4:
            scale = 0.12
        else:
            scale = 0.18
        return kp.kelly * kp.expected_value * scale

    def parameters(self) -> dict[str, Any]:
        return {"scale<=2": 0.08, "scale<=4": 0.12, "scale>4": 0.18}


class LinearAccuracyFormula:
    """The pre-Kelly formula: R x accuracy x 0.001 x (accuracy x 0.06)."""

    name = "linear accuracy"

    def per_trade_return(self, scenario: Scenario) -> float:
        multiplier = scenario.accuracy * 0.06
        return scenario.risk_reward_ratio * scenario.accuracy * 0.001 * multiplier

    def parameters(self) -> dict[str, Any]:
        return {"accuracy_coefficient": 0.001, "multiplier_coefficient": 0.06}


def formula_registry() -> dict[str, ReturnFormula]:
    """Built-in formulas in a stable order for comparative searches."""
    formulas: list[ReturnFormula] = [
        KellyFractionFormula(calibrated_tier_policy()),
        KellyFractionFormula(initial_tier_policy()),
        KellyFractionFormula(AdaptiveFraction()),
        KellyFractionFormula(ConstantFraction(0.5), name="half kelly"),
        KellyFractionFormula(ConstantFraction(0.8), name="80% kelly"),
        HybridPowerLawFormula(),
        FlatPowerLawFormula(0.35, 0.30, 1.0, 0.8, name="aggressive power law"),
        FlatPowerLawFormula(0.45, 0.40, 0.9, 0.75, name="single-case power law"),
        MultiFactorFormula(),
        RiskRewardScalingFormula(),
        LinearAccuracyFormula(),
    ]
    return {formula.name: formula for formula in formulas}


def build_policy(policy_name: str, constant_fraction: float = 0.5) -> FractionPolicy:
    """Resolve a configured policy name."""
    if policy_name == "calibrated":
        return calibrated_tier_policy()
    if policy_name == "initial":
        return initial_tier_policy()
    if policy_name == "adaptive":
        return AdaptiveFraction()
    if policy_name == "constant":
        return ConstantFraction(constant_fraction)
    raise ValueError(
        f"Unknown fraction policy '{policy_name}'. "
        "Expected one of: calibrated, initial, adaptive, constant"
    )
