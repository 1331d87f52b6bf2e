"""
Growth Model - Projects an ending balance from a Kelly edge.
"""
import math

from loguru import logger

from tradejournal.growth.policies import FractionPolicy, ReturnFormula, calibrated_tier_policy
from tradejournal.models import GrowthResult, Scenario
from tradejournal.utils.exceptions import InvalidScenarioError


def compound(capital: float, per_trade_return: float, total_trades: int) -> float:
    """Ending balance after compounding a fixed per-trade return."""
    if total_trades == 0:
        return capital
    try:
        return capital * (1 + per_trade_return) ** total_trades
    except OverflowError:
        return math.inf


class GrowthModel:
    """
    Fractional-Kelly compounding model.

    A scenario without a positive Kelly edge projects zero profit: the model
    never compounds a losing or break-even system. Otherwise each trade
    returns kelly x fraction and the capital compounds over total_trades.
    """

    def __init__(self, policy: FractionPolicy | None = None):
        """
        Initialize the model with the policy used when no fraction is given.

        Args:
            policy: Fraction-selection policy (default: calibrated EV tiers)
        """
        self.policy = policy or calibrated_tier_policy()

    def compute_profit(self, scenario: Scenario, kelly_fraction: float) -> float:
        """
        Projected profit for a scenario at a given fraction of full Kelly.

        Args:
            scenario: Validated trading scenario
            kelly_fraction: Fraction of full Kelly risked per trade, in (0, 1]

        Returns:
            final balance minus capital (0.0 when there is no edge)
        """
        return self.project(scenario, kelly_fraction).profit

    def project(self, scenario: Scenario, kelly_fraction: float | None = None) -> GrowthResult:
        """
        Full projection record. Uses the configured policy when
        `kelly_fraction` is omitted.
        """
        params = scenario.kelly_parameters

        if kelly_fraction is not None:
            self._validate_fraction(kelly_fraction)

        if not params.has_edge:
            logger.debug(f"No edge for {scenario.describe()} (kelly {params.kelly:.4f})")
            return GrowthResult(
                scenario=scenario,
                kelly_fraction=kelly_fraction,
                per_trade_return=0.0,
                final_balance=scenario.capital,
                has_edge=False,
            )

        if kelly_fraction is None:
            kelly_fraction = self.policy.fraction(params)
            self._validate_fraction(kelly_fraction)

        per_trade_return = params.kelly * kelly_fraction
        return GrowthResult(
            scenario=scenario,
            kelly_fraction=kelly_fraction,
            per_trade_return=per_trade_return,
            final_balance=compound(scenario.capital, per_trade_return, scenario.total_trades),
            has_edge=True,
        )

    def project_with(self, scenario: Scenario, formula: ReturnFormula) -> GrowthResult:
        """Compound the per-trade return produced by an arbitrary formula."""
        params = scenario.kelly_parameters

        if not params.has_edge:
            return GrowthResult(
                scenario=scenario,
                per_trade_return=0.0,
                final_balance=scenario.capital,
                has_edge=False,
            )

        per_trade_return = formula.per_trade_return(scenario)
        # Per-trade losses of 100% or more would leave nothing to compound.
        final_balance = max(
            compound(scenario.capital, per_trade_return, scenario.total_trades)
            if per_trade_return > -1
            else 0.0,
            0.0,
        )
        return GrowthResult(
            scenario=scenario,
            per_trade_return=per_trade_return,
            final_balance=final_balance,
            has_edge=True,
        )

    @staticmethod
    def _validate_fraction(kelly_fraction: float) -> None:
        if not 0.0 < kelly_fraction <= 1.0:
            raise InvalidScenarioError(
                "kelly_fraction", kelly_fraction, "must be in (0, 1]"
            )
