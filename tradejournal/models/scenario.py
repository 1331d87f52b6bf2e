"""
Scenario, Kelly parameters and growth projection records.

Validation raises InvalidScenarioError / InvalidCaseDataError directly
instead of pydantic's ValidationError so callers see one error type per
kind of bad input.
"""
import math
from typing import Any, Optional

from pydantic import BaseModel, Field, computed_field, model_validator

from tradejournal.utils.exceptions import InvalidCaseDataError, InvalidScenarioError


_SCENARIO_FIELDS = {
    "capital": "capital",
    "total_trades": "totalTrades",
    "accuracy": "accuracy",
    "risk_reward_ratio": "riskRewardRatio",
}


def _lookup(data: dict[str, Any], name: str, alias: str) -> Any:
    if name in data:
        return data[name]
    if alias in data:
        return data[alias]
    raise InvalidScenarioError(name, None, "field is required")


def _as_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise InvalidScenarioError(name, value, "must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidScenarioError(name, value, "must be a number") from None
    if not math.isfinite(number):
        raise InvalidScenarioError(name, value, "must be finite")
    return number


class KellyParameters(BaseModel):
    model_config = {"frozen": True}

    win_rate: float
    kelly: float
    expected_value: float

    @classmethod
    def from_scenario(cls, scenario: "Scenario") -> "KellyParameters":
        win_rate = scenario.accuracy / 100
        ratio = scenario.risk_reward_ratio
        expected_value = win_rate * ratio - (1 - win_rate)
        return cls(
            win_rate=win_rate,
            kelly=expected_value / ratio,
            expected_value=expected_value,
        )

    @computed_field
    @property
    def has_edge(self) -> bool:
        return self.kelly > 0


class Scenario(BaseModel):
    """A trading plan to project: capital, trade count, win rate and R."""

    model_config = {"frozen": True, "populate_by_name": True}

    capital: float = Field(alias="capital")
    total_trades: int = Field(alias="totalTrades")
    accuracy: float = Field(alias="accuracy")
    risk_reward_ratio: float = Field(alias="riskRewardRatio")

    @model_validator(mode="before")
    @classmethod
    def validate_ranges(cls, data: Any) -> Any:
        if isinstance(data, Scenario):
            return data
        if not isinstance(data, dict):
            raise InvalidScenarioError("scenario", data, "must be a mapping")

        capital = _as_number("capital", _lookup(data, "capital", "capital"))
        if capital <= 0:
            raise InvalidScenarioError("capital", capital, "must be positive")

        trades = _as_number("total_trades", _lookup(data, "total_trades", "totalTrades"))
        if trades < 0:
            raise InvalidScenarioError("total_trades", trades, "must not be negative")
        if not trades.is_integer():
            raise InvalidScenarioError("total_trades", trades, "must be a whole number")

        accuracy = _as_number("accuracy", _lookup(data, "accuracy", "accuracy"))
        if not 0.0 <= accuracy <= 100.0:
            raise InvalidScenarioError("accuracy", accuracy, "must be in [0, 100]")

        ratio = _as_number(
            "risk_reward_ratio", _lookup(data, "risk_reward_ratio", "riskRewardRatio")
        )
        if ratio <= 0:
            raise InvalidScenarioError("risk_reward_ratio", ratio, "must be positive")

        return {
            "capital": capital,
            "total_trades": int(trades),
            "accuracy": accuracy,
            "risk_reward_ratio": ratio,
        }

    @computed_field
    @property
    def kelly_parameters(self) -> KellyParameters:
        return KellyParameters.from_scenario(self)

    def describe(self) -> str:
        return (
            f"${self.capital:,.2f}, {self.total_trades} trades, "
            f"{self.accuracy:g}% accuracy, 1:{self.risk_reward_ratio:g} RR"
        )


class GrowthResult(BaseModel):
    model_config = {"frozen": True}

    scenario: Scenario
    kelly_fraction: Optional[float] = None
    per_trade_return: float
    final_balance: float = Field(ge=0.0)
    has_edge: bool

    @computed_field
    @property
    def profit(self) -> float:
        return self.final_balance - self.scenario.capital


class CalibrationCase(BaseModel):
    """A scenario paired with the profit an external reference reported for it."""

    model_config = {"frozen": True, "populate_by_name": True}

    name: str = "case"
    scenario: Scenario
    expected_profit: float = Field(alias="expectedProfit")

    @model_validator(mode="after")
    def validate_case(self) -> "CalibrationCase":
        if self.scenario.total_trades <= 0:
            raise InvalidCaseDataError(
                f"{self.name}: total_trades must be positive, got {self.scenario.total_trades}"
            )
        if not math.isfinite(self.expected_profit) or self.expected_profit < 0:
            raise InvalidCaseDataError(
                f"{self.name}: expected_profit must be a non-negative number, "
                f"got {self.expected_profit}"
            )
        return self

    @property
    def kelly_parameters(self) -> KellyParameters:
        return self.scenario.kelly_parameters
