from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, computed_field

from tradejournal.models.scenario import CalibrationCase


SKIPPED_NO_EDGE = "skipped: no edge"


class CaseResidual(BaseModel):
    case_name: str
    expected_profit: float
    profit: Optional[float] = None
    absolute_error: Optional[float] = None
    relative_error_pct: Optional[float] = None
    status: Literal["scored", "skipped: no edge"] = "scored"

    @property
    def scored(self) -> bool:
        return self.status == "scored"


class RankedCandidate(BaseModel):
    name: str
    parameters: dict[str, Any]
    profit: float
    absolute_error: float
    relative_error_pct: Optional[float] = None
    residuals: list[CaseResidual] = []


class FitResult(BaseModel):
    ranking: list[RankedCandidate] = []
    skipped_cases: list[str] = []

    @computed_field
    @property
    def best(self) -> Optional[RankedCandidate]:
        return self.ranking[0] if self.ranking else None

    @property
    def is_empty(self) -> bool:
        return not self.ranking


class ScanReport(BaseModel):
    case: CalibrationCase
    kelly: float
    implied_per_trade_return: Optional[float] = None
    implied_fraction: Optional[float] = None
    ranking: list[RankedCandidate] = []
    skipped: bool = False
    reason: Optional[str] = None


class FormulaOutcome(BaseModel):
    formula: str
    profit: float
    absolute_error: float
    relative_error_pct: Optional[float] = None


class ComparisonRow(BaseModel):
    case_name: str
    expected_profit: float
    outcomes: list[FormulaOutcome] = []
    winner: Optional[str] = None
    status: Literal["scored", "skipped: no edge"] = "scored"


class ComparisonReport(BaseModel):
    formulas: list[str] = []
    rows: list[ComparisonRow] = []
    win_counts: dict[str, int] = {}
    mean_relative_error_pct: dict[str, Optional[float]] = {}
    best_formula: Optional[str] = None


class HybridTier(BaseModel):
    """Constants applied to one risk/reward band of the hybrid formula."""

    kelly_fraction: float = Field(gt=0.0)
    scaling_factor: float = Field(gt=0.0)
    accuracy_exponent: float
    rr_exponent: float


class HybridParameters(BaseModel):
    """Three bands split at R <= 2, R <= 4 and R > 4."""

    low: HybridTier = HybridTier(
        kelly_fraction=0.20, scaling_factor=0.12, accuracy_exponent=1.1, rr_exponent=0.5
    )
    mid: HybridTier = HybridTier(
        kelly_fraction=0.25, scaling_factor=0.18, accuracy_exponent=1.2, rr_exponent=0.6
    )
    high: HybridTier = HybridTier(
        kelly_fraction=0.30, scaling_factor=0.25, accuracy_exponent=1.25, rr_exponent=0.65
    )

    def tier_for(self, risk_reward_ratio: float) -> HybridTier:
        if risk_reward_ratio <= 2:
            return self.low
        if risk_reward_ratio <= 4:
            return self.mid
        return self.high

    def flatten(self) -> dict[str, float]:
        flat: dict[str, float] = {}
        for band in ("low", "mid", "high"):
            tier: HybridTier = getattr(self, band)
            for key, value in tier.model_dump().items():
                flat[f"{band}.{key}"] = value
        return flat

    @classmethod
    def from_flat(cls, flat: dict[str, float]) -> "HybridParameters":
        bands: dict[str, dict[str, float]] = {"low": {}, "mid": {}, "high": {}}
        for key, value in flat.items():
            band, name = key.split(".", 1)
            bands[band][name] = float(value)
        return cls(**{band: HybridTier(**values) for band, values in bands.items()})


class OptimizationResult(BaseModel):
    baseline_error: float
    random_search_error: float
    gradient_descent_error: float
    best: HybridParameters
    best_error: float
    improved: bool
    scored_cases: int
