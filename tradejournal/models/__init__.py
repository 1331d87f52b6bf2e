from tradejournal.models.scenario import (
    Scenario,
    KellyParameters,
    GrowthResult,
    CalibrationCase,
)
from tradejournal.models.calibration import (
    SKIPPED_NO_EDGE,
    CaseResidual,
    RankedCandidate,
    FitResult,
    ScanReport,
    FormulaOutcome,
    ComparisonRow,
    ComparisonReport,
    HybridTier,
    HybridParameters,
    OptimizationResult,
)
from tradejournal.models.journal import (
    Trade,
    TradeCreate,
    TradeUpdate,
    BulkTradeCreate,
    Session,
    SessionCreate,
    SessionUpdate,
    Calculation,
    CalculationCreate,
    UserIdentity,
    LoginRequest,
    ApiResponse,
)

__all__ = [
    "Scenario",
    "KellyParameters",
    "GrowthResult",
    "CalibrationCase",
    "SKIPPED_NO_EDGE",
    "CaseResidual",
    "RankedCandidate",
    "FitResult",
    "ScanReport",
    "FormulaOutcome",
    "ComparisonRow",
    "ComparisonReport",
    "HybridTier",
    "HybridParameters",
    "OptimizationResult",
    "Trade",
    "TradeCreate",
    "TradeUpdate",
    "BulkTradeCreate",
    "Session",
    "SessionCreate",
    "SessionUpdate",
    "Calculation",
    "CalculationCreate",
    "UserIdentity",
    "LoginRequest",
    "ApiResponse",
]
