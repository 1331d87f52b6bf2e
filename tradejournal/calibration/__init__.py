from tradejournal.calibration.search import (
    CalibrationSearch,
    Candidate,
    candidates_from_formulas,
    relative_error_pct,
)
from tradejournal.calibration.optimizer import HybridConstantOptimizer
from tradejournal.calibration.cases import REFERENCE_CASES, load_cases, parse_case

__all__ = [
    "CalibrationSearch",
    "Candidate",
    "candidates_from_formulas",
    "relative_error_pct",
    "HybridConstantOptimizer",
    "REFERENCE_CASES",
    "load_cases",
    "parse_case",
]
