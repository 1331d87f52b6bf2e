"""
Calibration Search - Fits growth-model parameterizations to reference profits.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

import numpy as np
from loguru import logger

from tradejournal.growth import (
    ConstantFraction,
    GrowthModel,
    KellyFractionFormula,
    ReturnFormula,
    formula_registry,
)
from tradejournal.models import (
    SKIPPED_NO_EDGE,
    CalibrationCase,
    CaseResidual,
    ComparisonReport,
    ComparisonRow,
    FitResult,
    FormulaOutcome,
    RankedCandidate,
    ScanReport,
)


@dataclass(frozen=True)
class Candidate:
    """One parameterization to score: a named per-trade return formula."""

    name: str
    formula: ReturnFormula
    parameters: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_formula(cls, formula: ReturnFormula) -> "Candidate":
        return cls(name=formula.name, formula=formula, parameters=formula.parameters())


def candidates_from_formulas(formulas: Mapping[str, ReturnFormula]) -> list[Candidate]:
    return [
        Candidate(name=name, formula=formula, parameters=formula.parameters())
        for name, formula in formulas.items()
    ]


def relative_error_pct(computed: float, expected: float) -> Optional[float]:
    """|computed - expected| / expected x 100, or None when expected is 0."""
    if expected == 0:
        return None
    return abs(computed - expected) / abs(expected) * 100


class CalibrationSearch:
    """
    Searches fraction policies and formulas for the best match against
    reference (scenario -> expected profit) cases.

    Cases without a positive Kelly edge never contribute to a score; they
    are reported as skipped instead of being dropped.
    """

    def __init__(self, growth_model: GrowthModel | None = None, max_workers: int = 1):
        """
        Initialize the search.

        Args:
            growth_model: Model used to compound candidate returns
            max_workers: Threads used to evaluate candidates (1 = sequential)
        """
        self.growth_model = growth_model or GrowthModel()
        self.max_workers = max_workers

    def fit(
        self,
        cases: Iterable[CalibrationCase],
        candidates: Iterable[Candidate],
    ) -> FitResult:
        """
        Score every candidate against every case and rank them.

        Args:
            cases: Reference cases
            candidates: Candidate parameterizations (any iterable/generator)

        Returns:
            FitResult ranked ascending by total absolute error. Ties keep
            candidate order.
        """
        cases = list(cases)
        if not cases:
            logger.info("No calibration cases supplied, nothing to fit")
            return FitResult()

        skipped = [case.name for case in cases if not case.kelly_parameters.has_edge]
        for name in skipped:
            logger.warning(f"Calibration case {name} has no edge, excluded from scoring")

        if len(skipped) == len(cases):
            return FitResult(skipped_cases=skipped)

        candidates = list(candidates)
        if self.max_workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                ranked = list(executor.map(lambda c: self._evaluate(c, cases), candidates))
        else:
            ranked = [self._evaluate(candidate, cases) for candidate in candidates]

        ranked.sort(key=lambda candidate: candidate.absolute_error)

        if ranked:
            best = ranked[0]
            logger.info(
                f"Fitted {len(ranked)} candidates on {len(cases) - len(skipped)} cases; "
                f"best {best.name} (abs error {best.absolute_error:,.2f})"
            )

        return FitResult(ranking=ranked, skipped_cases=skipped)

    def local_scan(
        self,
        case: CalibrationCase,
        step: float = 0.01,
        radius: float = 0.05,
        top_k: int = 5,
    ) -> ScanReport:
        """
        Invert the compounding formula for one case and scan kelly fractions
        around the implied value.

        Args:
            case: Reference case
            step: Distance between scanned fractions
            radius: Scan half-width around the implied fraction
            top_k: Number of ranked fractions to keep

        Returns:
            ScanReport with the implied values and the top-K fractions
        """
        if step <= 0:
            raise ValueError(f"step must be positive, got {step}")
        if radius < 0:
            raise ValueError(f"radius must not be negative, got {radius}")
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")

        params = case.kelly_parameters
        if not params.has_edge:
            logger.warning(f"Calibration case {case.name} has no edge, scan skipped")
            return ScanReport(case=case, kelly=params.kelly, skipped=True, reason=SKIPPED_NO_EDGE)

        scenario = case.scenario
        target_balance = scenario.capital + case.expected_profit
        implied_return = (target_balance / scenario.capital) ** (1 / scenario.total_trades) - 1
        implied_fraction = implied_return / params.kelly

        logger.debug(
            f"{case.name}: implied per-trade return {implied_return:.6f}, "
            f"implied kelly fraction {implied_fraction:.6f}"
        )

        steps = int(round(radius / step))
        fractions = implied_fraction + np.arange(-steps, steps + 1) * step
        in_range = [float(f) for f in fractions if 0.0 < f <= 1.0]

        if len(in_range) < len(fractions):
            logger.warning(
                f"{case.name}: dropped {len(fractions) - len(in_range)} scanned fractions "
                "outside (0, 1]"
            )

        candidates = (
            Candidate(
                name=f"kelly fraction {fraction:.4f}",
                formula=KellyFractionFormula(ConstantFraction(fraction)),
                parameters={"kelly_fraction": fraction},
            )
            for fraction in in_range
        )
        fitted = self.fit([case], candidates)

        return ScanReport(
            case=case,
            kelly=params.kelly,
            implied_per_trade_return=implied_return,
            implied_fraction=implied_fraction,
            ranking=fitted.ranking[:top_k],
        )

    def compare(
        self,
        cases: Iterable[CalibrationCase],
        formulas: Mapping[str, ReturnFormula] | None = None,
    ) -> ComparisonReport:
        """
        Evaluate named formulas case by case and count which one wins each.

        Args:
            cases: Reference cases
            formulas: Named formulas (default: the built-in registry)

        Returns:
            ComparisonReport with per-case rows, win counts and summary
        """
        formulas = formulas if formulas is not None else formula_registry()
        names = list(formulas)
        win_counts = {name: 0 for name in names}
        errors: dict[str, list[float]] = {name: [] for name in names}
        rows: list[ComparisonRow] = []

        for case in cases:
            if not case.kelly_parameters.has_edge:
                logger.warning(f"Calibration case {case.name} has no edge, excluded from comparison")
                rows.append(
                    ComparisonRow(
                        case_name=case.name,
                        expected_profit=case.expected_profit,
                        status=SKIPPED_NO_EDGE,
                    )
                )
                continue

            outcomes = []
            for name, formula in formulas.items():
                profit = self.growth_model.project_with(case.scenario, formula).profit
                rel_error = relative_error_pct(profit, case.expected_profit)
                if rel_error is not None:
                    errors[name].append(rel_error)
                outcomes.append(
                    FormulaOutcome(
                        formula=name,
                        profit=profit,
                        absolute_error=abs(profit - case.expected_profit),
                        relative_error_pct=rel_error,
                    )
                )

            winner = min(outcomes, key=lambda o: o.absolute_error).formula if outcomes else None
            if winner is not None:
                win_counts[winner] += 1

            rows.append(
                ComparisonRow(
                    case_name=case.name,
                    expected_profit=case.expected_profit,
                    outcomes=outcomes,
                    winner=winner,
                )
            )

        mean_errors = {
            name: (float(np.mean(values)) if values else None) for name, values in errors.items()
        }

        best_formula = None
        if any(row.winner for row in rows):
            best_formula = sorted(
                names,
                key=lambda n: (
                    -win_counts[n],
                    mean_errors[n] if mean_errors[n] is not None else float("inf"),
                ),
            )[0]
            logger.info(
                f"Compared {len(names)} formulas on {len(rows)} cases; "
                f"best {best_formula} with {win_counts[best_formula]} wins"
            )

        return ComparisonReport(
            formulas=names,
            rows=rows,
            win_counts=win_counts,
            mean_relative_error_pct=mean_errors,
            best_formula=best_formula,
        )

    def _evaluate(self, candidate: Candidate, cases: list[CalibrationCase]) -> RankedCandidate:
        residuals: list[CaseResidual] = []

        for case in cases:
            if not case.kelly_parameters.has_edge:
                residuals.append(
                    CaseResidual(
                        case_name=case.name,
                        expected_profit=case.expected_profit,
                        status=SKIPPED_NO_EDGE,
                    )
                )
                continue

            profit = self.growth_model.project_with(case.scenario, candidate.formula).profit
            residuals.append(
                CaseResidual(
                    case_name=case.name,
                    expected_profit=case.expected_profit,
                    profit=profit,
                    absolute_error=abs(profit - case.expected_profit),
                    relative_error_pct=relative_error_pct(profit, case.expected_profit),
                )
            )

        scored = [r for r in residuals if r.scored]
        relative = [r.relative_error_pct for r in scored if r.relative_error_pct is not None]

        return RankedCandidate(
            name=candidate.name,
            parameters=candidate.parameters,
            profit=sum(r.profit for r in scored),
            absolute_error=sum(r.absolute_error for r in scored),
            relative_error_pct=float(np.mean(relative)) if relative else None,
            residuals=residuals,
        )
