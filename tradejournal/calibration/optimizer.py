"""
Hybrid Constant Optimizer - Tunes the banded power-law formula constants.
"""
from typing import Iterable

import numpy as np
from loguru import logger

from tradejournal.growth import GrowthModel, HybridPowerLawFormula
from tradejournal.models import CalibrationCase, HybridParameters, OptimizationResult


# Discrete values sampled by the random search, per constant kind.
SEARCH_GRID: dict[str, list[float]] = {
    "kelly_fraction": [0.15, 0.20, 0.25, 0.30, 0.35],
    "scaling_factor": [0.08, 0.12, 0.15, 0.18, 0.22, 0.25, 0.30],
    "accuracy_exponent": [1.0, 1.1, 1.2, 1.3, 1.4, 1.5],
    "rr_exponent": [0.4, 0.5, 0.6, 0.7, 0.8],
}

# Box constraints applied after every gradient step.
BOUNDS: dict[str, tuple[float, float]] = {
    "kelly_fraction": (0.1, 0.5),
    "scaling_factor": (0.05, 0.4),
    "accuracy_exponent": (0.8, 2.0),
    "rr_exponent": (0.3, 1.0),
}

EPSILON = 1e-4


def _kind(key: str) -> str:
    return key.split(".", 1)[1]


class HybridConstantOptimizer:
    """
    Minimizes the mean relative error of HybridPowerLawFormula over the
    cases that have a reference profit (expected > 0) and an edge.
    """

    def __init__(
        self,
        cases: Iterable[CalibrationCase],
        growth_model: GrowthModel | None = None,
        baseline: HybridParameters | None = None,
    ):
        self.growth_model = growth_model or GrowthModel()
        self.baseline = baseline or HybridParameters()
        self.cases = [
            case
            for case in cases
            if case.expected_profit > 0 and case.kelly_parameters.has_edge
        ]

    def objective(self, params: HybridParameters) -> float:
        """Mean relative error (as a fraction); inf when nothing can be scored."""
        if not self.cases:
            return float("inf")

        formula = HybridPowerLawFormula(params)
        errors = [
            abs(self.growth_model.project_with(case.scenario, formula).profit - case.expected_profit)
            / case.expected_profit
            for case in self.cases
        ]
        return float(np.mean(errors))

    def random_search(self, iterations: int = 1000, seed: int = 42) -> tuple[HybridParameters, float]:
        """
        Sample every constant from SEARCH_GRID and keep the best set,
        starting from the baseline.
        """
        rng = np.random.default_rng(seed)
        best = self.baseline
        best_error = self.objective(best)
        keys = list(best.flatten())

        for i in range(iterations):
            flat = {key: float(rng.choice(SEARCH_GRID[_kind(key)])) for key in keys}
            candidate = HybridParameters.from_flat(flat)
            error = self.objective(candidate)

            if error < best_error:
                best, best_error = candidate, error
                logger.debug(f"Random search improvement at iteration {i}: {best_error:.4%}")

            if (i + 1) % 100 == 0:
                logger.debug(f"Random search progress: {i + 1}/{iterations}")

        return best, best_error

    def gradient_descent(
        self,
        start: HybridParameters,
        learning_rate: float = 0.001,
        iterations: int = 300,
    ) -> tuple[HybridParameters, float]:
        """
        Central-difference gradient descent with box constraints. Returns
        the best parameters seen, not necessarily the last iterate.
        """
        flat = start.flatten()
        best = start
        best_error = self.objective(start)

        for i in range(iterations):
            gradients: dict[str, float] = {}
            for key, value in flat.items():
                flat[key] = value + EPSILON
                error_plus = self.objective(HybridParameters.from_flat(flat))
                flat[key] = value - EPSILON
                error_minus = self.objective(HybridParameters.from_flat(flat))
                flat[key] = value
                gradients[key] = (error_plus - error_minus) / (2 * EPSILON)

            for key in flat:
                low, high = BOUNDS[_kind(key)]
                flat[key] = float(np.clip(flat[key] - learning_rate * gradients[key], low, high))

            current = HybridParameters.from_flat(flat)
            current_error = self.objective(current)
            if current_error < best_error:
                best, best_error = current, current_error
                if i % 50 == 0:
                    logger.debug(f"Gradient descent iteration {i}: {best_error:.4%}")

        return best, best_error

    def optimize(
        self,
        random_iterations: int = 1000,
        gradient_iterations: int = 300,
        learning_rate: float = 0.001,
        seed: int = 42,
    ) -> OptimizationResult:
        baseline_error = self.objective(self.baseline)

        if not self.cases:
            logger.warning("No cases with a reference profit and an edge; nothing to optimize")
            return OptimizationResult(
                baseline_error=baseline_error,
                random_search_error=baseline_error,
                gradient_descent_error=baseline_error,
                best=self.baseline,
                best_error=baseline_error,
                improved=False,
                scored_cases=0,
            )

        logger.info(
            f"Optimizing hybrid constants on {len(self.cases)} cases "
            f"(baseline error {baseline_error:.2%})"
        )

        rs_params, rs_error = self.random_search(random_iterations, seed)
        gd_params, gd_error = self.gradient_descent(rs_params, learning_rate, gradient_iterations)

        best, best_error = (gd_params, gd_error) if gd_error < rs_error else (rs_params, rs_error)
        improved = best_error < baseline_error

        logger.info(
            f"Random search {rs_error:.2%}, gradient descent {gd_error:.2%}, "
            f"best {best_error:.2%} ({'improved' if improved else 'no improvement'})"
        )

        return OptimizationResult(
            baseline_error=baseline_error,
            random_search_error=rs_error,
            gradient_descent_error=gd_error,
            best=best,
            best_error=best_error,
            improved=improved,
            scored_cases=len(self.cases),
        )
