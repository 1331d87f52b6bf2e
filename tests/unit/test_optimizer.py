import math

import pytest

from tradejournal.calibration import REFERENCE_CASES, HybridConstantOptimizer
from tradejournal.calibration.optimizer import BOUNDS, SEARCH_GRID
from tradejournal.models import CalibrationCase, HybridParameters, Scenario


@pytest.fixture
def optimizer() -> HybridConstantOptimizer:
    return HybridConstantOptimizer(REFERENCE_CASES)


def test_cases_without_reference_or_edge_are_ignored() -> None:
    losing = CalibrationCase(
        name="losing",
        scenario=Scenario(capital=1000, total_trades=10, accuracy=25, risk_reward_ratio=2),
        expected_profit=0,
    )
    zero = CalibrationCase(
        name="zero",
        scenario=Scenario(capital=1000, total_trades=10, accuracy=50, risk_reward_ratio=3),
        expected_profit=0,
    )
    optimizer = HybridConstantOptimizer([*REFERENCE_CASES, losing, zero])
    assert [case.name for case in optimizer.cases] == [case.name for case in REFERENCE_CASES]


def test_objective_is_mean_relative_error(optimizer: HybridConstantOptimizer) -> None:
    error = optimizer.objective(HybridParameters())
    assert 0 < error <= 1


def test_random_search_never_worse_than_baseline(optimizer: HybridConstantOptimizer) -> None:
    baseline = optimizer.objective(optimizer.baseline)
    params, error = optimizer.random_search(iterations=50, seed=7)
    assert error <= baseline
    assert error == pytest.approx(optimizer.objective(params))


def test_random_search_samples_from_grid(optimizer: HybridConstantOptimizer) -> None:
    params, _ = optimizer.random_search(iterations=200, seed=3)
    if params != optimizer.baseline:
        for key, value in params.flatten().items():
            assert value in SEARCH_GRID[key.split(".", 1)[1]]


def test_random_search_is_deterministic_for_seed(optimizer: HybridConstantOptimizer) -> None:
    first = optimizer.random_search(iterations=30, seed=11)
    second = optimizer.random_search(iterations=30, seed=11)
    assert first == second


def test_gradient_descent_respects_bounds(optimizer: HybridConstantOptimizer) -> None:
    start = HybridParameters()
    params, error = optimizer.gradient_descent(start, learning_rate=0.5, iterations=5)

    assert error <= optimizer.objective(start)
    for key, value in params.flatten().items():
        low, high = BOUNDS[key.split(".", 1)[1]]
        assert low <= value <= high


def test_optimize_summary(optimizer: HybridConstantOptimizer) -> None:
    result = optimizer.optimize(random_iterations=40, gradient_iterations=3, seed=5)

    assert result.scored_cases == 2
    assert result.best_error <= result.random_search_error
    assert result.best_error <= result.baseline_error
    assert result.improved == (result.best_error < result.baseline_error)


def test_optimize_without_scorable_cases() -> None:
    optimizer = HybridConstantOptimizer([])
    result = optimizer.optimize(random_iterations=10, gradient_iterations=1)

    assert result.scored_cases == 0
    assert not result.improved
    assert math.isinf(result.baseline_error)
    assert result.best == HybridParameters()
