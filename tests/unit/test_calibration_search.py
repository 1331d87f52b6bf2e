import pytest

from tradejournal.calibration import (
    REFERENCE_CASES,
    CalibrationSearch,
    Candidate,
    relative_error_pct,
)
from tradejournal.growth import ConstantFraction, KellyFractionFormula, LinearAccuracyFormula
from tradejournal.models import SKIPPED_NO_EDGE, CalibrationCase, Scenario


def _case(name="case", capital=1000, trades=10, accuracy=50, rr=3, expected=11799.69) -> CalibrationCase:
    return CalibrationCase(
        name=name,
        scenario=Scenario(capital=capital, total_trades=trades, accuracy=accuracy, risk_reward_ratio=rr),
        expected_profit=expected,
    )


def _constant(fraction: float) -> Candidate:
    return Candidate(
        name=f"constant {fraction}",
        formula=KellyFractionFormula(ConstantFraction(fraction)),
        parameters={"kelly_fraction": fraction},
    )


@pytest.fixture
def search() -> CalibrationSearch:
    return CalibrationSearch()


class TestFit:
    def test_empty_case_set_gives_empty_ranking(self, search: CalibrationSearch) -> None:
        result = search.fit([], [_constant(0.5)])
        assert result.ranking == []
        assert result.best is None
        assert result.is_empty

    def test_ranks_by_absolute_error(self, search: CalibrationSearch) -> None:
        candidates = [_constant(0.5), _constant(0.8712), _constant(1.0)]
        result = search.fit([_case()], candidates)

        assert [c.name for c in result.ranking][0] == "constant 0.8712"
        errors = [c.absolute_error for c in result.ranking]
        assert errors == sorted(errors)
        assert result.best.absolute_error < 2.0

    def test_ties_keep_candidate_order(self, search: CalibrationSearch) -> None:
        first = _constant(0.6)
        second = Candidate(name="same again", formula=first.formula, parameters=first.parameters)
        result = search.fit([_case()], [first, second])
        assert [c.name for c in result.ranking] == ["constant 0.6", "same again"]

    def test_accepts_generator_of_candidates(self, search: CalibrationSearch) -> None:
        result = search.fit([_case()], (_constant(f) for f in (0.3, 0.9)))
        assert len(result.ranking) == 2

    def test_no_edge_case_is_skipped_not_scored(self, search: CalibrationSearch) -> None:
        losing = _case(name="losing", accuracy=25, rr=2, expected=0)
        result = search.fit([_case(), losing], [_constant(0.8712)])

        assert result.skipped_cases == ["losing"]
        residuals = {r.case_name: r for r in result.best.residuals}
        assert residuals["losing"].status == SKIPPED_NO_EDGE
        assert residuals["losing"].profit is None
        assert result.best.absolute_error == pytest.approx(residuals["case"].absolute_error)

    def test_all_cases_without_edge(self, search: CalibrationSearch) -> None:
        result = search.fit([_case(accuracy=20, rr=1, expected=0)], [_constant(0.5)])
        assert result.ranking == []
        assert result.skipped_cases == ["case"]

    def test_zero_expected_profit_has_no_relative_error(self, search: CalibrationSearch) -> None:
        result = search.fit([_case(expected=0)], [_constant(0.5)])
        best = result.best
        assert best.relative_error_pct is None
        assert best.residuals[0].relative_error_pct is None
        assert best.absolute_error == pytest.approx(best.profit)

    def test_threaded_fit_matches_sequential(self) -> None:
        candidates = [_constant(f) for f in (0.2, 0.5, 0.8712, 1.0)]
        sequential = CalibrationSearch().fit(REFERENCE_CASES, candidates)
        threaded = CalibrationSearch(max_workers=4).fit(REFERENCE_CASES, candidates)
        assert [c.name for c in threaded.ranking] == [c.name for c in sequential.ranking]


def test_relative_error_pct() -> None:
    assert relative_error_pct(110, 100) == pytest.approx(10.0)
    assert relative_error_pct(90, 100) == pytest.approx(10.0)
    assert relative_error_pct(5, 0) is None


class TestLocalScan:
    def test_reference_case_recovers_calibrated_fraction(self, search: CalibrationSearch) -> None:
        report = search.local_scan(_case(), step=0.01, radius=0.05, top_k=5)

        assert not report.skipped
        assert report.kelly == pytest.approx(1 / 3)
        assert report.implied_fraction == pytest.approx(0.8712, abs=1e-4)
        assert len(report.ranking) == 5
        assert report.ranking[0].parameters["kelly_fraction"] == pytest.approx(report.implied_fraction)
        assert report.ranking[0].absolute_error < 1e-4

    def test_top_k_larger_than_grid(self, search: CalibrationSearch) -> None:
        report = search.local_scan(_case(), step=0.01, radius=0.02, top_k=50)
        assert len(report.ranking) == 5

    def test_no_edge_case_is_reported_skipped(self, search: CalibrationSearch) -> None:
        report = search.local_scan(_case(accuracy=25, rr=2, expected=0))
        assert report.skipped
        assert report.reason == SKIPPED_NO_EDGE
        assert report.ranking == []

    def test_fractions_outside_range_are_dropped(self, search: CalibrationSearch) -> None:
        # expected 0 implies a fraction of 0: only the positive half of the grid survives
        report = search.local_scan(_case(expected=0), step=0.01, radius=0.05, top_k=20)
        fractions = [c.parameters["kelly_fraction"] for c in report.ranking]
        assert fractions
        assert all(0.0 < f <= 1.0 for f in fractions)
        assert all(c.relative_error_pct is None for c in report.ranking)

    @pytest.mark.parametrize(
        "kwargs",
        [{"step": 0}, {"radius": -0.1}, {"top_k": 0}],
    )
    def test_invalid_scan_arguments(self, search: CalibrationSearch, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            search.local_scan(_case(), **kwargs)


class TestCompare:
    def test_reference_cases(self, search: CalibrationSearch) -> None:
        report = search.compare(REFERENCE_CASES)

        assert report.formulas[0] == "kelly x calibrated ev tiers"
        assert len(report.rows) == 2
        assert report.rows[0].winner == "kelly x calibrated ev tiers"
        assert sum(report.win_counts.values()) == 2
        assert report.best_formula == "kelly x calibrated ev tiers"

    def test_skipped_case_is_listed(self, search: CalibrationSearch) -> None:
        losing = _case(name="losing", accuracy=25, rr=2, expected=0)
        report = search.compare([losing, _case()])

        assert report.rows[0].status == SKIPPED_NO_EDGE
        assert report.rows[0].winner is None
        assert report.rows[1].winner is not None
        assert sum(report.win_counts.values()) == 1

    def test_only_skipped_cases_has_no_best(self, search: CalibrationSearch) -> None:
        report = search.compare([_case(accuracy=25, rr=2, expected=0)])
        assert report.best_formula is None
        assert all(count == 0 for count in report.win_counts.values())
        assert all(value is None for value in report.mean_relative_error_pct.values())

    def test_custom_formulas(self, search: CalibrationSearch) -> None:
        formulas = {
            "calibrated": KellyFractionFormula(ConstantFraction(0.8712)),
            "linear": LinearAccuracyFormula(),
        }
        report = search.compare([_case()], formulas)
        assert report.formulas == ["calibrated", "linear"]
        assert report.win_counts == {"calibrated": 1, "linear": 0}
        assert report.mean_relative_error_pct["calibrated"] < 0.02

    def test_win_count_tie_broken_by_mean_error(self, search: CalibrationSearch) -> None:
        close = KellyFractionFormula(ConstantFraction(0.8712))
        formulas = {"first": close, "second": close}
        report = search.compare([_case()], formulas)
        # identical errors: winner and best fall back to insertion order
        assert report.rows[0].winner == "first"
        assert report.best_formula == "first"

    def test_zero_expected_profit_does_not_crash(self, search: CalibrationSearch) -> None:
        report = search.compare([_case(expected=0)])
        assert report.rows[0].winner is not None
        assert all(o.relative_error_pct is None for o in report.rows[0].outcomes)
