import json
from pathlib import Path

import pytest

from tradejournal.calibration import REFERENCE_CASES, load_cases, parse_case
from tradejournal.utils.exceptions import InvalidCaseDataError


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_reference_cases() -> None:
    assert len(REFERENCE_CASES) == 2
    first = REFERENCE_CASES[0]
    assert first.scenario.capital == 1000
    assert first.scenario.total_trades == 10
    assert first.expected_profit == 11799.69


def test_load_json_list(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "cases.json",
        [
            {"name": "a", "capital": 1000, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": 11799.69},
            {"capital": 500, "total_trades": 20, "accuracy": 60, "risk_reward_ratio": 2, "expected_profit": 900},
        ],
    )
    cases = load_cases(path)

    assert [case.name for case in cases] == ["a", "case-2"]
    assert cases[1].scenario.risk_reward_ratio == 2
    assert cases[1].expected_profit == 900


def test_load_cases_object(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "cases.json",
        {"cases": [{"capital": 1000, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": 1}]},
    )
    assert len(load_cases(path)) == 1


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "cases.yaml"
    path.write_text(
        "cases:\n"
        "  - name: yaml case\n"
        "    capital: 1000\n"
        "    totalTrades: 10\n"
        "    accuracy: 50\n"
        "    riskRewardRatio: 3\n"
        "    expectedProfit: 11799.69\n",
        encoding="utf-8",
    )
    cases = load_cases(path)
    assert cases[0].name == "yaml case"
    assert cases[0].scenario.accuracy == 50


def test_empty_list_is_allowed(tmp_path: Path) -> None:
    assert load_cases(_write(tmp_path / "empty.json", [])) == []


@pytest.mark.parametrize(
    "entry, fragment",
    [
        ({"capital": 1000, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3}, "expectedProfit is required"),
        ({"capital": -5, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": 1}, "capital"),
        ({"capital": 1000, "totalTrades": 10, "accuracy": 150, "riskRewardRatio": 3, "expectedProfit": 1}, "accuracy"),
        ({"capital": 1000, "totalTrades": 10, "accuracy": "high", "riskRewardRatio": 3, "expectedProfit": 1}, "accuracy"),
        ({"capital": 1000, "totalTrades": 0, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": 1}, "total_trades"),
        ({"capital": 1000, "totalTrades": 10, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": -1}, "expected_profit"),
        ({"capital": 1000, "accuracy": 50, "riskRewardRatio": 3, "expectedProfit": 1}, "total_trades"),
    ],
)
def test_malformed_entries(entry: dict, fragment: str) -> None:
    with pytest.raises(InvalidCaseDataError) as exc_info:
        parse_case(entry, 0, "inline")
    assert fragment in str(exc_info.value)
    assert "inline" in str(exc_info.value)


def test_entry_must_be_object() -> None:
    with pytest.raises(InvalidCaseDataError, match="must be an object"):
        parse_case([1, 2, 3], 4)


def test_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(InvalidCaseDataError, match="invalid JSON"):
        load_cases(path)


def test_wrong_document_shape(tmp_path: Path) -> None:
    with pytest.raises(InvalidCaseDataError, match="expected a list"):
        load_cases(_write(tmp_path / "shape.json", {"name": "x"}))


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidCaseDataError, match="cannot read file"):
        load_cases(tmp_path / "nope.json")


def test_bundled_case_file() -> None:
    path = Path(__file__).resolve().parents[2] / "cases" / "reference.yaml"
    cases = load_cases(path)

    assert len(cases) == 7
    assert cases[0].expected_profit == 11799.69
    assert not cases[-1].kelly_parameters.has_edge
