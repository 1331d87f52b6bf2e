"""Load calibration cases from JSON or YAML files."""
import json
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import ValidationError

from tradejournal.models import CalibrationCase, Scenario
from tradejournal.utils.exceptions import InvalidCaseDataError, InvalidScenarioError


_EXPECTED_KEYS = ("expectedProfit", "expected_profit", "expected")


def _reference_case(name: str, capital: float, trades: int, accuracy: float, rr: float, expected: float) -> CalibrationCase:
    return CalibrationCase(
        name=name,
        scenario=Scenario(
            capital=capital,
            total_trades=trades,
            accuracy=accuracy,
            risk_reward_ratio=rr,
        ),
        expected_profit=expected,
    )


REFERENCE_CASES: list[CalibrationCase] = [
    _reference_case("reference 50% 1:3", 1000, 10, 50, 3, 11799.69),
    _reference_case("reference 70% 1:3", 10000, 10, 70, 3, 107193287.17),
]


def parse_case(entry: Any, index: int, source: str = "") -> CalibrationCase:
    """Build one case from a mapping; `index` names unnamed entries."""
    if not isinstance(entry, dict):
        raise InvalidCaseDataError(f"entry {index} must be an object, got {type(entry).__name__}", source)

    name = str(entry.get("name") or f"case-{index + 1}")

    expected = next((entry[key] for key in _EXPECTED_KEYS if key in entry), None)
    if expected is None:
        raise InvalidCaseDataError(f"{name}: expectedProfit is required", source)

    try:
        scenario = Scenario.model_validate(entry)
        return CalibrationCase(name=name, scenario=scenario, expected_profit=expected)
    except InvalidScenarioError as exc:
        raise InvalidCaseDataError(f"{name}: {exc}", source) from exc
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise InvalidCaseDataError(f"{name}: invalid value for {fields}", source) from exc
    except InvalidCaseDataError as exc:
        raise InvalidCaseDataError(exc.message, source) from exc


def load_cases(path: Path) -> list[CalibrationCase]:
    """
    Load calibration cases from a `.json`, `.yaml` or `.yml` file.

    The document is either a list of case objects or an object with a
    `cases` list.

    Raises:
        InvalidCaseDataError: if the file cannot be read or parsed, or any
            entry is malformed
    """
    source = str(path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidCaseDataError(f"cannot read file: {exc}", source) from exc

    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            document = yaml.safe_load(raw)
        else:
            document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidCaseDataError(
            f"invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})", source
        ) from exc
    except yaml.YAMLError as exc:
        raise InvalidCaseDataError(f"invalid YAML: {exc}", source) from exc

    if isinstance(document, dict) and "cases" in document:
        document = document["cases"]

    if not isinstance(document, list):
        raise InvalidCaseDataError("expected a list of cases or an object with a 'cases' list", source)

    cases = [parse_case(entry, index, source) for index, entry in enumerate(document)]
    logger.info(f"Loaded {len(cases)} calibration cases from {source}")
    return cases
