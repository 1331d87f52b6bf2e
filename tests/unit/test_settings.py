from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import (
    Settings,
    GrowthSettings,
    CalibrationSettings,
    DatabaseSettings,
    ServerSettings,
)


def test_growth_settings_defaults() -> None:
    growth = GrowthSettings()
    assert growth.default_policy == "calibrated"
    assert growth.constant_fraction == 0.5


def test_calibration_settings_defaults() -> None:
    calibration = CalibrationSettings()
    assert calibration.scan_step == 0.01
    assert calibration.scan_radius == 0.05
    assert calibration.top_k == 5
    assert calibration.random_iterations == 1000
    assert calibration.gradient_iterations == 300
    assert calibration.learning_rate == 0.001
    assert calibration.seed == 42
    assert calibration.max_workers == 1


def test_database_settings_defaults() -> None:
    db = DatabaseSettings()
    assert db.db_dir == Path("db")
    assert db.sqlite_path == Path("db/journal.db")
    assert db.log_dir == Path("db/logs")


def test_server_settings_defaults() -> None:
    server = ServerSettings()
    assert server.host == "127.0.0.1"
    assert server.port == 5000
    assert server.credentials_path is None


def test_settings_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("GROWTH_DEFAULT_POLICY", "adaptive")
    monkeypatch.setenv("CALIBRATION_TOP_K", "3")
    monkeypatch.setenv("SERVER_PORT", "8080")
    monkeypatch.setenv("DB_DIR", "/tmp/journal")

    settings = Settings()
    assert settings.log_level == "DEBUG"
    assert settings.growth.default_policy == "adaptive"
    assert settings.calibration.top_k == 3
    assert settings.server.port == 8080
    assert settings.database.sqlite_path == Path("/tmp/journal/journal.db")


def test_unknown_policy_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GROWTH_DEFAULT_POLICY", "martingale")
    with pytest.raises(ValidationError):
        GrowthSettings()


def test_constant_fraction_range() -> None:
    with pytest.raises(ValidationError):
        GrowthSettings(constant_fraction=1.5)
