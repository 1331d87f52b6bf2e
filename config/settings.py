from pathlib import Path
from typing import Literal, Optional
from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GrowthSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GROWTH_")

    default_policy: Literal["calibrated", "initial", "adaptive", "constant"] = "calibrated"
    constant_fraction: float = Field(default=0.5, gt=0.0, le=1.0)


class CalibrationSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CALIBRATION_")

    scan_step: float = Field(default=0.01, gt=0.0)
    scan_radius: float = Field(default=0.05, ge=0.0)
    top_k: int = Field(default=5, ge=1)
    random_iterations: int = Field(default=1000, ge=0)
    gradient_iterations: int = Field(default=300, ge=0)
    learning_rate: float = Field(default=0.001, gt=0.0)
    seed: int = 42
    max_workers: int = Field(default=1, ge=1)


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="")

    db_dir: Path = Field(default=Path("db"), alias="DB_DIR")

    @computed_field
    @property
    def sqlite_path(self) -> Path:
        return self.db_dir / "journal.db"

    @computed_field
    @property
    def log_dir(self) -> Path:
        return self.db_dir / "logs"


class ServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "127.0.0.1"
    port: int = 5000
    credentials_path: Optional[Path] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    growth: GrowthSettings = Field(default_factory=GrowthSettings)
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
