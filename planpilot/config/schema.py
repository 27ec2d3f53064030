from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from planpilot.constants import DEFAULT_BUSY_TIMEOUT_MS, DEFAULT_HISTORY_PATH

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    home: Optional[str] = None  # Explicit Claude home; wins over --cwd resolution
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got: {v}")
        return v


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    level: str = "WARNING"
    file: Optional[str] = None

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize to an upper-case loguru level name."""
        normalized = v.strip().upper()
        if normalized not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Expected one of {sorted(_LOG_LEVELS)}")
        return normalized


class HistoryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    path: str = DEFAULT_HISTORY_PATH


class MarkdownConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    sync: bool = True


class PlanpilotConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    store: StoreConfig = StoreConfig()
    logging: LoggingConfig = LoggingConfig()
    history: HistoryConfig = HistoryConfig()
    markdown: MarkdownConfig = MarkdownConfig()
