"""Configuration models describing opbot settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_INVALID_DATABASE_CHARS = frozenset('/\\. "$\x00')


class OpbotBaseModel(BaseModel):
    """Shared configuration for opbot Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class DatabaseSettings(OpbotBaseModel):
    """MongoDB connection and layout options.

    Attributes:
        uri: MongoDB connection string.
        name: Database holding the bot collections.
        subscribers_collection: Collection storing one document per subscriber.
        chapters_collection: Collection storing the latest chapter record.
        server_selection_timeout_ms: How long the driver waits for a reachable server.
        operation_timeout_seconds: Default deadline applied to each store operation.
        app_name: Client name reported to the server.
    """

    uri: str = "mongodb://localhost:27017"
    name: str = "op-bot-data"
    subscribers_collection: str = "subscribers"
    chapters_collection: str = "chapters"
    server_selection_timeout_ms: int = Field(default=5_000, ge=0)
    operation_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    app_name: str = "opbot"

    @field_validator("name")
    @classmethod
    def _check_database_name(cls, value: str) -> str:
        if not value or any(char in value for char in _INVALID_DATABASE_CHARS):
            raise ValueError(
                f"database name {value!r} must be non-empty and avoid any of "
                f"{''.join(sorted(_INVALID_DATABASE_CHARS))!r}"
            )
        return value


class LoggingSettings(OpbotBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value


class CLIOptions(OpbotBaseModel):
    """CLI behavior defaults.

    Attributes:
        json_default: Whether commands emit JSON unless told otherwise.
    """

    json_default: bool = False


class OpbotConfig(OpbotBaseModel):
    """Top-level configuration struct for opbot.

    Attributes:
        database: Database connection settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "OpbotBaseModel",
    "DatabaseSettings",
    "LoggingSettings",
    "CLIOptions",
    "OpbotConfig",
]
