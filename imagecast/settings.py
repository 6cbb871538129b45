"""Settings for the image relay, loaded from environment variables."""

import os
from enum import Enum
from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):  # type: ignore[misc]
    """
    Main settings class.

    Every value has a default so the relay starts without any environment
    configuration. Values that depend on the environment (log level and
    console format) are filled in by `_apply_environment_defaults` unless
    they were set explicitly.
    """

    model_config = SettingsConfigDict(case_sensitive=True)

    # Environment configuration
    ENV: Environment = Environment.DEV

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Publish endpoint settings
    MAX_REQUEST_BODY_SIZE: int = 10 * 1024 * 1024

    # Viewer (WebSocket) settings
    WS_SEND_TIMEOUT_SECONDS: float = 5.0
    VIEWER_RECONNECT_DELAY_MS: int = 2000

    # Liveness sweep settings
    LIVENESS_SWEEP_ENABLED: bool = False
    LIVENESS_SWEEP_INTERVAL_SECONDS: float = 30.0

    # Logging settings
    LOG_FILE_PATH: str = "logs/logging_errors.log"
    LOG_EXCLUDED_PATHS: list[str] = ["/metrics", "/health"]
    LOG_LEVEL: str = "INFO"
    LOG_CONSOLE_FORMAT: Literal["human", "json"] = "human"

    @field_validator("WS_SEND_TIMEOUT_SECONDS", "LIVENESS_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Timeouts and intervals must be strictly positive."""
        if v <= 0:
            raise ValueError("value must be greater than zero")
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings with environment-specific defaults."""
        super().__init__(**kwargs)
        self._apply_environment_defaults()

    def _apply_environment_defaults(self) -> None:
        """Apply environment-specific configuration defaults."""
        if self.ENV == Environment.PRODUCTION:
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "json"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "WARNING"

        elif self.ENV == Environment.STAGING:
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "json"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "INFO"

        else:  # Environment.DEV
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "human"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "DEBUG"


app_settings = Settings()
