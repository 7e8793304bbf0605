"""Configuration management for the task workflow engine.

Settings come from ``TASKFLOW_*`` environment variables (optionally loaded
from a ``.env`` file), named after the ``AppConfig`` fields:
``TASKFLOW_PORT=9000``, ``TASKFLOW_SMTP_HOST=smtp.example.com``. List
settings are comma separated.
"""

import os
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional
from pydantic import BaseModel, Field, field_validator

from .core.exceptions import ConfigurationError

ENV_PREFIX = "TASKFLOW_"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseModel):
    """Application configuration settings."""

    app_name: str = Field(default="Taskflow Engine", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    reload: bool = Field(default=False, description="Enable auto-reload in development")

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Root logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s%(context_suffix)s",
        description="Plain-text log format; %(context_suffix)s renders request and run IDs"
    )
    log_structured: bool = Field(default=False, description="Emit JSON log records")
    log_file: Optional[str] = Field(default=None, description="Rotating log file path")
    log_max_size: int = Field(default=10 * 1024 * 1024, description="Log file rotation size in bytes")
    log_backup_count: int = Field(default=5, description="Rotated log files to keep")

    enable_performance_monitoring: bool = Field(
        default=True,
        description="Install request tracing, logging and timing middleware"
    )
    slow_request_threshold: float = Field(default=5.0, description="Seconds after which a request is logged as slow")

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins allowed to call the API from a browser (the workflow editor)"
    )
    cors_methods: List[str] = Field(default=["GET", "POST", "OPTIONS"], description="CORS allowed methods")

    smtp_host: str = Field(default="smtp.gmail.com", description="SMTP server used by the send-email task")
    smtp_port: int = Field(default=465, description="SMTP SSL port used by the send-email task")
    http_timeout: float = Field(default=30.0, description="Default timeout of outbound HTTP tasks in seconds")

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator('port', 'smtp_port')
    @classmethod
    def validate_port(cls, value):
        if not 1 <= value <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return value

    @field_validator('http_timeout', 'slow_request_threshold')
    @classmethod
    def validate_positive(cls, value):
        if value <= 0:
            raise ValueError("Value must be positive")
        return value

    @property
    def is_production(self) -> bool:
        return not self.debug and not self.reload

    def get_uvicorn_config(self) -> Dict[str, Any]:
        """Keyword arguments for ``uvicorn.run``."""
        return {
            "host": self.host,
            "port": self.port,
            "reload": self.reload,
            "log_level": self.log_level.value.lower(),
            "access_log": self.debug,
        }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'AppConfig':
        """Build a configuration from ``TASKFLOW_<FIELD>`` variables; unset fields keep their defaults.

        Raises:
            ConfigurationError: If a variable holds a value the field rejects
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if field.annotation == List[str]:
                values[name] = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                values[name] = raw

        try:
            return cls(**values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, reading the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> AppConfig:
    """Load ``config_file`` (or ``./.env``) into the environment and rebuild the configuration."""
    global _config

    from dotenv import load_dotenv
    env_file = config_file or ".env"
    if os.path.exists(env_file):
        load_dotenv(env_file)

    _config = AppConfig.from_env()
    return _config


def reset_config():
    global _config
    _config = None


def validate_config(config: AppConfig) -> None:
    """Check settings that depend on each other or on the filesystem.

    Raises:
        ConfigurationError: If a setting cannot be honoured
    """
    if config.reload and not config.debug:
        raise ConfigurationError("Auto-reload requires debug mode", config_key="reload")

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir:
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError as e:
                raise ConfigurationError(f"Cannot create log directory {log_dir}: {e}", config_key="log_file")


def get_development_config() -> AppConfig:
    return AppConfig(debug=True, reload=True, log_level=LogLevel.DEBUG)


def get_production_config() -> AppConfig:
    """Production settings: JSON logs, no browser origins."""
    return AppConfig(log_level=LogLevel.INFO, log_structured=True, cors_origins=[])


def get_testing_config() -> AppConfig:
    """Settings for the test suite: quiet logs, no middleware, short HTTP timeouts."""
    return AppConfig(
        debug=True,
        log_level=LogLevel.WARNING,
        enable_performance_monitoring=False,
        http_timeout=5.0
    )
