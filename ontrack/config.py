from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from typing import Optional, List, Union, Any

from urllib.parse import urlparse

from ontrack.constants import (
    DEFAULT_CACHE_FRESHNESS_MS,
    DEFAULT_DASHBOARD_MAX_ATTEMPTS,
    DEFAULT_HTTP_ATTEMPT_TIMEOUT_SECONDS,
    DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_PUBLIC_MAX_ATTEMPTS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
)
from ontrack.domain.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Fetch layer settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    base_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("ONTRACK_BASE_URL"),
    )
    api_prefix: str = Field(
        default="/api", validation_alias=AliasChoices("ONTRACK_API_PREFIX")
    )
    login_path: str = Field(
        default="/login", validation_alias=AliasChoices("ONTRACK_LOGIN_PATH")
    )
    app_name: str = "OnTrack"
    app_version: str = "1.0.0"

    # Durable client-side state; empty keeps everything in memory
    storage_path: Optional[str] = Field(
        default=".ontrack/storage.json",
        validation_alias=AliasChoices("ONTRACK_STORAGE_PATH"),
    )

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOG_FILE_PATH")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("LOG_PRETTY_CONSOLE")
    )
    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["token", "authorization", "password"],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS"),
    )

    cache_freshness_ms: int = Field(
        default=DEFAULT_CACHE_FRESHNESS_MS,
        validation_alias=AliasChoices("CACHE_FRESHNESS_MS"),
    )

    # Timeouts
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("REQUEST_TIMEOUT_SECONDS"),
    )
    http_attempt_timeout_seconds: float = Field(
        default=DEFAULT_HTTP_ATTEMPT_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("HTTP_ATTEMPT_TIMEOUT_SECONDS"),
    )
    http_connect_timeout: float = Field(
        default=DEFAULT_HTTP_CONNECT_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT"),
    )

    # Retry policies
    dashboard_max_attempts: int = Field(
        default=DEFAULT_DASHBOARD_MAX_ATTEMPTS,
        validation_alias=AliasChoices("DASHBOARD_MAX_ATTEMPTS"),
    )
    public_max_attempts: int = Field(
        default=DEFAULT_PUBLIC_MAX_ATTEMPTS,
        validation_alias=AliasChoices("PUBLIC_MAX_ATTEMPTS"),
    )
    retry_base_delay: float = Field(
        default=DEFAULT_RETRY_BASE_DELAY_SECONDS,
        validation_alias=AliasChoices("RETRY_BASE_DELAY"),
    )
    retry_jitter: float = Field(
        default=0.0, validation_alias=AliasChoices("RETRY_JITTER")
    )

    @field_validator("redact_log_fields")
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists.

        Args:
            v: Input value which can be a string or list

        Returns:
            List of stripped, non-empty items
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("storage_path")
    @classmethod
    def empty_path_means_memory(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.strip() == "":
            return None
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings and validate URLs and retry budgets.

        Raises:
            ConfigurationError: If a setting is unusable
        """
        super().__init__(**kwargs)
        self._validate_base_url()
        self._validate_budgets()

    def _validate_base_url(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
            raise ConfigurationError(
                "ONTRACK_BASE_URL must be an absolute http(s) URL.",
                config_key="base_url",
            )
        if not self.api_prefix.startswith("/"):
            raise ConfigurationError(
                "ONTRACK_API_PREFIX must start with '/'.", config_key="api_prefix"
            )

    def _validate_budgets(self) -> None:
        errors = []
        if self.dashboard_max_attempts < 1:
            errors.append("DASHBOARD_MAX_ATTEMPTS must be at least 1.")
        if self.public_max_attempts < 1:
            errors.append("PUBLIC_MAX_ATTEMPTS must be at least 1.")
        if self.request_timeout_seconds <= 0:
            errors.append("REQUEST_TIMEOUT_SECONDS must be positive.")
        if self.cache_freshness_ms < 0:
            errors.append("CACHE_FRESHNESS_MS must not be negative.")
        if errors:
            raise ConfigurationError("\n".join(errors))
