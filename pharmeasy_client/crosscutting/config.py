"""
Name: Client Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the development backend

Collaborators:
  - container.py: builds the API client, pollers and stores from settings
  - crosscutting/logger.py: reads log level and format
  - infrastructure/services/retry.py: reads retry attempts/delays

Constraints:
  - No business logic - pure configuration
  - Only API_BASE_URL is required to talk to a real backend; everything else
    has a sane default

Notes:
  - Singleton via lru_cache (tests call get_settings.cache_clear())
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_API_BASE_URL = "http://localhost:5000/api"


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    Attributes:
        api_base_url: Base URL of the marketplace API
        app_env: Application environment (development/production/test)
        log_level: Logging level name (default: INFO)
        log_json: Emit JSON logs (default: True)
        http_timeout_seconds: Per-request timeout (default: 30)
        sos_poll_interval_seconds: SOS poller cadence (default: 30)
        sos_radius_km: Radius sent to /pharmacy/sos/nearby (default: 10)
        sos_nearby_threshold_km: Distance for the "nearby" badge (default: 5)
        notification_poll_interval_seconds: Unread-count cadence (default: 60)
        notification_page_size: Page size for the on-demand inbox (default: 20)
        violation_history_size: Ring buffer cap for violations (default: 50)
        state_history_size: Ring buffer cap for session transitions (default: 50)
        credential_store_path: JSON file for durable credentials ("" = memory)
        retry_max_attempts: Attempts for session validation calls
        retry_base_delay_seconds: Initial backoff delay
        retry_max_delay_seconds: Backoff ceiling
    """

    api_base_url: str = DEFAULT_API_BASE_URL

    # Environment
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # HTTP
    http_timeout_seconds: float = 30.0

    # Polling
    sos_poll_interval_seconds: float = 30.0
    sos_radius_km: float = 10.0
    sos_nearby_threshold_km: float = 5.0
    notification_poll_interval_seconds: float = 60.0
    notification_page_size: int = 20

    # Auditing
    violation_history_size: int = 50
    state_history_size: int = 50

    # Durable storage
    credential_store_path: str = ""

    # Retry/Resilience
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 0.5
    retry_max_delay_seconds: float = 5.0

    @field_validator("api_base_url")
    @classmethod
    def api_base_url_must_be_http(cls, v: str) -> str:
        url = (v or "").strip() or DEFAULT_API_BASE_URL
        if not url.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return url.rstrip("/")

    @field_validator(
        "sos_poll_interval_seconds",
        "notification_poll_interval_seconds",
        "http_timeout_seconds",
    )
    @classmethod
    def intervals_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals and timeouts must be greater than 0")
        return v

    @field_validator("violation_history_size", "state_history_size")
    @classmethod
    def history_sizes_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("history sizes must be greater than 0")
        return v

    @field_validator("notification_page_size")
    @classmethod
    def page_size_in_range(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("notification_page_size must be between 1 and 100")
        return v

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()
