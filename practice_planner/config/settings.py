"""
Runtime configuration for the planner service.

Values come from the environment (or a local .env file) and are checked
by pydantic when the process starts. Nothing here is required in mock
mode; against a real Snowflake account the credentials become mandatory,
see validate_required_fields().
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Service settings.

    Every field maps to an upper-case environment variable of the same
    name (api_keys -> API_KEYS). List-valued settings are comma-separated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # HTTP surface
    api_title: str = "Practice Planner API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Accepted X-API-Key values; several may be live while keys rotate.",
    )
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Browser origins allowed to call the API; '*' only for local work.",
    )
    log_level: str = Field(default="INFO", description="Root log level name.")

    # Persistence
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Keep all data in an in-process SQLite database instead of Snowflake.",
    )
    snowflake_account: str = Field(default="", description="Snowflake account locator.")
    snowflake_user: str = Field(default="", description="User the service logs in as.")
    snowflake_password: str = Field(default="", description="Password login, if not using a key pair.")
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM file holding the key-pair login key.",
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="The same key, base64-encoded, for hosts without a writable disk.",
    )
    snowflake_database: str = Field(default="PRACTICE_PLANNER", description="Database holding the planner tables.")
    snowflake_schema: str = Field(default="PLANNING", description="Schema holding the planner tables.")
    snowflake_warehouse: str = Field(default="COMPUTE_WH", description="Warehouse queries run on.")
    snowflake_role: Optional[str] = Field(default=None, description="Role to assume after login.")

    # Planning rules
    min_confirmed_dogs: int = Field(
        default=4,
        description="Fewer confirmed dogs than this blocks a practice from being ready.",
    )
    max_months_ahead: int = Field(
        default=3,
        description="Practices scheduled further out than this get a warning.",
    )
    default_ideal_sets_per_dog: float = Field(
        default=2,
        description="Used when a club has no ideal-sets-per-dog setting of its own.",
    )

    # Live updates
    subscriber_queue_size: int = Field(
        default=100,
        description="Events buffered per live subscriber before new ones are dropped.",
    )
    event_keepalive_seconds: float = Field(
        default=15,
        description="Idle interval after which an event stream sends a keepalive comment.",
    )
    edit_debounce_seconds: float = Field(
        default=1.5,
        description="How long clients wait for typing to settle before sending an edit.",
    )

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return _split_csv(self.cors_origins)

    def validate_required_fields(self) -> list[str]:
        """
        Names of environment variables that still need a value.

        Empty in mock mode. Pydantic cannot express this on its own
        because what is required depends on another field.
        """
        if self.snowflake_mock_mode:
            return []

        has_login = bool(
            self.snowflake_password
            or self.snowflake_private_key_path
            or self.snowflake_private_key_base64
        )
        required = (
            ("SNOWFLAKE_ACCOUNT", bool(self.snowflake_account)),
            ("SNOWFLAKE_USER", bool(self.snowflake_user)),
            ("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH", has_login),
        )
        return [name for name, present in required if not present]


@lru_cache()
def get_settings() -> Settings:
    """
    The process-wide Settings, read once.

    Tests either override this dependency or call get_settings.cache_clear().
    """
    return Settings()
