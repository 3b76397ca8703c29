from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

# .env at the project root: livepush/core/config.py -> livepush/core -> livepush -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

DEFAULT_CORS_ORIGINS = "http://localhost:3000,https://studentnewspaper.org"


class Settings(BaseSettings):
    # Web Push (VAPID) key pair; the public half is what browsers subscribe with
    vapid_public_key: str = Field("", validation_alias=AliasChoices("vapid_public_key", "vapid_public"))
    vapid_private_key: str = Field("", validation_alias=AliasChoices("vapid_private_key", "vapid_private"))
    vapid_subject: str = "mailto:digital@studentnewspaper.org"
    push_ttl: int = 86400
    push_page_size: int = 20
    # Subscription store (Hasura) and content store (bunker) GraphQL endpoints
    hasura_url: str = "https://hasura.studentnewspaper.org/v1/graphql"
    hasura_secret: str = ""
    bunker_url: str = "https://bunker.studentnewspaper.org/graphql"
    http_timeout_seconds: float = 10.0
    # "graphql" talks to Hasura; "sql" keeps devices/subscriptions in DATABASE_URL
    store_backend: Literal["graphql", "sql"] = "graphql"
    database_url: str = "sqlite:///./livepush.db"
    port: int = 8001
    # comma separated
    cors_origins: str = DEFAULT_CORS_ORIGINS
    rate_limit_per_minute: int = 60
    log_level: str = "INFO"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("vapid_public_key", "vapid_private_key", "hasura_secret", mode="before")
    @classmethod
    def strip_secret(cls, v: str | None) -> str:
        """Trailing newlines from copied keys break VAPID signing."""
        return (v or "").strip()

    def cors_origins_list(self) -> list[str]:
        if not self.cors_origins or self.cors_origins.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def check_required(self) -> None:
        """Raise ConfigurationError when push keys or the store credential are absent."""
        missing = []
        if not self.vapid_public_key:
            missing.append("VAPID_PUBLIC_KEY")
        if not self.vapid_private_key:
            missing.append("VAPID_PRIVATE_KEY")
        if self.store_backend == "graphql" and not self.hasura_secret:
            missing.append("HASURA_SECRET")
        if missing:
            raise ConfigurationError(missing)


settings = Settings()
