"""Tourgate configuration: upstream credentials, retry policy and service settings."""

from urllib.parse import parse_qs, urlparse, urlunparse

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Korea Tourism Organization open API (KorService2)
    tour_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("TOUR_API_KEY", "NEXT_PUBLIC_TOUR_API_KEY", "tour_api_key"),
    )
    tour_api_base_url: str = "https://apis.data.go.kr/B551011/KorService2"
    tour_mobile_os: str = "ETC"
    tour_mobile_app: str = "MyTrip"

    @model_validator(mode="after")
    def _strip_api_key(self) -> "Settings":
        """Strip whitespace/newlines from the service key: common paste error."""
        if self.tour_api_key and self.tour_api_key != self.tour_api_key.strip():
            self.tour_api_key = self.tour_api_key.strip()
        return self

    # Retrying HTTP client
    request_timeout: float = 10.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_server_errors: bool = False

    # API call metrics
    metrics_capacity: int = 100
    slow_call_threshold: float = 3.0

    # Statistics + listing
    stats_cache_ttl: float = 3600.0
    stats_top_n: int = 3
    page_size: int = 15

    # Bookmark store
    database_url: str = "sqlite+aiosqlite:///./tourgate.db"
    database_require_ssl: bool = False

    @model_validator(mode="after")
    def _normalize_database_url(self) -> "Settings":
        """Rewrite Postgres URLs for SQLAlchemy+asyncpg.

        asyncpg does not accept libpq query params (sslmode, channel_binding)
        through the URL, so they are stripped and sslmode=require is kept
        as database_require_ssl for the engine.
        """
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql+asyncpg://", 1)
        elif url.startswith("postgresql://") and "+asyncpg" not in url:
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("postgresql+asyncpg://"):
            parsed = urlparse(url)
            if parsed.query:
                params = parse_qs(parsed.query)
                if "sslmode" in params and params["sslmode"][0] in ("require", "verify-ca", "verify-full"):
                    self.database_require_ssl = True
                url = urlunparse(parsed._replace(query=""))

        self.database_url = url
        return self

    # MLflow tracing
    mlflow_tracking_uri: str = "sqlite:///mlruns/mlflow.db"
    mlflow_experiment_name: str = "tourgate"

    # Logging
    log_json: bool = True
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "extra": "ignore", "populate_by_name": True}


settings = Settings()
