# ruff: noqa: E501
import os
from typing import Annotated, Any
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Core Settings ---
    ENVIRONMENT: Annotated[str, Field(default="development", description="Application environment (e.g., 'development', 'staging', 'production').")]

    # --- Logging ---
    LOG_LEVEL: Annotated[str, Field(default="DEBUG", description="Logging level for the application (e.g., DEBUG, INFO, WARNING).")]

    # --- Candidate Source API ---
    API_HOST: Annotated[str, Field(default="http://127.0.0.1", description="Hostname or IP address of the API serving exercise candidates.")]
    HOST_API_PORT: Annotated[str, Field(default="8000", description="Port of the API serving exercise candidates.")]
    API_URL: Annotated[str | None, Field(default=None, description="Canonical URL of the Candidate Source API. Auto-derived if not set.")]
    API_KEY: Annotated[str, Field(default="", description="API key sent to the Candidate Source API. Must be set in production.")]

    # --- HTTP Client ---
    API_MAX_RETRIES: int = Field(default=1, description="Maximum number of retries for failing outbound API calls.")
    API_RETRY_INITIAL_DELAY: float = Field(default=1.0, description="Initial delay in seconds for API call retries.")
    API_RETRY_BACKOFF_FACTOR: float = Field(default=2.0, description="Factor by which to increase delay between API retries.")
    API_RETRY_MAX_DELAY: float = Field(default=10.0, description="Maximum delay in seconds between API retries.")
    API_TIMEOUT: int = Field(default=10, description="Default timeout in seconds for outbound API calls.")
    API_MAX_CONNECTIONS: int = Field(default=100, description="Maximum number of connections for the HTTP client pool.")
    API_MAX_KEEPALIVE_CONNECTIONS: int = Field(default=20, description="Maximum number of keep-alive connections for the HTTP client.")

    # --- Cache (Redis) ---
    REDIS_URL: Annotated[str, Field(default="redis://redis:6379", description="Full connection URL for Redis.")]
    REDIS_DB: Annotated[int, Field(default=1, description="Redis database index holding exercise suggestion snapshots.")]
    REDIS_SOCKET_TIMEOUT: Annotated[float, Field(default=5.0, description="Socket timeout in seconds for Redis commands.")]
    REDIS_SOCKET_CONNECT_TIMEOUT: Annotated[float, Field(default=3.0, description="Connect timeout in seconds for Redis.")]

    # --- Exercise Suggestions ---
    SUGGESTIONS_CACHE_BACKEND: Annotated[str, Field(default="redis", description="Durable snapshot storage backend: 'redis' or 'memory'.")]
    SUGGESTIONS_CACHE_KEY: Annotated[str, Field(default="exercise_suggestions", description="Redis hash holding one snapshot blob per user.")]
    SUGGESTIONS_CACHE_TTL: Annotated[int, Field(default=60 * 5, description="Freshness window in seconds before a snapshot is refetched.")]
    SUGGESTIONS_LIMIT: Annotated[int, Field(default=8, description="Default number of suggestions returned for a query.")]
    SUGGESTIONS_DEBOUNCE_MS: Annotated[int, Field(default=100, description="Delay in milliseconds after the last keystroke before searching.")]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @field_validator("SUGGESTIONS_CACHE_BACKEND", mode="before")
    @classmethod
    def _normalize_backend(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        if text not in {"redis", "memory"}:
            raise ValueError(f"Unsupported SUGGESTIONS_CACHE_BACKEND: {value}")
        return text

    @field_validator("SUGGESTIONS_CACHE_TTL", "SUGGESTIONS_LIMIT", "SUGGESTIONS_DEBOUNCE_MS")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must be >= 0")
        return value

    @model_validator(mode="after")
    def _compute_derived_fields(self) -> "Settings":
        """Fill in derived URLs and validate secrets for production."""
        environment = str(self.ENVIRONMENT).lower()
        in_docker = os.path.exists("/.dockerenv") or os.getenv("KUBERNETES_SERVICE_HOST") is not None

        if not self.API_URL:
            self.API_URL = self._derive_api_url()
        self.API_URL = self.normalize_service_url(self.API_URL)
        self._configure_redis(in_docker)

        if environment == "production":
            self._require_secret("API_KEY", self.API_KEY)

        return self

    def _configure_redis(self, in_docker: bool) -> None:
        # host processes cannot resolve the docker service name
        if not in_docker:
            normalized = (self.REDIS_URL or "").strip().lower()
            if not normalized or normalized.startswith("redis://redis"):
                self.REDIS_URL = "redis://127.0.0.1:6379"

    def _derive_api_url(self) -> str:
        api_host_raw = str(self.API_HOST).strip()
        prepared_host = api_host_raw if "://" in api_host_raw else f"http://{api_host_raw}"
        parsed = urlsplit(prepared_host)
        port = parsed.port or (int(self.HOST_API_PORT) if str(self.HOST_API_PORT).isdigit() else None)
        netloc = parsed.hostname or "127.0.0.1"
        if port:
            netloc = f"{netloc}:{port}"
        return urlunsplit((parsed.scheme or "http", netloc, "/", "", ""))

    @staticmethod
    def _require_secret(name: str, value: Any) -> None:
        bad_values = {"", "changeme", "admin", "password", "placeholder"}
        if str(value or "").strip() in bad_values:
            raise ValueError(f"{name} must be set in production")

    @staticmethod
    def normalize_service_url(url: str) -> str:
        """Add a missing scheme and make sure the path ends with a slash."""
        raw = (url or "").strip()
        if not raw:
            return url
        parsed = urlsplit(raw if "://" in raw else f"http://{raw}")
        path = parsed.path or "/"
        if not path.endswith("/"):
            path = f"{path}/"
        return urlunsplit((parsed.scheme or "http", parsed.netloc, path, parsed.query, parsed.fragment))


settings = Settings()  # noqa
