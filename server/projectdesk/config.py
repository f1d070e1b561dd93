# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env")

    # ── Runtime mode ─────────────────────────────────────────────────────────
    # Governs error detail suppression and the localhost origin allowance.
    # Anything other than "production" returns raw error messages + tracebacks.
    environment: Literal["development", "test", "production"] = "production"

    # ── Request guard ────────────────────────────────────────────────────────
    rate_limit_window_ms: int = 60_000
    rate_limit_max_requests: int = 100
    rate_limit_sweep_probability: float = 0.01

    # Coarse per-IP ceiling on every route (slowapi format, e.g. "600/minute").
    http_rate_limit: str = "600/minute"
    http_rate_limit_enabled: bool = True

    # Comma-separated origins for CORS (e.g. "https://app.example.com").
    # Empty string = deny all cross-origin requests (secure default).
    allowed_origins: str = ""

    # ── Sessions ─────────────────────────────────────────────────────────────
    # Bearer token → user id, JSON in SESSION_TOKENS. Tokens are issued by the
    # identity provider; this service only resolves them.
    session_tokens: dict[str, str] = {}

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.rate_limit_window_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
