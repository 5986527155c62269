"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from typing import Literal

from dotenv import load_dotenv

load_dotenv()

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    # Server settings
    host: str
    port: int
    database_url: str
    admin_token: str | None
    log_level: str

    # TMDB settings
    tmdb_bearer_token: str | None
    tmdb_language: str
    tmdb_region: str

    # LLM settings
    llm_enabled: bool
    llm_provider: Literal["openai", "anthropic"]
    llm_max_retries: int
    openai_api_key: str | None
    openai_model: str
    openai_api_url: str
    anthropic_api_key: str | None
    anthropic_model: str

    # Recommendation settings
    recs_min_history: int
    recs_cache_ttl_hours: float
    recs_request_spacing_ms: int
    recs_min_vote_count: int
    recs_max_results: int
    recs_fallback_limit: int

    # Daily completion quota
    quota_daily_movie: int
    quota_daily_tv: int
    quota_daily_total: int

    # Feedback
    feedback_log_max: int

    # Comparison sessions
    comparison_session_ttl_seconds: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        host = os.getenv("HOST", "0.0.0.0")
        port_str = os.getenv("PORT", "8000")
        try:
            port = int(port_str)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got: {port_str}")

        database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cinerank.db")
        admin_token = os.getenv("ADMIN_TOKEN") or None
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        tmdb_bearer_token = os.getenv("TMDB_BEARER_TOKEN") or None
        tmdb_language = os.getenv("TMDB_LANGUAGE", "en-US")
        tmdb_region = os.getenv("TMDB_REGION", "")

        openai_api_key = os.getenv("OPENAI_API_KEY") or None
        anthropic_api_key = os.getenv("ANTHROPIC_API_KEY") or None
        llm_provider = os.getenv(
            "LLM_PROVIDER", "anthropic" if anthropic_api_key else "openai"
        ).lower()
        if llm_provider not in ("openai", "anthropic"):
            raise ConfigurationError("LLM_PROVIDER must be 'openai' or 'anthropic'")

        llm_max_retries = _env_int("LLM_MAX_RETRIES", 1)
        if llm_max_retries < 1:
            llm_max_retries = 1

        return cls(
            host=host,
            port=port,
            database_url=database_url,
            admin_token=admin_token,
            log_level=log_level,
            tmdb_bearer_token=tmdb_bearer_token,
            tmdb_language=tmdb_language,
            tmdb_region=tmdb_region,
            llm_enabled=_env_bool("LLM_ENABLED", True),
            llm_provider=llm_provider,  # type: ignore[arg-type]
            llm_max_retries=llm_max_retries,
            openai_api_key=openai_api_key,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-mini"),
            openai_api_url=os.getenv("OPENAI_API_URL", OPENAI_CHAT_URL),
            anthropic_api_key=anthropic_api_key,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5-20251001"),
            recs_min_history=_env_int("RECS_MIN_HISTORY", 5),
            recs_cache_ttl_hours=_env_float("RECS_CACHE_TTL_HOURS", 2.0),
            recs_request_spacing_ms=_env_int("RECS_REQUEST_SPACING_MS", 1000),
            recs_min_vote_count=_env_int("RECS_MIN_VOTE_COUNT", 50),
            recs_max_results=_env_int("RECS_MAX_RESULTS", 20),
            recs_fallback_limit=_env_int("RECS_FALLBACK_LIMIT", 10),
            quota_daily_movie=_env_int("QUOTA_DAILY_MOVIE", 50),
            quota_daily_tv=_env_int("QUOTA_DAILY_TV", 50),
            quota_daily_total=_env_int("QUOTA_DAILY_TOTAL", 100),
            feedback_log_max=_env_int("FEEDBACK_LOG_MAX", 100),
            comparison_session_ttl_seconds=_env_int("COMPARISON_SESSION_TTL_SECONDS", 1800),
        )


config = Config.from_env()
