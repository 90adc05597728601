"""Configuration helpers for environment variables."""

from __future__ import annotations

import os
import logging

from dotenv import load_dotenv


logger = logging.getLogger(__name__)


_DEV_ENVS = {"dev", "local"}
_DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:4173",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:5174",
    "http://127.0.0.1:8080",
]


def _should_load_dotenv() -> bool:
    """Return whether local dotenv loading should run."""
    app_env = os.getenv("APP_ENV", "dev").strip().lower()
    return app_env in _DEV_ENVS


if _should_load_dotenv():
    load_dotenv()


def get_env(name: str, default: str | None = None) -> str | None:
    """Return a raw environment value or default."""
    return os.getenv(name, default)


def app_env() -> str:
    """Return the current application environment."""
    return (get_env("APP_ENV", "dev") or "dev").strip() or "dev"


def cors_allow_origins() -> list[str]:
    """Return CORS allowed origins from env with safe environment defaults."""
    raw_origins = get_env("CORS_ALLOW_ORIGINS", "") or ""
    parsed_origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]

    if parsed_origins:
        return parsed_origins

    if app_env().strip().lower() in _DEV_ENVS:
        return list(_DEV_CORS_ORIGINS)

    ui_origin = (get_env("UI_ORIGIN", "") or "").strip()
    if ui_origin:
        return [ui_origin]

    logger.warning(
        "cors_allow_origins_empty_in_prod app_env=%s; define CORS_ALLOW_ORIGINS or UI_ORIGIN",
        app_env(),
    )

    return []


def frontend_url() -> str:
    """Return the UI base URL used in password reset redirects."""
    value = (get_env("FRONTEND_URL", "") or "").strip().rstrip("/")
    return value or "http://localhost:3000"


def default_categories_cache_ttl_seconds() -> float:
    """Return how long default categories may be served from memory.

    Zero disables the cache so every lookup reads the store.
    """
    raw_value = (get_env("DEFAULT_CATEGORIES_CACHE_TTL_SECONDS", "") or "").strip()
    if not raw_value:
        return 0.0
    try:
        ttl = float(raw_value)
    except ValueError:
        logger.warning("default_categories_cache_ttl_invalid value=%s", raw_value)
        return 0.0
    return max(ttl, 0.0)


def supabase_url() -> str | None:
    """Return Supabase URL when configured."""
    return get_env("SUPABASE_URL")


def supabase_service_role_key() -> str | None:
    """Return Supabase service role key when configured."""
    return get_env("SUPABASE_SERVICE_ROLE_KEY")


def supabase_anon_key() -> str | None:
    """Return Supabase anon key when configured."""
    return get_env("SUPABASE_ANON_KEY")


def server_port() -> int:
    """Return the HTTP port for the API server."""
    raw_value = (get_env("PORT", "") or "").strip()
    try:
        return int(raw_value) if raw_value else 3000
    except ValueError:
        logger.warning("server_port_invalid value=%s; falling back to 3000", raw_value)
        return 3000
