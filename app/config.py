"""
app/config.py — Pydantic BaseSettings configuration
Env vars: port, public base URL, n8n webhook URLs (edit + action),
Gemini API key, TTL / sweep / rate-limit policy.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholders shipped as defaults; treated as "not configured" at startup.
PLACEHOLDER_WEBHOOK_URL = "https://your-n8n-instance.com/webhook/your-webhook-id"
PLACEHOLDER_ACTION_WEBHOOK_URL = "https://your-n8n-instance.com/webhook/your-action-webhook-id"
PLACEHOLDER_VALUES = {
    "",
    "change-me-immediately",
    "your-api-key-here",
    "your-gemini-api-key",
    PLACEHOLDER_WEBHOOK_URL,
    PLACEHOLDER_ACTION_WEBHOOK_URL,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ────────────────────────────────────────────────────────────
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    # Externally reachable URL used to build edit links
    base_url: str = "http://localhost:3000"

    # ── Downstream workflow (n8n) webhooks ────────────────────────────────────
    n8n_webhook_url: str = PLACEHOLDER_WEBHOOK_URL
    n8n_action_webhook_url: str = PLACEHOLDER_ACTION_WEBHOOK_URL
    webhook_timeout_seconds: float = 15.0
    webhook_source: str = "email-editor"

    # ── Google Gemini rewrite provider ────────────────────────────────────────
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    rewrite_timeout_seconds: float = 30.0
    rewrite_max_output_tokens: int = 2048
    rewrite_temperature: float = 0.7

    # ── Request lifecycle ─────────────────────────────────────────────────────
    request_ttl_hours: int = 24
    store_sweep_interval_seconds: float = 3600.0
    request_id_bytes: int = 8

    # ── Rate limiting (limits-style rate strings) ─────────────────────────────
    create_rate_limit: str = "10/minute"
    limiter_sweep_interval_seconds: float = 300.0
    rewrite_rate_limit: str = "20/minute"

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("request_id_bytes")
    @classmethod
    def validate_id_bytes(cls, v: int) -> int:
        if v < 8:
            raise ValueError("request_id_bytes must be at least 8")
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def is_placeholder(value: str) -> bool:
    """True when a setting still holds its shipped placeholder (or is blank)."""
    return value.strip() in PLACEHOLDER_VALUES


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance. Use this everywhere."""
    return Settings()
