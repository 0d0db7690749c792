"""
Application configuration loaded from environment variables.

Uses pydantic-settings for type-safe env var parsing with automatic
.env file loading. All secrets are injected via environment — never
hard-coded.

To extend: add new fields here and document them in .env.example.
See https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ─── Core ──────────────────────────────────────────────────────
    environment: str = "development"
    debug: bool = False

    # ─── CORS ──────────────────────────────────────────────────────
    # Comma-separated allowed origins for the map UI.
    cors_origins_str: str = "http://localhost:5173,http://localhost:3000"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins_str.split(",") if o.strip()]

    # ─── AI ────────────────────────────────────────────────────────
    # Get from https://aistudio.google.com/
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"

    # When True, all AI calls return canned mock responses.
    # Always True in tests; set False in production with a real key.
    ai_mock_mode: bool = True

    # ─── Upstream data sources ─────────────────────────────────────
    # These degrade gracefully when not set (see sources/ adapters).
    mapbox_token: str = ""  # https://account.mapbox.com/
    newsapi_key: str = ""  # https://newsapi.org/

    # Transport timeout applied to every outbound httpx client.
    http_timeout_seconds: float = 10.0

    # ─── Pipeline ──────────────────────────────────────────────────
    cache_ttl_seconds: float = 30.0
    scatter_radius_km: float = 5.0
    news_limit: int = 200
    gdelt_limit: int = 250  # GDELT DOC API hard ceiling per request

    # Opt-in LLM location extraction for posts the keyword filter rejected.
    llm_region_filter: bool = False

    # Synthetic posts for local development without API keys.
    mock_sources: bool = False

    # ─── Firehose (Bluesky Jetstream) ──────────────────────────────
    firehose_url: str = "wss://jetstream2.us-east.bsky.network/subscribe"
    firehose_autostart: bool = False
    firehose_reconnect_delay_seconds: float = 5.0
    firehose_buffer_size: int = 1000
    firehose_max_age_seconds: float = 3600.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Don't fail on unknown env vars
    )


# Module-level singleton — import this everywhere instead of instantiating Settings()
settings = Settings()
