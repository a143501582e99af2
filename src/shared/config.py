"""Application settings loaded from environment variables.

APP_ENV selects the environment overlay:
  - "development" → SQLite file database, fake adapters unless credentials are set
  - "test"        → in-memory database (tests configure their own engine)
  - "production"  → real adapters; credentials are required
"""

import os
from dataclasses import dataclass, field

DEFAULT_FALLBACK_RATES = {
    "USD_NGN": 1500.0,
    "NGN_USD": 1 / 1500,
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    database_url: str = "sqlite:///tailormint.db"
    app_base_url: str = "http://localhost:3000"

    # Pricing policy
    settlement_currency: str = "USD"
    markup_rate: float = 0.30
    min_commission: float = 10.00

    # Exchange rates
    rate_cache_ttl: float = 15 * 60
    rate_store_max_age: float = 24 * 60 * 60
    rate_provider_timeout: float = 5.0
    exchange_rate_api_key: str | None = None
    fallback_rates: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_FALLBACK_RATES))

    # Payment processor
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    payment_timeout: float = 10.0

    # Notification channel
    notify_url: str | None = None
    notify_timeout: float = 10.0
    same_recipient_delay: float = 0.5

    # Order workflow
    shipping_buffer_weeks: int = 2
    default_completion_weeks: int = 2

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def load_settings() -> Settings:
    """Build a Settings instance from the current environment."""
    env = (os.getenv("APP_ENV") or "development").lower()
    default_db = "sqlite://" if env == "test" else "sqlite:///tailormint.db"

    return Settings(
        env=env,
        database_url=os.getenv("DATABASE_URL", default_db),
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000").rstrip("/"),
        settlement_currency=os.getenv("SETTLEMENT_CURRENCY", "USD").upper(),
        markup_rate=_env_float("MARKUP_RATE", 0.30),
        min_commission=_env_float("MIN_COMMISSION", 10.00),
        rate_cache_ttl=_env_float("RATE_CACHE_TTL", 15 * 60),
        rate_store_max_age=_env_float("RATE_STORE_MAX_AGE", 24 * 60 * 60),
        rate_provider_timeout=_env_float("RATE_PROVIDER_TIMEOUT", 5.0),
        exchange_rate_api_key=os.getenv("EXCHANGE_RATE_API_KEY") or None,
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        payment_timeout=_env_float("PAYMENT_TIMEOUT", 10.0),
        notify_url=os.getenv("NOTIFY_URL") or None,
        notify_timeout=_env_float("NOTIFY_TIMEOUT", 10.0),
        same_recipient_delay=_env_float("SAME_RECIPIENT_DELAY", 0.5),
        shipping_buffer_weeks=_env_int("SHIPPING_BUFFER_WEEKS", 2),
        default_completion_weeks=_env_int("DEFAULT_COMPLETION_WEEKS", 2),
    )


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process settings, loading them on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = load_settings()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop cached settings so the next access re-reads the environment."""
    global _current_settings
    _current_settings = None
