"""bookrecon configuration management.

Loads configuration from environment variables with sensible defaults.
Money settings are Decimal so quotation arithmetic never touches floats.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration for the reference catalog service."""

    url: str = "sqlite+aiosqlite:///./bookrecon.db"
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class ApiConfig:
    """Remote catalog API the engine talks to."""

    base_url: str = "http://localhost:5050"
    timeout_seconds: float = 30.0


@dataclass
class QuotationConfig:
    """Quotation pricing defaults."""

    tax_rate: Decimal = Decimal("0.05")
    validity_days: int = 30
    default_currency: str = "USD"


@dataclass
class TypeaheadConfig:
    """Debounced suggestion lookups."""

    debounce_ms: int = 300
    min_chars: int = 2
    max_results: int = 10


@dataclass
class AppConfig:
    """Root application configuration."""

    db: DBConfig = field(default_factory=DBConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    quotation: QuotationConfig = field(default_factory=QuotationConfig)
    typeahead: TypeaheadConfig = field(default_factory=TypeaheadConfig)
    log_level: str = "INFO"
    json_logs: bool = False
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000"]
    )

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Every variable is optional. Numeric values that fail to parse raise
        ValueError so a broken deployment fails at startup, not mid-request.
        """
        raw_tax_rate = os.getenv("QUOTATION_TAX_RATE", "0.05")
        try:
            tax_rate = Decimal(raw_tax_rate)
        except InvalidOperation as exc:
            raise ValueError(f"QUOTATION_TAX_RATE is not a number: {raw_tax_rate!r}") from exc
        if tax_rate < 0:
            raise ValueError("QUOTATION_TAX_RATE must be non-negative")

        origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")

        return cls(
            db=DBConfig(
                url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./bookrecon.db"),
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            api=ApiConfig(
                base_url=os.getenv("API_BASE_URL", "http://localhost:5050").rstrip("/"),
                timeout_seconds=float(os.getenv("API_TIMEOUT_SECONDS", "30")),
            ),
            quotation=QuotationConfig(
                tax_rate=tax_rate,
                validity_days=int(os.getenv("QUOTATION_VALIDITY_DAYS", "30")),
                default_currency=os.getenv("DEFAULT_CURRENCY", "USD"),
            ),
            typeahead=TypeaheadConfig(
                debounce_ms=int(os.getenv("TYPEAHEAD_DEBOUNCE_MS", "300")),
                min_chars=int(os.getenv("TYPEAHEAD_MIN_CHARS", "2")),
                max_results=int(os.getenv("TYPEAHEAD_MAX_RESULTS", "10")),
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            json_logs=os.getenv("JSON_LOGS", "false").lower() == "true",
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None
