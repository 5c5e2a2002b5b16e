"""Configuration settings for the Tweedekansje alert application."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv


@dataclass(slots=True)
class PollingConfig:
    """Settings related to polling the Tweedekansje catalog."""

    interval_seconds: int = 900
    """How frequently to run a polling pass."""

    max_concurrent_requests: int = 4
    """Upper bound on concurrent store fetches to avoid hitting rate limits."""


@dataclass(slots=True)
class CatalogConfig:
    """Settings for the IKEA circular (Tweedekansje) offer API."""

    search_url: str = "https://web-api.ikea.com/circular/circular-asis/offers/grouped/search"
    product_base_url: str = "https://www.ikea.com/nl/nl/products"
    language_code: str = "nl"
    page_size: int = 100
    max_pages: int = 20
    timeout_seconds: int = 10
    client_id: str = "4863e7d2-1428-4324-890b-ae5dede24fc6"
    user_agent: str = "Mozilla/5.0 (compatible; TweedekansjeAlert/1.0)"


@dataclass(slots=True)
class RoutingConfig:
    """Settings for the routing and geocoding providers."""

    osrm_url: str = "https://router.project-osrm.org/route/v1/driving"
    nominatim_url: str = "https://nominatim.openstreetmap.org/search"
    user_agent: str = "tweedekansje-alerts/1.0"
    timeout_seconds: int = 10
    default_fuel_price: float = 2.0
    """Price per liter assumed when the owner has not supplied one."""


@dataclass(slots=True)
class EmailConfig:
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    sender: str = "IKEA Tweedekansje Alerts <noreply@tweedekansje-alerts.nl>"
    site_url: str = "http://localhost:5000"


@dataclass(slots=True)
class AuthConfig:
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    cron_secret: Optional[str] = None
    cron_disabled: bool = False


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    data_directory: Path = field(default_factory=lambda: Path("data"))
    database_path: Optional[Path] = None
    polling: PollingConfig = field(default_factory=PollingConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)

    @property
    def resolved_database_path(self) -> Path:
        return self.database_path or (self.data_directory / "tweedekansje.sqlite3")

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.data_directory.mkdir(parents=True, exist_ok=True)
        self.resolved_database_path.parent.mkdir(parents=True, exist_ok=True)


DEFAULT_CONFIG = AppConfig()


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config(env_file: Optional[Path] = None) -> AppConfig:
    """Build an ``AppConfig`` from the environment.

    Values from ``env_file`` (default: ``.env`` in the working directory) are
    loaded first without overriding variables that are already set.
    """

    load_dotenv(dotenv_path=env_file or Path.cwd() / ".env")

    config = AppConfig()
    if os.getenv("APP_ENV") == "production":
        config.environment = "production"
    if os.getenv("DATA_DIRECTORY"):
        config.data_directory = Path(os.environ["DATA_DIRECTORY"])
    if os.getenv("DATABASE_PATH"):
        config.database_path = Path(os.environ["DATABASE_PATH"])

    config.polling.interval_seconds = int(os.getenv("POLL_INTERVAL_SECONDS", config.polling.interval_seconds))
    config.polling.max_concurrent_requests = int(
        os.getenv("MAX_CONCURRENT_REQUESTS", config.polling.max_concurrent_requests)
    )

    config.email.smtp_server = os.getenv("SMTP_SERVER", config.email.smtp_server)
    config.email.smtp_port = int(os.getenv("SMTP_PORT", config.email.smtp_port))
    config.email.username = os.getenv("EMAIL_USER") or None
    config.email.password = os.getenv("EMAIL_PASSWORD") or None
    config.email.sender = os.getenv("EMAIL_FROM") or config.email.username or config.email.sender
    config.email.site_url = os.getenv("SITE_URL", config.email.site_url)

    config.auth.supabase_url = os.getenv("SUPABASE_URL") or None
    config.auth.supabase_anon_key = os.getenv("SUPABASE_ANON_KEY") or None
    config.auth.cron_secret = os.getenv("CRON_SECRET") or None
    config.auth.cron_disabled = _env_flag("CRON_TEMP_DISABLED")
    return config
