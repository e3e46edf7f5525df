"""Service configuration: config.json with environment overrides"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .core.types import Credentials

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://domaine-de-pipangaille.amenitiz.io"


@dataclass(slots=True)
class AmenitizConfig:
    """Back-office and browser settings"""

    base_url: str = DEFAULT_BASE_URL
    email: str | None = None
    password: str | None = None
    headless: bool = True
    screenshots: bool = False
    executable_path: str | None = None
    locale: str = "fr"

    @property
    def login_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.locale}/admin/dashboard"

    @property
    def arrivals_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.locale}/admin/booking-manager/arrivals"

    @property
    def credentials(self) -> Credentials:
        return Credentials(email=self.email, password=self.password)


@dataclass(slots=True)
class RefreshConfig:
    interval_seconds: float = 600
    cache_ttl_seconds: float = 600
    two_factor_timeout_seconds: float = 300


@dataclass(slots=True)
class StorageConfig:
    data_dir: Path = Path("data")
    session_dir: Path = Path("session")
    screenshot_dir: Path = Path("screenshots")
    retention_days: float = 7
    export_formats: list[str] = field(default_factory=lambda: ["json", "txt"])


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass(slots=True)
class ServiceConfig:
    amenitiz: AmenitizConfig = field(default_factory=AmenitizConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_file: Path | None = None


def _parse_bool(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _parse_number(name: str, value, kind=float):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {name}: {value!r}")


def _load_file(config_path: str | Path | None) -> dict:
    if config_path is None:
        return {}

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {config_path}")
    return data


def load_config(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> ServiceConfig:
    """Load configuration from a JSON file, then apply environment overrides

    Args:
        config_path: Path to config.json, or None for defaults only
        environ: Environment mapping (defaults to os.environ)

    Returns:
        ServiceConfig instance
    """
    data = _load_file(config_path)
    env = os.environ if environ is None else environ

    site = data.get("amenitiz") or {}
    refresh = data.get("refresh") or {}
    storage = data.get("storage") or {}
    server = data.get("server") or {}

    amenitiz = AmenitizConfig(
        base_url=env.get("AMENITIZ_BASE_URL") or site.get("base_url") or DEFAULT_BASE_URL,
        email=env.get("AMENITIZ_EMAIL") or site.get("email") or None,
        password=env.get("AMENITIZ_PASSWORD") or site.get("password") or None,
        headless=_parse_bool(env.get("HEADLESS", site.get("headless", True))),
        screenshots=_parse_bool(env.get("SCREENSHOT", site.get("screenshots", False))),
        executable_path=env.get("PLAYWRIGHT_EXECUTABLE_PATH")
        or site.get("executable_path"),
        locale=site.get("locale", "fr"),
    )

    refresh_config = RefreshConfig(
        interval_seconds=_parse_number(
            "refresh.interval_seconds", refresh.get("interval_seconds", 600)
        ),
        cache_ttl_seconds=_parse_number(
            "refresh.cache_ttl_seconds", refresh.get("cache_ttl_seconds", 600)
        ),
        two_factor_timeout_seconds=_parse_number(
            "refresh.two_factor_timeout_seconds",
            refresh.get("two_factor_timeout_seconds", 300),
        ),
    )
    if refresh_config.interval_seconds <= 0:
        raise ValueError("refresh.interval_seconds must be positive")

    storage_config = StorageConfig(
        data_dir=Path(env.get("DATA_DIR") or storage.get("data_dir", "data")),
        session_dir=Path(env.get("SESSION_DIR") or storage.get("session_dir", "session")),
        screenshot_dir=Path(
            env.get("SCREENSHOT_DIR") or storage.get("screenshot_dir", "screenshots")
        ),
        retention_days=_parse_number(
            "DATA_RETENTION_DAYS",
            env.get("DATA_RETENTION_DAYS", storage.get("retention_days", 7)),
        ),
        export_formats=list(storage.get("export_formats", ["json", "txt"])),
    )

    server_config = ServerConfig(
        host=server.get("host", "0.0.0.0"),
        port=_parse_number("PORT", env.get("PORT", server.get("port", 3000)), int),
    )

    log_file = data.get("log_file")
    config = ServiceConfig(
        amenitiz=amenitiz,
        refresh=refresh_config,
        storage=storage_config,
        server=server_config,
        log_file=Path(log_file) if log_file else None,
    )

    if amenitiz.email is None or amenitiz.password is None:
        logger.warning("Amenitiz credentials not configured; only saved sessions can log in")
    return config
