import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import load_dotenv

from servers.weather_sync.domain.exceptions import ConfigError

DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"


@dataclass(frozen=True)
class WeatherApiConfig:
    """Settings for the weather sync service.

    Built once at startup and injected into the provider client and the
    scheduler; nothing reads the environment after that.

    Attributes:
        api_key: OpenWeatherMap API key
        base_url: Provider base URL, without trailing slash
        request_timeout: Seconds before a provider request is abandoned
        data_dir: Directory holding the JSON stores
        sync_interval_seconds: Period of the scheduled batch sync
        cleanup_interval_seconds: Period of the scheduled retention cleanup
        sync_concurrency: Locations synced in parallel by a batch sync
        scheduler_enabled: Start the periodic jobs with the server
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 10.0
    data_dir: Path = Path("./data")
    sync_interval_seconds: float = 6 * 60 * 60
    cleanup_interval_seconds: float = 24 * 60 * 60
    sync_concurrency: int = 1
    scheduler_enabled: bool = True

    @property
    def locations_file(self) -> Path:
        return self.data_dir / "locations.json"

    @property
    def observations_file(self) -> Path:
        return self.data_dir / "observations.json"

    def __repr__(self) -> str:
        return (
            f"WeatherApiConfig(base_url={self.base_url!r}, "
            f"request_timeout={self.request_timeout}, data_dir={str(self.data_dir)!r})"
        )


def _number(environ: Mapping[str, str], name: str, default, cast=float):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive finite number, got {raw!r}")
    return value


def _flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def load_config(
    env_file: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WeatherApiConfig:
    """Load configuration from the environment.

    Args:
        env_file: Optional .env file loaded into the process environment
            first (existing variables win)
        environ: Mapping to read instead of ``os.environ``

    Raises:
        ConfigError: If the API key is missing or a value is invalid
    """
    if env_file is not None:
        load_dotenv(env_file)
    if environ is None:
        environ = os.environ

    api_key = environ.get("OPENWEATHER_API_KEY", "").strip()
    if not api_key:
        raise ConfigError("OPENWEATHER_API_KEY is not set")

    base_url = environ.get("OPENWEATHER_BASE_URL", "").strip() or DEFAULT_BASE_URL

    return WeatherApiConfig(
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        request_timeout=_number(environ, "WEATHER_REQUEST_TIMEOUT", 10.0),
        data_dir=Path(environ.get("WEATHER_DATA_DIR", "").strip() or "./data"),
        sync_interval_seconds=_number(
            environ, "WEATHER_SYNC_INTERVAL_SECONDS", 6 * 60 * 60
        ),
        cleanup_interval_seconds=_number(
            environ, "WEATHER_CLEANUP_INTERVAL_SECONDS", 24 * 60 * 60
        ),
        sync_concurrency=_number(environ, "WEATHER_SYNC_CONCURRENCY", 1, cast=int),
        scheduler_enabled=_flag(environ, "WEATHER_SCHEDULER_ENABLED", True),
    )
