import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _parse_epoch(value: Any) -> Optional[datetime.datetime]:
    """Convert provider epoch seconds to local wall-clock time"""
    if value is None:
        return None
    return datetime.datetime.fromtimestamp(int(value))


@dataclass
class Location:
    """A registered point of interest tracked for weather sync.

    Locations are owned by the location registry. The sync orchestrator only
    reads them and stamps ``last_synced_at`` after a successful sync.

    Attributes:
        id: Registry identifier
        name: Display name (e.g., "Berlin, DE")
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees
        country_code: Optional two-letter country code
        created_at: When the location was registered
        last_synced_at: Time of the last successful sync, None if never synced
    """

    id: str
    name: str
    latitude: float
    longitude: float
    country_code: Optional[str] = None
    created_at: datetime.datetime = field(default_factory=datetime.datetime.now)
    last_synced_at: Optional[datetime.datetime] = None

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        synced = (
            self.last_synced_at.strftime("%Y-%m-%d %H:%M:%S")
            if self.last_synced_at
            else "never"
        )
        return (
            f"[{self.id}] {self.name} ({self.latitude:.4f}, {self.longitude:.4f})"
            f" - last synced: {synced}"
        )


@dataclass(frozen=True)
class Observation:
    """A single weather reading persisted for a location.

    Observations are created only by a successful sync, never mutated, and
    removed only by retention cleanup. Values are in the provider's metric
    units.

    Attributes:
        location_id: Identifier of the owning location
        temperature: Temperature in Celsius
        humidity: Relative humidity in percent
        pressure: Atmospheric pressure in hPa
        wind_speed: Wind speed in m/s, None if not reported
        wind_direction: Wind direction in degrees, None if not reported
        visibility: Visibility in meters, None if not reported
        condition_summary: Short condition code (e.g., "Clouds")
        condition_description: Condition text (e.g., "broken clouds")
        condition_icon: Provider icon id (e.g., "04d")
        data_timestamp: When the provider says the reading was taken
        record_timestamp: When this system wrote the observation
        id: Store-assigned identifier, None until inserted

    Business Rules:
        - record_timestamp orders history and drives retention
        - data_timestamp is informational only
    """

    location_id: str
    temperature: float
    humidity: int
    pressure: float
    record_timestamp: datetime.datetime
    wind_speed: Optional[float] = None
    wind_direction: Optional[int] = None
    visibility: Optional[int] = None
    condition_summary: Optional[str] = None
    condition_description: Optional[str] = None
    condition_icon: Optional[str] = None
    data_timestamp: Optional[datetime.datetime] = None
    id: Optional[str] = None

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        result = (
            f"Recorded at: {self.record_timestamp.strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"Temperature: {self.temperature}°C, Humidity: {self.humidity}%, "
            f"Pressure: {self.pressure} hPa"
        )
        if self.wind_speed is not None:
            result += f"\nWind: {self.wind_speed} m/s"
            if self.wind_direction is not None:
                result += f" from {self.wind_direction}°"
        if self.visibility is not None:
            result += f"\nVisibility: {self.visibility} m"
        if self.condition_summary:
            result += f"\nConditions: {self.condition_summary}"
            if self.condition_description:
                result += f" ({self.condition_description})"
        if self.data_timestamp:
            result += (
                f"\nProvider reading time: "
                f"{self.data_timestamp.strftime('%Y-%m-%d %H:%M:%S')}"
            )
        return result


@dataclass
class MainConditions:
    """Main-conditions block of a provider response."""

    temp: Optional[float] = None
    humidity: Optional[int] = None
    pressure: Optional[float] = None
    feels_like: Optional[float] = None
    temp_min: Optional[float] = None
    temp_max: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MainConditions":
        return cls(
            temp=data.get("temp"),
            humidity=data.get("humidity"),
            pressure=data.get("pressure"),
            feels_like=data.get("feels_like"),
            temp_min=data.get("temp_min"),
            temp_max=data.get("temp_max"),
        )


@dataclass
class Wind:
    speed: Optional[float] = None
    deg: Optional[int] = None
    gust: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Wind":
        return cls(speed=data.get("speed"), deg=data.get("deg"), gust=data.get("gust"))


@dataclass
class Condition:
    """One entry of the provider's condition list (e.g., "Rain", "light rain")."""

    id: Optional[int] = None
    main: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        return cls(
            id=data.get("id"),
            main=data.get("main"),
            description=data.get("description"),
            icon=data.get("icon"),
        )


@dataclass
class CurrentConditions:
    """Current-conditions response from the weather provider.

    Every block is independently optional. Whether a response is usable is
    decided when it is mapped to an Observation, not here.

    Attributes:
        main: Temperature, humidity and pressure block
        wind: Wind block
        conditions: Condition list, first entry is the primary condition
        visibility: Visibility in meters
        dt: Reading time as epoch seconds
        name: Provider's name for the place
    """

    main: Optional[MainConditions] = None
    wind: Optional[Wind] = None
    conditions: Optional[List[Condition]] = None
    visibility: Optional[int] = None
    dt: Optional[int] = None
    name: Optional[str] = None

    @property
    def data_timestamp(self) -> Optional[datetime.datetime]:
        return _parse_epoch(self.dt)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurrentConditions":
        """Create from a provider JSON payload, ignoring unknown fields"""
        main = data.get("main")
        wind = data.get("wind")
        weather = data.get("weather")
        return cls(
            main=MainConditions.from_dict(main) if isinstance(main, dict) else None,
            wind=Wind.from_dict(wind) if isinstance(wind, dict) else None,
            conditions=[Condition.from_dict(item) for item in weather]
            if isinstance(weather, list)
            else None,
            visibility=data.get("visibility"),
            dt=data.get("dt"),
            name=data.get("name"),
        )


@dataclass
class ForecastPeriod:
    """Represents a single 3-hour step of a 5-day forecast.

    Attributes:
        timestamp: Start of the forecast step (local wall-clock time)
        temperature: Temperature in Celsius
        feels_like: Perceived temperature in Celsius
        humidity: Relative humidity in percent
        pressure: Pressure in hPa
        wind_speed: Wind speed in m/s
        wind_direction: Wind direction in degrees
        condition_summary: Short condition code
        condition_description: Condition text
        precipitation_probability: Probability of precipitation, 0 to 1
    """

    timestamp: Optional[datetime.datetime]
    temperature: Optional[float]
    feels_like: Optional[float] = None
    humidity: Optional[int] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_direction: Optional[int] = None
    condition_summary: Optional[str] = None
    condition_description: Optional[str] = None
    precipitation_probability: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForecastPeriod":
        main = MainConditions.from_dict(data.get("main") or {})
        wind = Wind.from_dict(data.get("wind") or {})
        weather = data.get("weather") or []
        first = Condition.from_dict(weather[0]) if weather else Condition()
        return cls(
            timestamp=_parse_epoch(data.get("dt")),
            temperature=main.temp,
            feels_like=main.feels_like,
            humidity=main.humidity,
            pressure=main.pressure,
            wind_speed=wind.speed,
            wind_direction=wind.deg,
            condition_summary=first.main,
            condition_description=first.description,
            precipitation_probability=data.get("pop"),
        )

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        when = self.timestamp.strftime("%Y-%m-%d %H:%M") if self.timestamp else "?"
        result = f"{when}: {self.temperature}°C"
        if self.condition_description:
            result += f" - {self.condition_description}"
        if self.precipitation_probability is not None:
            result += f" (precipitation {self.precipitation_probability:.0%})"
        return result


@dataclass
class Forecast:
    """Forecast passthrough from the weather provider.

    Forecasts are never persisted; they are fetched on demand for a
    registered location.

    Attributes:
        periods: Forecast steps, ordered chronologically
        latitude: Location latitude in decimal degrees
        longitude: Location longitude in decimal degrees
        city_name: Provider's city name, if reported
        country: Provider's country code, if reported
        retrieved_at: When the forecast was fetched
    """

    periods: List[ForecastPeriod]
    latitude: float
    longitude: float
    city_name: Optional[str] = None
    country: Optional[str] = None
    retrieved_at: datetime.datetime = field(default_factory=datetime.datetime.now)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], latitude: float, longitude: float
    ) -> "Forecast":
        city = data.get("city") or {}
        return cls(
            periods=[
                ForecastPeriod.from_dict(item)
                for item in data.get("list") or []
                if isinstance(item, dict)
            ],
            latitude=latitude,
            longitude=longitude,
            city_name=city.get("name"),
            country=city.get("country"),
        )

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        if not self.periods:
            return "No forecast data available"

        header = (
            f"Forecast retrieved at: {self.retrieved_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
            f"Location: {self.city_name or 'unknown'} "
            f"({self.latitude:.4f}, {self.longitude:.4f})\n\n"
        )
        return header + "\n".join(period.to_display_string() for period in self.periods)


@dataclass
class SyncOutcome:
    """Result of syncing one location inside a batch."""

    location_id: str
    succeeded: bool
    observation_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SyncReport:
    """Per-location outcomes of a batch sync.

    A batch sync never fails as a whole; this report is the side channel
    that tells a fully successful batch apart from a partial one.
    """

    outcomes: List[SyncOutcome] = field(default_factory=list)
    started_at: datetime.datetime = field(default_factory=datetime.datetime.now)

    @property
    def succeeded(self) -> List[str]:
        return [o.location_id for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[str]:
        return [o.location_id for o in self.outcomes if not o.succeeded]

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        result = (
            f"Synced {len(self.succeeded)} of {len(self.outcomes)} location(s)"
        )
        for outcome in self.outcomes:
            if not outcome.succeeded:
                result += f"\nFailed {outcome.location_id}: {outcome.error}"
        return result


@dataclass
class CleanupReport:
    """Observations removed by one retention run."""

    cutoff: datetime.datetime
    deleted: Dict[str, int] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    def to_display_string(self) -> str:
        """Format for human-readable display"""
        result = (
            f"Deleted {self.total_deleted} observation(s) recorded before "
            f"{self.cutoff.strftime('%Y-%m-%d %H:%M:%S')}"
        )
        if self.failed:
            result += f"\nCleanup failed for: {', '.join(self.failed)}"
        return result
