import datetime
from typing import Any, Optional

from servers.weather_sync.domain.exceptions import MalformedPayload
from servers.weather_sync.domain.models import CurrentConditions, Observation


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_number(name: str, value: Any) -> Any:
    if value is not None and not _is_number(value):
        raise MalformedPayload(f"{name} must be a number, got {value!r}")
    return value


def to_observation(
    location_id: str,
    conditions: CurrentConditions,
    now: Optional[datetime.datetime] = None,
) -> Observation:
    """Convert a current-conditions response into a new Observation.

    Temperature, humidity and pressure are required. Wind, visibility and
    condition fields are copied only when the provider sent them; only the
    first entry of the condition list is used.

    Args:
        location_id: Owning location
        conditions: Provider response
        now: Record timestamp, defaults to the current time

    Raises:
        MalformedPayload: If the main-conditions block or one of its
            required fields is missing, or a measurement is not numeric
    """
    main = conditions.main
    if main is None:
        raise MalformedPayload("Response is missing the main-conditions block")

    missing = [
        name
        for name, value in (
            ("temp", main.temp),
            ("humidity", main.humidity),
            ("pressure", main.pressure),
        )
        if value is None
    ]
    if missing:
        raise MalformedPayload(
            f"Main-conditions block is missing {', '.join(missing)}"
        )

    invalid = [
        f"{name}={value!r}"
        for name, value, valid in (
            ("temp", main.temp, _is_number(main.temp)),
            ("humidity", main.humidity, _is_integer(main.humidity)),
            ("pressure", main.pressure, _is_number(main.pressure)),
        )
        if not valid
    ]
    if invalid:
        raise MalformedPayload(
            f"Main-conditions block has invalid values: {', '.join(invalid)}"
        )

    wind_speed = wind_direction = None
    if conditions.wind is not None:
        wind_speed = _optional_number("wind.speed", conditions.wind.speed)
        wind_direction = _optional_number("wind.deg", conditions.wind.deg)

    summary = description = icon = None
    if conditions.conditions:
        first = conditions.conditions[0]
        summary = first.main
        description = first.description
        icon = first.icon

    return Observation(
        location_id=location_id,
        temperature=main.temp,
        humidity=main.humidity,
        pressure=main.pressure,
        wind_speed=wind_speed,
        wind_direction=wind_direction,
        visibility=_optional_number("visibility", conditions.visibility),
        condition_summary=summary,
        condition_description=description,
        condition_icon=icon,
        data_timestamp=conditions.data_timestamp,
        record_timestamp=now or datetime.datetime.now(),
    )
