"""
Normalization of raw availability configuration into ``WeeklyAvailability``.

Configuration arrives from storage in more than one shape:

    canonical: {"monday": {"active": true, "slots": [{"start": "08:00", "end": "12:00"}]}}
    legacy:    {"monday": {"active": true, "start": "08:00", "end": "18:00"}}

The old settings screen also stored a ``weekdays`` group key standing for
Monday to Friday. Normalizing an already canonical structure is a no-op.
"""

import datetime
import json
import logging
import re
from typing import Any, Dict, Mapping, Optional

import pendulum

from .clock import InstantLike, to_instant
from .exceptions import ConfigurationError
from .models import WEEKDAYS, DaySchedule, TimeRange, WeeklyAvailability

logger = logging.getLogger(__name__)

DEFAULT_START = "08:00"
DEFAULT_END = "18:00"
WEEKDAY_GROUP_KEY = "weekdays"

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_TRUE_STRINGS = {"true", "1", "yes", "on"}


def parse_time(value: Any) -> datetime.time:
    """
    Parse a ``HH:MM`` string into a local time.

    Raises:
        ConfigurationError: If the value is not a valid 24h clock time
    """
    if isinstance(value, datetime.time):
        return pendulum.time(value.hour, value.minute)

    if not isinstance(value, str):
        raise ConfigurationError(f"Expected a HH:MM string, got {value!r}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise ConfigurationError(f"Invalid time {value!r}, expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ConfigurationError(f"Time {value!r} is outside the 24h clock")

    return pendulum.time(hour, minute)


def parse_range(raw: Any) -> TimeRange:
    if isinstance(raw, TimeRange):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Expected a {{start, end}} mapping, got {raw!r}")

    start = parse_time(raw.get("start"))
    end = parse_time(raw.get("end"))

    try:
        return TimeRange(start=start, end=end)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def normalize_day(raw: Any) -> DaySchedule:
    """
    Normalize one day entry into a ``DaySchedule``.

    When ``slots`` is absent on an active day a single range is synthesized
    from the legacy ``start``/``end`` fields, each defaulting independently
    to 08:00 and 18:00.
    """
    if raw is None:
        return DaySchedule()
    if isinstance(raw, DaySchedule):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"Expected a mapping for the day, got {raw!r}")

    active = _coerce_flag(raw.get("active", False))
    raw_slots = raw.get("slots")

    if raw_slots is None:
        if not active:
            return DaySchedule(active=False)
        raw_slots = [{
            "start": raw.get("start") or DEFAULT_START,
            "end": raw.get("end") or DEFAULT_END,
        }]

    if not isinstance(raw_slots, (list, tuple)):
        raise ConfigurationError(f"Expected a list of ranges, got {raw_slots!r}")

    return DaySchedule(active=active, slots=tuple(parse_range(item) for item in raw_slots))


def normalize_availability(raw: Any, strict: bool = False) -> WeeklyAvailability:
    """
    Normalize a raw availability configuration.

    Args:
        raw: Mapping or JSON string as stored by the backend, or an existing
            ``WeeklyAvailability`` (returned unchanged)
        strict: Propagate per-day errors instead of treating the day as inactive

    Returns:
        WeeklyAvailability covering all seven weekdays

    Raises:
        ConfigurationError: If the configuration as a whole is unusable, or a
            day is malformed and ``strict`` is set
    """
    if isinstance(raw, WeeklyAvailability):
        return raw
    if raw is None:
        return WeeklyAvailability()

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except ValueError as exc:
            raise ConfigurationError(f"Availability configuration is not valid JSON: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ConfigurationError("Availability configuration must be a mapping of weekdays")

    entries: Dict[str, Any] = {str(key).strip().lower(): value for key, value in raw.items()}
    group = entries.pop(WEEKDAY_GROUP_KEY, None)

    unknown = sorted(key for key in entries if key not in WEEKDAYS)
    if unknown:
        logger.warning("Ignoring unknown availability key(s): %s", ", ".join(unknown))

    days: Dict[str, DaySchedule] = {}
    for index, name in enumerate(WEEKDAYS):
        raw_day = entries.get(name)
        if raw_day is None and group is not None and index < 5:
            raw_day = group

        try:
            days[name] = normalize_day(raw_day)
        except ConfigurationError as exc:
            if strict:
                raise ConfigurationError(f"{name}: {exc}") from exc
            logger.warning("Treating %s as inactive, invalid availability: %s", name, exc)
            days[name] = DaySchedule()

    return WeeklyAvailability(days=days)


def is_available_at(
    availability: WeeklyAvailability,
    instant: Optional[InstantLike] = None,
    timezone: str = "America/Sao_Paulo",
) -> bool:
    """
    Check whether the service is on duty at a given instant.

    The instant is converted to the tenant zone first; the end of each range
    is inclusive, so a 08:00-18:00 window still reports available at 18:00.
    """
    local = to_instant(instant).in_timezone(timezone)
    day = availability.for_date(local.date())

    if not day.active:
        return False

    current = pendulum.time(local.hour, local.minute)
    return any(time_range.contains(current, inclusive_end=True) for time_range in day.slots)
