"""
Domain models for weekly availability, bookable slots and reviewable requests.
"""

from dataclasses import dataclass, field
import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Type

from pendulum import DateTime

WEEKDAYS: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

WEEKDAY_LABELS = {
    0: "Segunda-feira",
    1: "Terça-feira",
    2: "Quarta-feira",
    3: "Quinta-feira",
    4: "Sexta-feira",
    5: "Sábado",
    6: "Domingo",
}


def format_time(value: datetime.time) -> str:
    """Render a local time as HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_of_day(value: datetime.time) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class TimeRange:
    """
    A (start, end) pair on a 24h clock, belonging to one weekday.

    Invariant: start must be before end. Ranges never cross midnight; an
    overnight window has to be declared as two ranges on two days.
    """
    start: datetime.time
    end: datetime.time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Start time {format_time(self.start)} must be before end time {format_time(self.end)}"
            )

    def contains(self, value: datetime.time, inclusive_end: bool = False) -> bool:
        """Check if a local time falls inside the range."""
        if inclusive_end:
            return self.start <= value <= self.end
        return self.start <= value < self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_time(self.start), "end": format_time(self.end)}

    def __str__(self) -> str:
        return f"{format_time(self.start)} - {format_time(self.end)}"


@dataclass(frozen=True)
class DaySchedule:
    """
    Availability for a single weekday.

    An active day may legitimately have no ranges; it then yields no slots.
    """
    active: bool = False
    slots: Tuple[TimeRange, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "slots", tuple(self.slots))

    def is_bookable(self) -> bool:
        return self.active and bool(self.slots)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active": self.active,
            "slots": [time_range.to_dict() for time_range in self.slots],
        }


@dataclass(frozen=True)
class WeeklyAvailability:
    """
    Seven day-buckets keyed by lowercase English weekday name.

    Days missing from ``days`` are treated as inactive.
    """
    days: Mapping[str, DaySchedule] = field(default_factory=dict)

    # Mapping fields cannot be hashed
    __hash__ = None

    def __post_init__(self):
        unknown = [name for name in self.days if name not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday name(s): {', '.join(unknown)}")

        complete = {name: self.days.get(name, DaySchedule()) for name in WEEKDAYS}
        object.__setattr__(self, "days", MappingProxyType(complete))

    def for_weekday(self, name: str) -> DaySchedule:
        return self.days[name.lower()]

    def for_date(self, day: datetime.date) -> DaySchedule:
        """Look up the schedule of the weekday a calendar date falls on."""
        return self.days[WEEKDAYS[day.weekday()]]

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Canonical storage shape, accepted unchanged by the normalizer."""
        return {name: self.days[name].to_dict() for name in WEEKDAYS}


@dataclass(frozen=True, order=True)
class Slot:
    """
    A candidate bookable (date, time) pair. Never persisted on its own.
    """
    date: datetime.date
    time: datetime.time

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Dia-da-semana, DD/MM/YYYY | HH:MM
        """
        weekday = WEEKDAY_LABELS[self.date.weekday()]
        return f"{weekday}, {self.date.strftime('%d/%m/%Y')} | {format_time(self.time)}"

    def __str__(self) -> str:
        return f"{self.date.isoformat()} {format_time(self.time)}"


class RequestKind(str, Enum):
    DAY_OFF = "DAY_OFF"
    APPOINTMENT = "APPOINTMENT"
    INTERPRETER = "INTERPRETER"
    MEDIATION = "MEDIATION"
    COMPLAINT = "COMPLAINT"


class ReviewStatus(str, Enum):
    """Binary review used by day-off, appointment and interpreter requests."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is not ReviewStatus.PENDING


class MediationStatus(str, Enum):
    """Mediation cases close with one of three outcomes."""
    PENDENTE = "PENDENTE"
    ACORDO = "ACORDO"
    SEM_ACORDO = "SEM_ACORDO"
    ENCAMINHAMENTO = "ENCAMINHAMENTO"

    @property
    def is_terminal(self) -> bool:
        return self is not MediationStatus.PENDENTE


class ComplaintStatus(str, Enum):
    """Complaints pass through an explicit under-review state."""
    PENDENTE = "PENDENTE"
    EM_ANALISE = "EM_ANALISE"
    RESOLVIDO = "RESOLVIDO"
    DESCARTADO = "DESCARTADO"

    @property
    def is_terminal(self) -> bool:
        return self in (ComplaintStatus.RESOLVIDO, ComplaintStatus.DESCARTADO)


STATUS_TYPES: Dict[RequestKind, Type[Enum]] = {
    RequestKind.DAY_OFF: ReviewStatus,
    RequestKind.APPOINTMENT: ReviewStatus,
    RequestKind.INTERPRETER: ReviewStatus,
    RequestKind.MEDIATION: MediationStatus,
    RequestKind.COMPLAINT: ComplaintStatus,
}


class Role(str, Enum):
    MASTER = "MASTER"
    RH = "RH"
    LIDER = "LIDER"
    COLABORADOR = "COLABORADOR"


@dataclass(frozen=True)
class Actor:
    """The user performing a submission or a review."""
    id: str
    role: str
    company_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "role", str(getattr(self.role, "value", self.role)).upper())

    @property
    def is_master(self) -> bool:
        return self.role == Role.MASTER.value


@dataclass(frozen=True)
class Request:
    """
    Generic case wrapper for day-off, appointment, interpreter, mediation
    and complaint requests.

    Invariants:
    - ``status`` belongs to the status type of ``kind``
    - ``resolved_by``/``resolved_at`` are set iff the status is terminal
    - ``date``/``time`` never change once submitted
    """
    id: str
    kind: RequestKind
    requester: str
    date: datetime.date
    status: Enum
    created_at: DateTime
    time: Optional[datetime.time] = None
    company_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None

    __hash__ = None

    def __post_init__(self):
        status_type = STATUS_TYPES[self.kind]
        if not isinstance(self.status, status_type):
            raise ValueError(
                f"Status {self.status!r} is not a valid {self.kind.value} status"
            )

        resolved_fields = (self.resolved_by is not None, self.resolved_at is not None)
        if self.status.is_terminal and not all(resolved_fields):
            raise ValueError(
                f"Terminal status {self.status.value} requires resolved_by and resolved_at"
            )
        if not self.status.is_terminal and any(resolved_fields):
            raise ValueError(
                f"Non-terminal status {self.status.value} cannot carry resolution metadata"
            )

        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def slot(self) -> Optional[Slot]:
        """The (date, time) this request references, if it carries a time."""
        if self.time is None:
            return None
        return Slot(date=self.date, time=self.time)

    @property
    def duration_minutes(self) -> Optional[int]:
        value = self.payload.get("duration_minutes")
        if value in (None, ""):
            return None
        return int(value)

    @property
    def modality(self) -> str:
        return str(self.payload.get("modality") or "").upper()


@dataclass(frozen=True)
class TransitionEvent:
    """Decision-history entry emitted after a status change is applied."""
    request_id: str
    kind: RequestKind
    previous_status: Enum
    status: Enum
    actor_id: str
    at: DateTime
    reason: Optional[str] = None
