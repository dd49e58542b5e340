"""
Wire codec between backend JSON and domain requests.

The backend names statuses differently per feature (Portuguese and English
synonyms side by side). Both directions go through the explicit tables below
so an unexpected value fails loudly instead of silently matching nothing.
"""

import datetime
import re
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type

import pendulum
from pendulum import Date, DateTime

from ..domain.models import (
    STATUS_TYPES,
    ComplaintStatus,
    MediationStatus,
    Request,
    RequestKind,
    ReviewStatus,
    format_time,
)

INBOUND_STATUS: Dict[Type[Enum], Dict[str, Enum]] = {
    ReviewStatus: {
        "PENDING": ReviewStatus.PENDING,
        "PENDENTE": ReviewStatus.PENDING,
        "APPROVED": ReviewStatus.APPROVED,
        "APROVADO": ReviewStatus.APPROVED,
        "REJECTED": ReviewStatus.REJECTED,
        "RECUSADO": ReviewStatus.REJECTED,
        "REJEITADO": ReviewStatus.REJECTED,
    },
    MediationStatus: {status.value: status for status in MediationStatus},
    ComplaintStatus: {
        **{status.value: status for status in ComplaintStatus},
        # Intermediate review steps of the complaint screen
        "VALIDADO": ComplaintStatus.EM_ANALISE,
        "ENCAMINHADO_RH": ComplaintStatus.EM_ANALISE,
    },
}

_SCHEDULE_VOCABULARY = {
    ReviewStatus.PENDING: "PENDENTE",
    ReviewStatus.APPROVED: "APROVADO",
    ReviewStatus.REJECTED: "RECUSADO",
}

OUTBOUND_STATUS: Dict[RequestKind, Dict[Enum, str]] = {
    RequestKind.DAY_OFF: _SCHEDULE_VOCABULARY,
    RequestKind.APPOINTMENT: _SCHEDULE_VOCABULARY,
    RequestKind.INTERPRETER: {
        ReviewStatus.PENDING: "PENDENTE",
        ReviewStatus.APPROVED: "APPROVED",
        ReviewStatus.REJECTED: "REJECTED",
    },
    RequestKind.MEDIATION: {status: status.value for status in MediationStatus},
    RequestKind.COMPLAINT: {status: status.value for status in ComplaintStatus},
}

# Wire names that do not follow plain camelCase <-> snake_case conversion
_INBOUND_KEYS = {
    "duration": "duration_minutes",
    "notes": "note",
}
_OUTBOUND_KEYS = {
    "duration_minutes": "duration",
}

# Top-level fields of the original feature records that belong in the payload
_PAYLOAD_FIELDS = (
    "adminNotes",
    "meetingLink",
    "modality",
    "duration",
    "durationMinutes",
    "theme",
    "description",
    "reason",
    "resultDetails",
    "resolution",
    "confidentiality",
    "severity",
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")

FALLBACK_RESOLVER = "system"


def to_snake(key: str) -> str:
    if key in _INBOUND_KEYS:
        return _INBOUND_KEYS[key]
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def to_camel(key: str) -> str:
    if key in _OUTBOUND_KEYS:
        return _OUTBOUND_KEYS[key]
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def decode_status(kind: RequestKind, value: Any) -> Enum:
    """
    Map a backend status string onto the kind's status enum.

    Raises:
        ValueError: If the string is not a known synonym for that kind
    """
    status_type = STATUS_TYPES[RequestKind(kind)]
    raw = str(value or "").strip().upper()

    try:
        return INBOUND_STATUS[status_type][raw]
    except KeyError:
        raise ValueError(f"Unknown {RequestKind(kind).value} status from backend: {value!r}") from None


def encode_status(kind: RequestKind, status: Enum) -> str:
    return OUTBOUND_STATUS[RequestKind(kind)][status]


def parse_date(value: Any) -> Date:
    """
    Read a calendar date without applying any timezone offset.

    The backend serializes dates as ``YYYY-MM-DD`` or as midnight UTC
    timestamps; only the date prefix is meaningful, converting the timestamp
    would shift it to the previous day west of Greenwich.
    """
    if isinstance(value, datetime.datetime):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, datetime.date):
        return pendulum.date(value.year, value.month, value.day)

    text = str(value or "").strip()
    if not _DATE_PREFIX.match(text):
        raise ValueError(f"Invalid calendar date from backend: {value!r}")

    return pendulum.from_format(text[:10], "YYYY-MM-DD").date()


def parse_time(value: Any) -> Optional[datetime.time]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime.time):
        return pendulum.time(value.hour, value.minute)

    parts = str(value).strip().split(":")
    if len(parts) < 2 or not all(part.isdigit() for part in parts[:2]):
        raise ValueError(f"Invalid time from backend: {value!r}")

    return pendulum.time(int(parts[0]), int(parts[1]))


def parse_instant(value: Any) -> Optional[DateTime]:
    if value in (None, ""):
        return None
    if isinstance(value, DateTime):
        return value
    if isinstance(value, datetime.datetime):
        return pendulum.instance(value)
    return pendulum.parse(str(value))


def parse_duration(value: Any) -> int:
    """Read a booking length in whole minutes."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration from backend: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        raise ValueError(f"Invalid duration from backend: {value!r}")
    return int(text)


def _requester_id(raw: Mapping[str, Any]) -> str:
    requester = raw.get("requester")
    if isinstance(requester, Mapping):
        requester = requester.get("id") or requester.get("email") or requester.get("name")
    return str(raw.get("requesterId") or requester or raw.get("requesterName") or "")


def decode_payload(raw: Mapping[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for key in _PAYLOAD_FIELDS:
        if raw.get(key) is not None:
            payload[to_snake(key)] = raw[key]

    nested = raw.get("payload")
    if isinstance(nested, Mapping):
        payload.update({to_snake(str(key)): value for key, value in nested.items()})

    if payload.get("duration_minutes") not in (None, ""):
        payload["duration_minutes"] = parse_duration(payload["duration_minutes"])

    return payload


def encode_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {to_camel(key): value for key, value in payload.items() if value is not None}


def decode_request(raw: Mapping[str, Any], kind: Optional[RequestKind] = None) -> Request:
    """
    Build a domain Request from backend JSON.

    Records in a terminal status that predate resolution metadata get it
    backfilled from ``updatedAt``/``createdAt`` and ``decidedById``.

    Raises:
        ValueError: If the record cannot be interpreted
    """
    try:
        request_kind = RequestKind(str(raw.get("kind") or getattr(kind, "value", kind)).upper())
    except ValueError as exc:
        raise ValueError(f"Unknown request kind from backend: {raw.get('kind')!r}") from exc

    status = decode_status(request_kind, raw.get("status"))
    created_at = parse_instant(raw.get("createdAt")) or pendulum.now("UTC")
    updated_at = parse_instant(raw.get("updatedAt"))
    payload = decode_payload(raw)

    resolved_by = resolved_at = None
    if status.is_terminal:
        resolved_at = parse_instant(raw.get("resolvedAt")) or updated_at or created_at
        resolved_by = str(raw.get("resolvedBy") or raw.get("decidedById") or FALLBACK_RESOLVER)

    resolution_notes = raw.get("resolutionNotes")
    if resolution_notes is None:
        for name in ("resolution", "result_details", "admin_notes"):
            if payload.get(name):
                resolution_notes = payload[name]
                break

    company_id = raw.get("companyId")

    return Request(
        id=str(raw.get("id") or ""),
        kind=request_kind,
        requester=_requester_id(raw),
        date=parse_date(raw.get("date")),
        time=parse_time(raw.get("time") or raw.get("startTime")),
        status=status,
        created_at=created_at,
        company_id=str(company_id) if company_id is not None else None,
        payload=payload,
        resolution_notes=resolution_notes,
        resolved_by=resolved_by,
        resolved_at=resolved_at,
        updated_at=updated_at,
    )


def encode_submission(
    kind: RequestKind,
    date: datetime.date,
    time: Optional[datetime.time],
    payload: Mapping[str, Any],
    requester: Optional[str] = None,
) -> Dict[str, Any]:
    """Body of ``POST requests``."""
    body: Dict[str, Any] = {
        "kind": RequestKind(kind).value,
        "date": date.isoformat(),
        "payload": encode_payload(payload),
    }
    if time is not None:
        body["time"] = format_time(time)
    if requester:
        body["requesterId"] = requester
    return body


def encode_update(request: Request) -> Dict[str, Any]:
    """Body of ``PATCH requests/{id}``: the status plus kind-specific fields."""
    body = encode_payload(request.payload)
    body["status"] = encode_status(request.kind, request.status)
    if request.resolution_notes is not None:
        body["resolutionNotes"] = request.resolution_notes
    return body
