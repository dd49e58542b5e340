"""
Request lifecycle: per-kind state machines and the controller that applies
reviewer transitions to requests.

    Day-off / appointment:  PENDING -> APPROVED | REJECTED
    Interpreter:            PENDING -> APPROVED | REJECTED  (+ payload rules)
    Mediation:              PENDENTE -> ACORDO | SEM_ACORDO | ENCAMINHAMENTO
    Complaint:              PENDENTE -> EM_ANALISE -> RESOLVIDO | DESCARTADO

A transition is either applied completely or not at all; the input request
is never modified.
"""

import datetime
import logging
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Type

from .clock import InstantLike, to_instant
from .exceptions import AuthorizationError, InvalidTransitionError, ValidationError
from .models import (
    Actor,
    ComplaintStatus,
    MediationStatus,
    Request,
    RequestKind,
    ReviewStatus,
    Role,
    TransitionEvent,
)

logger = logging.getLogger(__name__)

TransitionListener = Callable[[TransitionEvent], None]

# Payload keys holding the free text recorded as resolution notes, by priority
NARRATIVE_FIELDS = ("resolution", "result_details", "admin_notes", "reason", "note")

# Payload keys a reviewer may set; everything else stays as submitted
REVIEW_FIELDS = NARRATIVE_FIELDS + ("meeting_link",)


@dataclass(frozen=True)
class KindPolicy:
    """State machine and reviewer authority for one request kind."""
    kind: RequestKind
    status_type: Type[Enum]
    initial: Enum
    transitions: Mapping[Enum, FrozenSet[Enum]]
    reviewer_roles: FrozenSet[str] = frozenset({Role.MASTER.value})
    capacity_consuming: FrozenSet[Enum] = frozenset()
    slot_bound: bool = False

    @property
    def terminal(self) -> FrozenSet[Enum]:
        return frozenset(status for status in self.status_type if status.is_terminal)

    def can_transition(self, current: Enum, target: Enum) -> bool:
        return target in self.transitions.get(current, frozenset())

    def consumes_capacity(self, status: Enum) -> bool:
        return status in self.capacity_consuming


_REVIEW_TRANSITIONS = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.APPROVED, ReviewStatus.REJECTED}),
}

DEFAULT_POLICIES: Dict[RequestKind, KindPolicy] = {
    RequestKind.DAY_OFF: KindPolicy(
        kind=RequestKind.DAY_OFF,
        status_type=ReviewStatus,
        initial=ReviewStatus.PENDING,
        transitions=_REVIEW_TRANSITIONS,
        reviewer_roles=frozenset({Role.MASTER.value, Role.RH.value}),
    ),
    RequestKind.APPOINTMENT: KindPolicy(
        kind=RequestKind.APPOINTMENT,
        status_type=ReviewStatus,
        initial=ReviewStatus.PENDING,
        transitions=_REVIEW_TRANSITIONS,
        reviewer_roles=frozenset({Role.MASTER.value, Role.RH.value}),
        capacity_consuming=frozenset({ReviewStatus.APPROVED}),
        slot_bound=True,
    ),
    RequestKind.INTERPRETER: KindPolicy(
        kind=RequestKind.INTERPRETER,
        status_type=ReviewStatus,
        initial=ReviewStatus.PENDING,
        transitions=_REVIEW_TRANSITIONS,
        capacity_consuming=frozenset({ReviewStatus.APPROVED}),
        slot_bound=True,
    ),
    RequestKind.MEDIATION: KindPolicy(
        kind=RequestKind.MEDIATION,
        status_type=MediationStatus,
        initial=MediationStatus.PENDENTE,
        transitions={
            MediationStatus.PENDENTE: frozenset({
                MediationStatus.ACORDO,
                MediationStatus.SEM_ACORDO,
                MediationStatus.ENCAMINHAMENTO,
            }),
        },
        reviewer_roles=frozenset({Role.MASTER.value, Role.RH.value}),
    ),
    RequestKind.COMPLAINT: KindPolicy(
        kind=RequestKind.COMPLAINT,
        status_type=ComplaintStatus,
        initial=ComplaintStatus.PENDENTE,
        transitions={
            ComplaintStatus.PENDENTE: frozenset({ComplaintStatus.EM_ANALISE}),
            ComplaintStatus.EM_ANALISE: frozenset({
                ComplaintStatus.RESOLVIDO,
                ComplaintStatus.DESCARTADO,
            }),
        },
    ),
}


def build_policies(
    reviewer_roles: Optional[Mapping[str, Iterable[str]]] = None,
) -> Dict[RequestKind, KindPolicy]:
    """
    Return the default policy table with reviewer roles overridden per kind.

    Args:
        reviewer_roles: Mapping of kind name (e.g. "DAY_OFF") to role names
    """
    policies = dict(DEFAULT_POLICIES)

    for kind_name, roles in (reviewer_roles or {}).items():
        kind = RequestKind(str(kind_name).upper())
        policies[kind] = replace(
            policies[kind],
            reviewer_roles=frozenset(str(role).upper() for role in roles),
        )

    return policies


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class RequestLifecycleController:
    """
    Validates and applies status transitions.

    Listeners registered through ``subscribe`` receive a ``TransitionEvent``
    for every applied transition, replacing client-side polling for changes.
    """

    def __init__(
        self,
        policies: Optional[Mapping[RequestKind, KindPolicy]] = None,
        listeners: Iterable[TransitionListener] = (),
    ):
        self.policies: Dict[RequestKind, KindPolicy] = dict(policies or DEFAULT_POLICIES)
        self._listeners: List[TransitionListener] = list(listeners)

    def subscribe(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def policy_for(self, kind: RequestKind) -> KindPolicy:
        return self.policies[RequestKind(kind)]

    def coerce_status(self, kind: RequestKind, value: Any) -> Enum:
        """
        Resolve a status value for a kind.

        Raises:
            InvalidTransitionError: If the value is not a status of that kind
        """
        status_type = self.policy_for(kind).status_type
        if isinstance(value, status_type):
            return value

        raw = str(getattr(value, "value", value)).strip().upper()
        try:
            return status_type(raw)
        except ValueError as exc:
            raise InvalidTransitionError(
                f"{raw!r} is not a valid {RequestKind(kind).value} status"
            ) from exc

    def consumes_capacity(self, request: Request) -> bool:
        return self.policy_for(request.kind).consumes_capacity(request.status)

    def create(
        self,
        kind: RequestKind,
        requester: str,
        date: datetime.date,
        time: Optional[datetime.time] = None,
        payload: Optional[Mapping[str, Any]] = None,
        *,
        company_id: Optional[str] = None,
        request_id: Optional[str] = None,
        now: Optional[InstantLike] = None,
    ) -> Request:
        """Build a freshly submitted request in the kind's initial status."""
        policy = self.policy_for(kind)
        return Request(
            id=request_id or uuid.uuid4().hex,
            kind=policy.kind,
            requester=requester,
            date=date,
            time=time,
            status=policy.initial,
            created_at=to_instant(now),
            company_id=company_id,
            payload=dict(payload or {}),
        )

    def missing_fields(
        self,
        request: Request,
        target: Enum,
        payload: Mapping[str, Any],
    ) -> List[str]:
        """Return the kind-specific payload fields a transition still lacks."""
        required: List[str] = []

        if request.kind is RequestKind.INTERPRETER:
            if target is ReviewStatus.APPROVED and request.modality == "ONLINE":
                required.append("meeting_link")
            if target is ReviewStatus.REJECTED:
                required.append("admin_notes")
        elif request.kind is RequestKind.MEDIATION and target.is_terminal:
            required.append("result_details")
        elif request.kind is RequestKind.COMPLAINT and target is ComplaintStatus.RESOLVIDO:
            required.append("resolution")

        return [name for name in required if not _has_text(payload.get(name))]

    def transition(
        self,
        request: Request,
        target_status: Any,
        actor: Actor,
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[InstantLike] = None,
    ) -> Request:
        """
        Apply a reviewer transition.

        Re-applying the current status is a successful no-op, which keeps
        at-least-once delivery from a flaky client harmless.

        Args:
            request: Current snapshot of the request
            target_status: Desired status (enum member or its string value)
            actor: Reviewer performing the transition
            payload: Kind-specific data (note, admin_notes, meeting_link, ...)
            now: Transition instant; defaults to the current time

        Returns:
            Updated Request; the input is left untouched

        Raises:
            AuthorizationError: If the actor lacks reviewer authority
            InvalidTransitionError: If the target is unreachable
            ValidationError: If required payload fields are missing
        """
        policy = self.policy_for(request.kind)
        target = self.coerce_status(request.kind, target_status)
        data = {
            key: value for key, value in dict(payload or {}).items()
            if key in REVIEW_FIELDS and value is not None
        }

        self._authorize(policy, request, actor)

        if target == request.status:
            logger.debug("Request %s already %s, nothing to do", request.id, target.value)
            return request

        if not policy.can_transition(request.status, target):
            raise InvalidTransitionError(
                f"{request.kind.value} request {request.id} cannot move from "
                f"{request.status.value} to {target.value}"
            )

        missing = self.missing_fields(request, target, data)
        if missing:
            raise ValidationError(
                f"{request.kind.value} transition to {target.value} requires: {', '.join(missing)}"
            )

        at = to_instant(now)
        narrative = self._narrative(data)
        terminal = target.is_terminal

        updated = replace(
            request,
            status=target,
            payload={**request.payload, **data},
            resolution_notes=narrative if narrative is not None else request.resolution_notes,
            resolved_by=actor.id if terminal else None,
            resolved_at=at if terminal else None,
            updated_at=at,
        )

        logger.info(
            "%s request %s: %s -> %s by %s",
            request.kind.value,
            request.id,
            request.status.value,
            target.value,
            actor.id,
        )

        self._notify(TransitionEvent(
            request_id=request.id,
            kind=request.kind,
            previous_status=request.status,
            status=target,
            actor_id=actor.id,
            at=at,
            reason=narrative,
        ))

        return updated

    def _authorize(self, policy: KindPolicy, request: Request, actor: Optional[Actor]) -> None:
        if actor is None:
            raise AuthorizationError("A reviewer is required to change a request status")

        if actor.role not in policy.reviewer_roles:
            raise AuthorizationError(
                f"Role {actor.role} cannot review {policy.kind.value} requests"
            )

        # Only MASTER reviewers act across tenants
        if not actor.is_master and request.company_id and actor.company_id != request.company_id:
            raise AuthorizationError(
                f"Reviewer {actor.id} does not belong to company {request.company_id}"
            )

    @staticmethod
    def _narrative(data: Mapping[str, Any]) -> Optional[str]:
        for name in NARRATIVE_FIELDS:
            if _has_text(data.get(name)):
                return data[name].strip()
        return None

    def _notify(self, event: TransitionEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Transition listener failed for request %s", event.request_id)
