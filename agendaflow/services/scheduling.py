"""
Application services for booking and reviewing requests.

The service coordinates the backend adapter with the pure domain pieces:
availability normalization, slot expansion, booking reconciliation and the
request lifecycle. The backend dependency is expressed as a protocol so the
REST client, the mock backend or a test stub can be plugged in.
"""

from __future__ import annotations

import datetime
import logging
from enum import Enum
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from ..domain.availability import normalize_availability
from ..domain.clock import InstantLike, is_past_date
from ..domain.exceptions import AgendaError, ValidationError
from ..domain.lifecycle import RequestLifecycleController
from ..domain.models import Actor, ComplaintStatus, Request, RequestKind, Slot, WeeklyAvailability
from ..domain.reconciler import BookingReconciler
from ..domain.slot_expander import SlotExpander

logger = logging.getLogger(__name__)

BOOKING_KINDS = (RequestKind.APPOINTMENT, RequestKind.INTERPRETER)


class BackendClientProtocol(Protocol):
    """Protocol describing the backend behaviour needed by the service."""

    def get_availability_config(self) -> Any:
        """Return the raw stored availability."""

    def list_requests(
        self,
        kind: Optional[RequestKind] = None,
        status: Optional[Enum] = None,
    ) -> List[Request]:
        """Return requests, optionally filtered by kind and status."""

    def create_request(
        self,
        kind: RequestKind,
        date: datetime.date,
        time: Optional[datetime.time] = None,
        payload: Optional[Mapping[str, Any]] = None,
        requester: Optional[str] = None,
    ) -> Request:
        """Persist a new request in its initial status."""

    def update_request(self, request: Request) -> Request:
        """Persist a transitioned request and return the stored version."""


class SchedulingService:
    """
    Orchestrates slot offering, request submission and review.

    Availability problems degrade to an empty slot list; lifecycle problems
    always propagate so they can be shown to the reviewer.
    """

    def __init__(
        self,
        backend: BackendClientProtocol,
        slot_expander: SlotExpander,
        controller: Optional[RequestLifecycleController] = None,
        reconciler: Optional[BookingReconciler] = None,
        horizon_days: int = 14,
        granularity_minutes: int = 30,
    ) -> None:
        self._backend = backend
        self._slot_expander = slot_expander
        self._controller = controller or RequestLifecycleController()
        self._reconciler = reconciler or BookingReconciler(self._controller.policies)
        self.horizon_days = horizon_days
        self.granularity_minutes = granularity_minutes

    @property
    def timezone(self) -> str:
        return self._slot_expander.timezone

    @property
    def controller(self) -> RequestLifecycleController:
        return self._controller

    def load_availability(self) -> WeeklyAvailability:
        """
        Fetch and normalize the tenant's weekly availability.

        Raises:
            AgendaError: If the backend call fails or the data is unusable
        """
        return normalize_availability(self._backend.get_availability_config())

    def available_slots(
        self,
        reference_instant: Optional[InstantLike] = None,
        kinds: Sequence[RequestKind] = BOOKING_KINDS,
    ) -> List[Slot]:
        """
        Compute the bookable slots over the configured horizon.

        Args:
            reference_instant: "Now"; defaults to the current time
            kinds: Request kinds whose approved bookings block slots

        Returns:
            Free slots ordered by date then time; empty if availability or
            bookings cannot be loaded
        """
        try:
            availability = self.load_availability()
            slots = self.calculate_slots(availability, reference_instant)
            if not slots:
                return []
            booked = self._fetch_bookings(kinds)
        except AgendaError as exc:
            logger.warning("Could not compute available slots, offering none: %s", exc)
            return []

        return self._reconciler.reconcile(slots, booked)

    def calculate_slots(
        self,
        availability: WeeklyAvailability,
        reference_instant: Optional[InstantLike] = None,
    ) -> List[Slot]:
        """Expand availability without looking at existing bookings."""
        return self._slot_expander.expand(
            availability,
            horizon_days=self.horizon_days,
            granularity_minutes=self.granularity_minutes,
            reference_instant=reference_instant,
        )

    def list_requests(
        self,
        kind: Optional[RequestKind] = None,
        status: Optional[Any] = None,
    ) -> List[Request]:
        """
        List requests, accepting status names as well as enum members.

        Complaints stored as VALIDADO or ENCAMINHADO_RH read back as
        EM_ANALISE, so that filter is applied here instead of by the backend.
        """
        if status is not None and kind is not None:
            status = self._controller.coerce_status(kind, status)
        if kind is RequestKind.COMPLAINT and status is ComplaintStatus.EM_ANALISE:
            return [request for request in self._backend.list_requests(kind) if request.status is status]
        return self._backend.list_requests(kind, status)

    def get_request(self, request_id: str, kind: Optional[RequestKind] = None) -> Request:
        """
        Raises:
            ValidationError: If no request with that id exists
        """
        for request in self._backend.list_requests(kind):
            if request.id == request_id:
                return request
        raise ValidationError(f"Request {request_id} not found")

    def submit_request(
        self,
        kind: RequestKind,
        requester: str,
        date: datetime.date,
        time: Optional[datetime.time] = None,
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[InstantLike] = None,
    ) -> Request:
        """
        Submit a new request.

        Args:
            kind: Request kind
            requester: Id of the requesting user
            date: Calendar date of the request
            time: Start time, required for slot-bound kinds
            payload: Kind-specific fields
            now: Submission instant; defaults to the current time

        Returns:
            The request as created by the backend

        Raises:
            ValidationError: If the date is in the past, a time is missing or
                the duration is not a whole number of minutes
            ConflictError: If the slot is already held by an approved booking
        """
        policy = self._controller.policy_for(kind)

        if is_past_date(date, now, self.timezone):
            raise ValidationError(f"Cannot submit a request for a past date ({date.isoformat()})")

        duration = (payload or {}).get("duration_minutes")
        if duration not in (None, "") and not str(duration).strip().isdigit():
            raise ValidationError(f"duration_minutes must be whole minutes, got {duration!r}")

        if policy.slot_bound:
            if time is None:
                raise ValidationError(f"{policy.kind.value} requests require a time")
            candidate = self._controller.create(
                policy.kind, requester, date, time, payload, now=now
            )
            self._reconciler.ensure_slot_free(candidate, self._fetch_bookings(BOOKING_KINDS))

        return self._backend.create_request(policy.kind, date, time, payload, requester)

    def review(
        self,
        request: Request,
        target_status: Any,
        actor: Actor,
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[InstantLike] = None,
    ) -> Request:
        """
        Apply a reviewer decision and persist it.

        The transition is validated locally first, so nothing is sent when it
        is refused. Re-applying the current status returns the request as is.

        Raises:
            AuthorizationError, InvalidTransitionError, ValidationError:
                Local refusal; the request is unchanged
            ConflictError: If approving would double-book a slot
            BackendError: If the backend refuses or cannot be reached
        """
        updated = self._controller.transition(request, target_status, actor, payload, now=now)
        if updated is request:
            return request

        if self._reconciler.consumes_capacity(updated):
            self._reconciler.ensure_slot_free(updated, self._fetch_bookings(BOOKING_KINDS))

        return self._backend.update_request(updated)

    def _fetch_bookings(self, kinds: Sequence[RequestKind]) -> List[Request]:
        bookings: List[Request] = []
        for kind in kinds:
            bookings.extend(self._backend.list_requests(kind))
        return bookings
