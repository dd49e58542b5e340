"""
Subtracts booked capacity from candidate slots.
"""

import datetime
from typing import Iterable, List, Mapping, Optional, Set, Tuple

from .exceptions import ConflictError
from .lifecycle import DEFAULT_POLICIES, KindPolicy
from .models import Request, RequestKind, Slot, minutes_of_day

SlotKey = Tuple[datetime.date, int]


class BookingReconciler:
    """
    Removes slots already consumed by approved requests.

    Only statuses in a kind's capacity-consuming set block a slot: a pending
    request does not keep other users from asking for the same time, and a
    rejected one frees it again.
    """

    def __init__(self, policies: Optional[Mapping[RequestKind, KindPolicy]] = None):
        self.policies = dict(policies or DEFAULT_POLICIES)

    def consumes_capacity(self, request: Request) -> bool:
        policy = self.policies.get(request.kind)
        return (
            policy is not None
            and policy.slot_bound
            and request.time is not None
            and policy.consumes_capacity(request.status)
        )

    def reconcile(self, slots: Iterable[Slot], requests: Iterable[Request]) -> List[Slot]:
        """
        Return the slots not held by any capacity-consuming request.

        Neither input is modified; the relative order of ``slots`` is kept.
        """
        booked = self._booked_keys(requests)
        if not booked:
            return list(slots)

        return [
            slot for slot in slots
            if (slot.date, minutes_of_day(slot.time)) not in booked
        ]

    def find_conflict(self, request: Request, requests: Iterable[Request]) -> Optional[Request]:
        """
        Find another capacity-consuming request that already holds the slot
        ``request`` asks for.
        """
        if request.time is None:
            return None

        wanted = set(self._covered_keys(request))

        for other in requests:
            if other.id == request.id or not self.consumes_capacity(other):
                continue
            if wanted.intersection(self._covered_keys(other)):
                return other

        return None

    def ensure_slot_free(self, request: Request, requests: Iterable[Request]) -> None:
        """
        Raises:
            ConflictError: If the slot is already taken by an approved request
        """
        holder = self.find_conflict(request, requests)
        if holder is not None:
            raise ConflictError(
                f"Slot {request.slot} is already held by {holder.kind.value} "
                f"request {holder.id} ({holder.status.value})"
            )

    def _booked_keys(self, requests: Iterable[Request]) -> Set[SlotKey]:
        booked: Set[SlotKey] = set()
        for request in requests:
            if self.consumes_capacity(request):
                booked.update(self._covered_keys(request))
        return booked

    @staticmethod
    def _covered_keys(request: Request) -> List[SlotKey]:
        """
        Minutes of the day a request occupies.

        Without a duration the request holds exactly its own start time;
        with one it holds every minute in [time, time + duration).
        """
        start = minutes_of_day(request.time)
        duration = request.duration_minutes
        if not duration or duration <= 0:
            return [(request.date, start)]

        end = min(start + duration, 24 * 60)
        return [(request.date, minute) for minute in range(start, end)]
