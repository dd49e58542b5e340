"""
Tests for booking reconciliation.
"""

from datetime import date, time

import pendulum
import pytest

from agendaflow.domain.exceptions import ConflictError
from agendaflow.domain.models import Request, RequestKind, ReviewStatus, Slot
from agendaflow.domain.reconciler import BookingReconciler

MONDAY = date(2026, 10, 19)


def _request(request_id, status, at=time(9, 0), kind=RequestKind.APPOINTMENT, day=MONDAY, **payload):
    terminal = status.is_terminal
    return Request(
        id=request_id,
        kind=kind,
        requester="u1",
        date=day,
        time=at,
        status=status,
        created_at=pendulum.datetime(2026, 10, 10, tz="UTC"),
        payload=payload,
        resolved_by="m1" if terminal else None,
        resolved_at=pendulum.datetime(2026, 10, 11, tz="UTC") if terminal else None,
    )


def _grid():
    return [Slot(MONDAY, time(hour, minute)) for hour in (8, 9, 10) for minute in (0, 30)]


class TestReconcile:
    """Tests for BookingReconciler.reconcile."""

    def setup_method(self):
        self.reconciler = BookingReconciler()

    def test_approved_booking_removes_its_slot(self):
        """An approved appointment takes its slot off the grid."""
        free = self.reconciler.reconcile(_grid(), [_request("a1", ReviewStatus.APPROVED)])

        assert Slot(MONDAY, time(9, 0)) not in free
        assert len(free) == 5

    @pytest.mark.parametrize("status", [ReviewStatus.PENDING, ReviewStatus.REJECTED])
    def test_non_consuming_statuses_keep_slot(self, status):
        """Pending and rejected requests hold no capacity."""
        assert self.reconciler.reconcile(_grid(), [_request("a1", status)]) == _grid()

    def test_interpreter_approval_consumes_capacity(self):
        """Approved interpreter sessions block their slot too."""
        booking = _request("i1", ReviewStatus.APPROVED, at=time(10, 30), kind=RequestKind.INTERPRETER)

        assert Slot(MONDAY, time(10, 30)) not in self.reconciler.reconcile(_grid(), [booking])

    def test_day_off_is_not_slot_bound(self):
        """Day-off approvals never touch the booking grid."""
        day_off = _request("d1", ReviewStatus.APPROVED, kind=RequestKind.DAY_OFF)

        assert self.reconciler.reconcile(_grid(), [day_off]) == _grid()

    def test_other_dates_are_untouched(self):
        """Only the exact date of a booking matters."""
        booking = _request("a1", ReviewStatus.APPROVED, day=date(2026, 10, 20))

        assert self.reconciler.reconcile(_grid(), [booking]) == _grid()

    def test_duration_covers_following_slots(self):
        """A 60 minute session at 09:00 blocks 09:00 and 09:30 only."""
        booking = _request("i1", ReviewStatus.APPROVED, kind=RequestKind.INTERPRETER, duration_minutes=60)

        free = self.reconciler.reconcile(_grid(), [booking])

        assert [slot.time for slot in free] == [time(8, 0), time(8, 30), time(10, 0), time(10, 30)]

    def test_result_independent_of_input_order(self):
        """Shuffling either input does not change which slots survive."""
        bookings = [
            _request("a1", ReviewStatus.APPROVED, at=time(8, 0)),
            _request("a2", ReviewStatus.PENDING, at=time(8, 30)),
            _request("a3", ReviewStatus.APPROVED, at=time(10, 30)),
        ]

        forward = self.reconciler.reconcile(_grid(), bookings)
        backward = self.reconciler.reconcile(list(reversed(_grid())), list(reversed(bookings)))

        assert forward == sorted(backward)
        assert [slot.time for slot in forward] == [time(8, 30), time(9, 0), time(9, 30), time(10, 0)]

    def test_inputs_are_not_modified(self):
        """Both inputs are left as given."""
        slots = _grid()
        bookings = [_request("a1", ReviewStatus.APPROVED)]

        self.reconciler.reconcile(slots, bookings)

        assert slots == _grid()
        assert len(bookings) == 1


class TestConflictGuard:
    """Tests for find_conflict and ensure_slot_free."""

    def setup_method(self):
        self.reconciler = BookingReconciler()

    def test_approved_holder_is_reported(self):
        """A second request for an approved slot conflicts."""
        holder = _request("a1", ReviewStatus.APPROVED)
        candidate = _request("a2", ReviewStatus.PENDING)

        assert self.reconciler.find_conflict(candidate, [holder, candidate]) == holder
        with pytest.raises(ConflictError, match="a1"):
            self.reconciler.ensure_slot_free(candidate, [holder])

    def test_pending_competitor_is_not_a_conflict(self):
        """Two pending requests may ask for the same slot."""
        first = _request("a1", ReviewStatus.PENDING)
        second = _request("a2", ReviewStatus.PENDING)

        assert self.reconciler.find_conflict(second, [first]) is None

    def test_request_does_not_conflict_with_itself(self):
        """Re-checking an approved request against its own record passes."""
        approved = _request("a1", ReviewStatus.APPROVED)

        self.reconciler.ensure_slot_free(approved, [approved])

    def test_overlapping_durations_conflict(self):
        """A 09:30 request overlaps a 60 minute session starting at 09:00."""
        holder = _request("i1", ReviewStatus.APPROVED, kind=RequestKind.INTERPRETER, duration_minutes=60)
        candidate = _request("a2", ReviewStatus.PENDING, at=time(9, 30))

        assert self.reconciler.find_conflict(candidate, [holder]) == holder
