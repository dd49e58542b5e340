"""
Tests for the in-memory mock backend.
"""

from dataclasses import replace
from datetime import date, time

import pendulum
import pytest

from agendaflow.adapters.backend_client import TenantContext
from agendaflow.adapters.mock_backend_client import MockBackendClient
from agendaflow.domain.exceptions import BackendError, ConflictError, InvalidTransitionError
from agendaflow.domain.lifecycle import RequestLifecycleController
from agendaflow.domain.models import Actor, ComplaintStatus, RequestKind, ReviewStatus

MASTER = Actor(id="master-1", role="MASTER")


def _pending(request_id, created_at):
    return {
        "id": request_id,
        "kind": "APPOINTMENT",
        "requesterId": f"user-{request_id}",
        "date": "2026-11-04",
        "time": "14:00",
        "status": "PENDENTE",
        "createdAt": created_at,
    }


class TestSeedData:
    """Tests for loading seed data."""

    def test_bundled_sample_data(self):
        """The bundled file seeds availability and requests."""
        backend = MockBackendClient()

        assert "weekdays" in backend.get_availability_config()
        assert len(backend.list_requests()) == 5
        complaint = backend.list_requests(RequestKind.COMPLAINT)[0]
        assert complaint.status is ComplaintStatus.EM_ANALISE

    def test_missing_file_means_empty_backend(self, tmp_path):
        """A missing seed file starts empty."""
        backend = MockBackendClient(data_file=tmp_path / "missing.json")

        assert backend.get_availability_config() == {}
        assert backend.list_requests() == []

    def test_invalid_seed_records_are_skipped(self):
        """Broken records in the seed are skipped."""
        backend = MockBackendClient(data={
            "requests": [_pending("a1", "2026-10-12T10:00:00Z"), {"id": "x", "kind": "NOPE"}],
        })

        assert [request.id for request in backend.list_requests()] == ["a1"]

    def test_availability_is_copied(self):
        """Callers cannot mutate the stored configuration."""
        backend = MockBackendClient(data={"availability": {"monday": {"active": True}}})

        backend.get_availability_config()["monday"]["active"] = False

        assert backend.get_availability_config() == {"monday": {"active": True}}


class TestRequests:
    """Tests for listing, creating and updating."""

    def setup_method(self):
        self.backend = MockBackendClient(
            data={"requests": [
                _pending("a1", "2026-10-12T10:00:00Z"),
                _pending("a2", "2026-10-13T10:00:00Z"),
            ]},
            tenant=TenantContext(company_id="acme"),
        )
        self.controller = RequestLifecycleController()

    def test_list_newest_first_with_filters(self):
        """Listings are sorted by creation time, newest first."""
        assert [request.id for request in self.backend.list_requests()] == ["a2", "a1"]
        assert self.backend.list_requests(RequestKind.APPOINTMENT, ReviewStatus.APPROVED) == []
        assert self.backend.list_requests(RequestKind.DAY_OFF) == []

    def test_create_assigns_id_and_initial_status(self):
        """Created requests are pending and stamped with the tenant."""
        created = self.backend.create_request(RequestKind.MEDIATION, date(2026, 11, 10), payload={"theme": "Escala"})

        assert created.id == "mock-3"
        assert created.status.value == "PENDENTE"
        assert created.company_id == "acme"
        assert self.backend.list_requests(RequestKind.MEDIATION) == [created]

    def test_update_rejects_stale_transition(self):
        """The stored status decides whether a transition is still possible."""
        first = self.backend.list_requests()[1]
        approved = self.controller.transition(first, "APPROVED", MASTER)
        self.backend.update_request(approved)

        rejected = self.controller.transition(first, "REJECTED", MASTER, {"note": "late"})
        with pytest.raises(InvalidTransitionError, match="already APPROVED"):
            self.backend.update_request(rejected)

    def test_update_enforces_slot_uniqueness(self):
        """A second approval of the same slot is a conflict."""
        second, first = self.backend.list_requests()
        self.backend.update_request(self.controller.transition(first, "APPROVED", MASTER))

        with pytest.raises(ConflictError):
            self.backend.update_request(self.controller.transition(second, "APPROVED", MASTER))

        assert self.backend.list_requests(RequestKind.APPOINTMENT, ReviewStatus.PENDING) == [second]

    def test_update_keeps_submitted_slot(self):
        """Date and time cannot be changed by an update."""
        request = self.backend.list_requests()[0]
        moved = replace(
            self.controller.transition(request, "REJECTED", MASTER, {"note": "x"}),
            date=date(2026, 12, 1),
            time=time(8, 0),
        )

        stored = self.backend.update_request(moved)

        assert (stored.date, stored.time) == (date(2026, 11, 4), time(14, 0))

    def test_update_unknown_request(self):
        """Updating a request the backend never saw fails."""
        ghost = self.controller.create(RequestKind.DAY_OFF, "u1", date(2026, 11, 10), now=pendulum.now("UTC"))

        with pytest.raises(BackendError) as excinfo:
            self.backend.update_request(ghost)

        assert excinfo.value.status_code == 404
