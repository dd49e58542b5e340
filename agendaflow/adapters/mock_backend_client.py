"""
Mock backend client for running without a platform server.
"""

import copy
import datetime
import json
import logging
from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pendulum

from ..domain.exceptions import BackendError, InvalidTransitionError
from ..domain.lifecycle import DEFAULT_POLICIES, KindPolicy
from ..domain.models import Request, RequestKind
from ..domain.reconciler import BookingReconciler
from . import codec
from .backend_client import TenantContext

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_backend_data.json"
MOCK_COMPANY_ID = "mock-company"


class MockBackendClient:
    """
    In-memory stand-in for the platform backend.

    Seeds availability and requests from mock_backend_data.json (or a given
    mapping in the same shape). Like the real server it owns request state:
    it refuses unreachable transitions and a second approval of a slot that
    is already booked.
    """

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        data_file: Optional[Path] = None,
        tenant: Optional[TenantContext] = None,
        policies: Optional[Mapping[RequestKind, KindPolicy]] = None,
    ):
        """
        Initialize the mock backend.

        Args:
            data: Seed data with "availability" and "requests" keys
            data_file: JSON file to seed from when ``data`` is not given
            tenant: Tenant whose company id is stamped on new requests
            policies: Lifecycle policies used to judge transitions
        """
        self.tenant = tenant or TenantContext(company_id=MOCK_COMPANY_ID)
        self.policies = dict(policies or DEFAULT_POLICIES)
        self._reconciler = BookingReconciler(self.policies)
        self._requests: Dict[str, Request] = {}
        self._sequence = 0
        self._load_data(data, data_file)

    def _load_data(self, data: Optional[Mapping[str, Any]], data_file: Optional[Path]) -> None:
        """Load seed data from a mapping or JSON file."""
        if data is None:
            path = data_file or DEFAULT_DATA_FILE
            if path.exists():
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            else:
                # Fallback to empty if file doesn't exist
                data = {}

        self.availability = copy.deepcopy(data.get("availability", {}))

        for raw in data.get("requests", []):
            try:
                request = codec.decode_request(raw)
            except ValueError as exc:
                logger.warning("Skipping invalid mock request %r: %s", raw.get("id"), exc)
                continue
            self._requests[request.id] = request

        self._sequence = len(self._requests)

    def get_availability_config(self) -> Any:
        return copy.deepcopy(self.availability)

    def list_requests(
        self,
        kind: Optional[RequestKind] = None,
        status: Optional[Enum] = None,
    ) -> List[Request]:
        """Return stored requests, newest first."""
        matches = [
            request for request in self._requests.values()
            if (kind is None or request.kind is RequestKind(kind))
            and (status is None or request.status == status)
        ]
        return sorted(matches, key=lambda request: request.created_at, reverse=True)

    def create_request(
        self,
        kind: RequestKind,
        date: datetime.date,
        time: Optional[datetime.time] = None,
        payload: Optional[Mapping[str, Any]] = None,
        requester: Optional[str] = None,
    ) -> Request:
        policy = self.policies[RequestKind(kind)]
        self._sequence += 1

        request = Request(
            id=f"mock-{self._sequence}",
            kind=policy.kind,
            requester=requester or "anonymous",
            date=date,
            time=time,
            status=policy.initial,
            created_at=pendulum.now("UTC"),
            company_id=self.tenant.company_id,
            payload=dict(payload or {}),
        )
        self._requests[request.id] = request
        return request

    def update_request(self, request: Request) -> Request:
        """
        Store a transitioned request after the server-side checks.

        Raises:
            BackendError: If the request does not exist
            InvalidTransitionError: If the stored status cannot reach the new one
            ConflictError: If an approval would double-book a slot
        """
        stored = self._requests.get(request.id)
        if stored is None:
            raise BackendError(f"Request {request.id} not found", status_code=404, code="NOT_FOUND")

        policy = self.policies[stored.kind]
        if request.status != stored.status and not policy.can_transition(stored.status, request.status):
            raise InvalidTransitionError(
                f"Request {request.id} is already {stored.status.value}"
            )

        if policy.consumes_capacity(request.status):
            self._reconciler.ensure_slot_free(request, self._requests.values())

        # Date and time are fixed at submission
        updated = replace(request, date=stored.date, time=stored.time)
        self._requests[updated.id] = updated
        return updated
