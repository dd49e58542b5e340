"""
REST client for the platform backend.
"""

import datetime
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

import requests

from ..domain.exceptions import (
    AgendaError,
    AuthorizationError,
    BackendError,
    ConflictError,
    InvalidTransitionError,
    TransientBackendError,
    ValidationError,
)
from ..domain.models import Request, RequestKind
from . import codec

logger = logging.getLogger(__name__)

# 500 is raised immediately; only gateway failures are retried
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})

ERROR_CODES: Dict[str, Type[AgendaError]] = {
    "INVALID_TRANSITION": InvalidTransitionError,
    "VALIDATION_ERROR": ValidationError,
    "CONFLICT": ConflictError,
    "FORBIDDEN": AuthorizationError,
}


@dataclass(frozen=True)
class TenantContext:
    """Tenant and credentials of one caller, passed in explicitly per client."""
    company_id: Optional[str] = None
    access_token: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        if self.company_id:
            headers["x-company-id"] = self.company_id
        return headers


class BackendClient:
    """
    Client for the availability and request endpoints of the backend.

    Every call is bounded by ``timeout``. Timeouts, connection failures and
    gateway errors (502/503/504) are retried with exponential backoff before
    surfacing as ``TransientBackendError``.
    """

    def __init__(
        self,
        base_url: str,
        tenant: TenantContext,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the backend client.

        Args:
            base_url: API root, e.g. https://api.example.com/api
            tenant: Company and bearer token sent with every call
            timeout: Seconds before a single attempt is abandoned
            max_retries: Retries after the first attempt for transient failures
            backoff_seconds: Delay before the first retry, doubled each time
            session: Optional requests session (connection pooling, tests)
            sleep: Sleep function used between retries
        """
        self.base_url = base_url.rstrip("/")
        self.tenant = tenant
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()
        self._sleep = sleep

    def get_availability_config(self) -> Any:
        """
        Fetch the raw weekly availability of the tenant.

        Returns:
            The configuration as stored (mapping or JSON string), unnormalized
        """
        return self._request("GET", "/availability-config")

    def list_requests(
        self,
        kind: Optional[RequestKind] = None,
        status: Optional[Enum] = None,
    ) -> List[Request]:
        params: Dict[str, str] = {}
        if kind is not None:
            params["kind"] = RequestKind(kind).value
        if status is not None:
            params["status"] = (
                codec.encode_status(kind, status) if kind is not None else str(status.value)
            )

        data = self._request("GET", "/requests", params=params)
        return self._parse_requests(data, kind)

    def create_request(
        self,
        kind: RequestKind,
        date: datetime.date,
        time: Optional[datetime.time] = None,
        payload: Optional[Mapping[str, Any]] = None,
        requester: Optional[str] = None,
    ) -> Request:
        body = codec.encode_submission(kind, date, time, payload or {}, requester)
        data = self._request("POST", "/requests", body=body)
        return self._parse_request(data, kind)

    def update_request(self, request: Request) -> Request:
        """
        Persist a locally validated transition.

        Args:
            request: The transitioned request snapshot

        Returns:
            The request as stored by the backend
        """
        data = self._request(
            "PATCH",
            f"/requests/{request.id}",
            body=codec.encode_update(request),
        )
        return self._parse_request(data, request.kind)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        attempts = self.max_retries + 1
        error: Optional[TransientBackendError] = None

        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method,
                    url,
                    headers=self.tenant.headers(),
                    params=params,
                    json=body,
                    timeout=self.timeout,
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
                error = TransientBackendError(f"{method} {path} failed: {exc}")
                error.__cause__ = exc
            except requests.exceptions.RequestException as exc:
                raise BackendError(f"{method} {path} failed: {exc}") from exc
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return self._handle_response(method, path, response)
                error = TransientBackendError(
                    f"{method} {path} returned {response.status_code}",
                    status_code=response.status_code,
                )

            if attempt < self.max_retries:
                delay = self.backoff_seconds * (2 ** attempt)
                logger.warning(
                    "Attempt %d/%d for %s %s failed (%s), retrying in %.1fs",
                    attempt + 1,
                    attempts,
                    method,
                    path,
                    error,
                    delay,
                )
                self._sleep(delay)

        logger.info("Giving up on %s %s after %d attempts", method, path, attempts)
        raise error

    def _handle_response(self, method: str, path: str, response: requests.Response) -> Any:
        status = response.status_code
        data = self._decode_json(response)

        if 200 <= status < 300:
            logger.debug("%s %s -> %d", method, path, status)
            return data

        details = data if isinstance(data, Mapping) else {}
        message = (
            details.get("error")
            or details.get("message")
            or f"Error {status}: {response.reason}"
        )
        code = details.get("code")

        if status >= 500:
            raise TransientBackendError(message, status_code=status, code=code)
        if status == 409:
            raise ConflictError(message)
        if status in (401, 403):
            raise AuthorizationError(message)

        error_type = ERROR_CODES.get(str(code).upper()) if code else None
        if error_type is not None:
            raise error_type(message)

        raise BackendError(message, status_code=status, code=code)

    @staticmethod
    def _decode_json(response: requests.Response) -> Any:
        text = response.text
        if not text:
            return {}
        try:
            return json.loads(text)
        except ValueError as exc:
            if 200 <= response.status_code < 300:
                raise BackendError(
                    "Invalid JSON response from server",
                    status_code=response.status_code,
                ) from exc
            return {}

    def _parse_request(self, data: Any, kind: Optional[RequestKind]) -> Request:
        if not isinstance(data, Mapping):
            raise BackendError(f"Expected a request object, got {type(data).__name__}")
        try:
            return codec.decode_request(data, kind)
        except ValueError as exc:
            raise BackendError(f"Could not parse request from backend: {exc}") from exc

    def _parse_requests(self, data: Any, kind: Optional[RequestKind]) -> List[Request]:
        """
        Parse a request listing.

        A record that cannot be interpreted is skipped with a warning rather
        than hiding the rest of the queue.
        """
        if not isinstance(data, list):
            raise BackendError(f"Expected a list of requests, got {type(data).__name__}")

        parsed: List[Request] = []
        for item in data:
            try:
                parsed.append(codec.decode_request(item, kind))
            except (ValueError, TypeError, AttributeError) as exc:
                item_id = item.get("id") if isinstance(item, Mapping) else item
                logger.warning("Skipping unreadable request %r: %s", item_id, exc)
        return parsed
