"""
Adapters layer - External integrations (platform REST backend).
"""

from .backend_client import BackendClient, TenantContext
from .mock_backend_client import MockBackendClient

__all__ = ["BackendClient", "MockBackendClient", "TenantContext"]
