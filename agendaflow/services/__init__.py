"""
Service layer orchestrating domain logic and adapters.
"""

from .scheduling import BackendClientProtocol, SchedulingService

__all__ = ["BackendClientProtocol", "SchedulingService"]
