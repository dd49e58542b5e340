"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import is_available_at, normalize_availability
from .lifecycle import DEFAULT_POLICIES, KindPolicy, RequestLifecycleController, build_policies
from .models import (
    Actor,
    ComplaintStatus,
    DaySchedule,
    MediationStatus,
    Request,
    RequestKind,
    ReviewStatus,
    Role,
    Slot,
    TimeRange,
    TransitionEvent,
    WeeklyAvailability,
)
from .reconciler import BookingReconciler
from .slot_expander import SlotExpander

__all__ = [
    "Actor",
    "BookingReconciler",
    "ComplaintStatus",
    "DEFAULT_POLICIES",
    "DaySchedule",
    "KindPolicy",
    "MediationStatus",
    "Request",
    "RequestKind",
    "RequestLifecycleController",
    "ReviewStatus",
    "Role",
    "Slot",
    "SlotExpander",
    "TimeRange",
    "TransitionEvent",
    "WeeklyAvailability",
    "build_policies",
    "is_available_at",
    "normalize_availability",
]
