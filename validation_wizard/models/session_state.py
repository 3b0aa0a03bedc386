from __future__ import annotations

from enum import Enum

"""Correction phases and the validation session state machine.

State transitions (forward):
    idle -> generic_detected -> generic_correcting -> generic_resolved
         -> custom_detected -> custom_correcting -> custom_resolved
         -> transform_review -> finalized

Backward moves (Back buttons) are always allowed and never clear corrections.
"""

__all__ = [
    "Phase",
    "SessionState",
]


class Phase(Enum):
    """Correction phase; each has its own correction namespace."""
    GENERIC = "generic"
    CUSTOM = "custom"
    FINAL = "final"


class SessionState(Enum):
    IDLE = "idle"
    GENERIC_DETECTED = "generic_detected"
    GENERIC_CORRECTING = "generic_correcting"
    GENERIC_RESOLVED = "generic_resolved"
    CUSTOM_DETECTED = "custom_detected"
    CUSTOM_CORRECTING = "custom_correcting"
    CUSTOM_RESOLVED = "custom_resolved"
    TRANSFORM_REVIEW = "transform_review"
    FINALIZED = "finalized"

    @property
    def phase(self) -> Phase | None:
        """Correction phase active in this state (None outside correction)."""
        if self in (SessionState.GENERIC_DETECTED, SessionState.GENERIC_CORRECTING):
            return Phase.GENERIC
        if self in (SessionState.CUSTOM_DETECTED, SessionState.CUSTOM_CORRECTING):
            return Phase.CUSTOM
        if self is SessionState.TRANSFORM_REVIEW:
            return Phase.FINAL
        return None

    def next(self) -> SessionState | None:
        order = list(SessionState)
        i = order.index(self)
        return order[i + 1] if i + 1 < len(order) else None

    def previous(self) -> SessionState | None:
        order = list(SessionState)
        i = order.index(self)
        return order[i - 1] if i > 0 else None
