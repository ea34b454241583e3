from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthorizationError(DomainError):
    """Raised when a caller lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""


class ConflictError(DomainError):
    """Raised when an operation is illegal in the entity's current state."""


class InvalidCoordinate(ValidationError):
    def __init__(self, latitude: float, longitude: float):
        super().__init__(f"Coordinate out of range: lat={latitude}, lon={longitude}")
        self.latitude = latitude
        self.longitude = longitude


class InvalidWindow(ValidationError):
    """Session end must be strictly after its start."""


class InvalidFence(ValidationError):
    """Geofence radius must be positive."""


class ReasonRequired(ValidationError):
    """Overrides must carry a non-empty reason."""


class Forbidden(AuthorizationError):
    pass


class SessionNotFound(NotFoundError):
    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} not found")
        self.session_id = session_id


class NotEnrolled(DomainError):
    def __init__(self, session_id: int, student_id: int):
        super().__init__(f"Student {student_id} is not enrolled for session {session_id}")
        self.session_id = session_id
        self.student_id = student_id


class OutsideGeofence(DomainError):
    """Carries the measured distance so callers can show actionable feedback."""

    def __init__(self, distance_m: float, radius_m: float):
        super().__init__(
            f"You are {distance_m:.0f}m from the venue; allowed radius is {radius_m:.0f}m"
        )
        self.distance_m = distance_m
        self.radius_m = radius_m


class SessionClosed(ConflictError):
    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} is closed")
        self.session_id = session_id


class AlreadySessionClosed(ConflictError):
    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} is already closed")
        self.session_id = session_id


class SessionNotStarted(ConflictError):
    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} has not started yet")
        self.session_id = session_id


class SessionNotCancellable(ConflictError):
    def __init__(self, session_id: int):
        super().__init__(f"Attendance session {session_id} already started and cannot be cancelled")
        self.session_id = session_id


class AlreadyMarked(ConflictError):
    def __init__(self, session_id: int, student_id: int, existing: Optional[object] = None):
        super().__init__(f"Attendance already marked for student {student_id} in session {session_id}")
        self.session_id = session_id
        self.student_id = student_id
        self.existing = existing
