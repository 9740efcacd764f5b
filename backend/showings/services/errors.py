"""Domain errors raised by the scheduling services.

Routers let these propagate; ``showings.errors`` turns them into JSON
responses with the matching HTTP status.
"""

import uuid
from datetime import datetime


class SchedulingError(Exception):
    """Base class for showing scheduling failures."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRangeError(SchedulingError, ValueError):
    """``start`` is not strictly before ``end``."""

    status_code = 422

    def __init__(self, start: datetime, end: datetime) -> None:
        super().__init__("end_time must be after start_time")
        self.start = start
        self.end = end


class ConflictError(SchedulingError):
    """The window strictly overlaps another SCHEDULED showing on the lot."""

    status_code = 409

    def __init__(self, lot_id: uuid.UUID, start: datetime, end: datetime) -> None:
        super().__init__("Time slot is not available due to an existing booking")
        self.lot_id = lot_id
        self.start = start
        self.end = end


class InvalidTransitionError(SchedulingError):
    """Status change out of a terminal state."""

    status_code = 409

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot change showing status from {current} to {target}")
        self.current = current
        self.target = target


class LotNotFoundError(SchedulingError):
    status_code = 404

    def __init__(self, lot_id: uuid.UUID) -> None:
        super().__init__("Lot not found")
        self.lot_id = lot_id


class ShowingNotFoundError(SchedulingError):
    status_code = 404

    def __init__(self, showing_id: uuid.UUID) -> None:
        super().__init__("Showing not found")
        self.showing_id = showing_id


class NoManagerAssignedError(SchedulingError):
    status_code = 400

    def __init__(self, park_id: uuid.UUID) -> None:
        super().__init__("No manager assigned to this park")
        self.park_id = park_id
