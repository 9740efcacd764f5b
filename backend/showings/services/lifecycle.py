"""Showing status transitions.

SCHEDULED is the only non-terminal state; CANCELED and COMPLETED accept no
further transitions, and nothing ever moves back to SCHEDULED.
"""

from showings.models.showing import ShowingStatus
from showings.services.errors import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[ShowingStatus, frozenset[ShowingStatus]] = {
    ShowingStatus.SCHEDULED: frozenset({ShowingStatus.CANCELED, ShowingStatus.COMPLETED}),
    ShowingStatus.CANCELED: frozenset(),
    ShowingStatus.COMPLETED: frozenset(),
}


def can_transition(current: ShowingStatus | str, target: ShowingStatus | str) -> bool:
    return ShowingStatus(target) in ALLOWED_TRANSITIONS[ShowingStatus(current)]


def ensure_transition(current: ShowingStatus | str, target: ShowingStatus | str) -> ShowingStatus:
    """Return ``target`` as a ``ShowingStatus`` or raise ``InvalidTransitionError``."""
    if not can_transition(current, target):
        raise InvalidTransitionError(ShowingStatus(current).value, ShowingStatus(target).value)
    return ShowingStatus(target)


def is_terminal(status: ShowingStatus | str) -> bool:
    return not ALLOWED_TRANSITIONS[ShowingStatus(status)]
