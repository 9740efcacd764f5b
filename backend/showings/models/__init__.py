"""SQLAlchemy models for Park Showings.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from showings.models.availability import AvailabilityRule
from showings.models.calendar_token import GoogleCalendarToken
from showings.models.park import Lot, ManagerAssignment, Park
from showings.models.showing import Showing, ShowingStatus
from showings.models.user import User

__all__ = [
    "AvailabilityRule",
    "GoogleCalendarToken",
    "Lot",
    "ManagerAssignment",
    "Park",
    "Showing",
    "ShowingStatus",
    "User",
]
