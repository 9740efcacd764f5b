"""Google Calendar OAuth tokens stored per manager."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showings.database import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class GoogleCalendarToken(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Offline-access token pair granted by a manager's Google account."""

    __tablename__ = "google_calendar_tokens"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False, default="")
    token_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Bearer")
    calendar_id: Mapped[str] = mapped_column(String(255), nullable=False, default="primary")

    user: Mapped["User"] = relationship(back_populates="calendar_token", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return f"<GoogleCalendarToken(user_id={self.user_id}, expires_at={self.expires_at})>"
