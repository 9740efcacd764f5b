"""Showing model: scheduled viewings of a lot."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showings.database import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin


class ShowingStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    CANCELED = "CANCELED"
    COMPLETED = "COMPLETED"


class Showing(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A client appointment to view a lot during ``[start_time, end_time)``.

    ``calendar_*`` columns are annotations written by the calendar sync
    worker; they never influence scheduling decisions.
    """

    __tablename__ = "showings"

    lot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lots.id", ondelete="CASCADE"),
        nullable=False,
    )
    manager_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=ShowingStatus.SCHEDULED.value,
        nullable=False,
        index=True,
    )  # SCHEDULED, CANCELED, COMPLETED
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str] = mapped_column(String(50), nullable=False)

    calendar_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    calendar_html_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    calendar_sync_error: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Relationships
    lot: Mapped["Lot"] = relationship(back_populates="showings", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index("ix_showings_lot_time", "lot_id", "start_time", "end_time"),
        CheckConstraint("start_time < end_time", name="ck_showings_time_order"),
    )

    @property
    def is_scheduled(self) -> bool:
        return self.status == ShowingStatus.SCHEDULED.value

    def __repr__(self) -> str:
        return f"<Showing(id={self.id}, lot_id={self.lot_id}, status={self.status}, start={self.start_time})>"
