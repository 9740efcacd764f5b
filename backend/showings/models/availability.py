"""Availability rules: open or blocked windows on a lot."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showings.database import Base, UTCDateTime, UUIDPrimaryKeyMixin


class AvailabilityRule(UUIDPrimaryKeyMixin, Base):
    """Marks ``[start_time, end_time)`` on a lot as an open slot or blocked."""

    __tablename__ = "availability_rules"

    lot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lots.id", ondelete="CASCADE"),
        nullable=False,
    )
    rule_type: Mapped[str] = mapped_column(String(20), nullable=False)  # OPEN_SLOT, BLOCKED
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    lot: Mapped["Lot"] = relationship(back_populates="availability_rules", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index("ix_availability_rules_lot_time", "lot_id", "start_time", "end_time"),
        CheckConstraint("start_time < end_time", name="ck_availability_rules_time_order"),
    )

    def __repr__(self) -> str:
        return f"<AvailabilityRule(id={self.id}, lot_id={self.lot_id}, type={self.rule_type})>"
