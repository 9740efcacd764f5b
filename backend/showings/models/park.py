"""Park, lot and manager-assignment models.

Only the columns the scheduling core reads are mapped here; the rest of the
park inventory is managed elsewhere.
"""

import uuid

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showings.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Park(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A manufactured-home or RV park containing lots."""

    __tablename__ = "parks"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), default=None)
    city: Mapped[str | None] = mapped_column(String(120), default=None)
    state: Mapped[str | None] = mapped_column(String(60), default=None)
    zip: Mapped[str | None] = mapped_column(String(20), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    lots: Mapped[list["Lot"]] = relationship(
        back_populates="park", lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )
    assignments: Mapped[list["ManagerAssignment"]] = relationship(
        back_populates="park", lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Park(id={self.id}, name={self.name!r})>"


class Lot(UUIDPrimaryKeyMixin, Base):
    """A single lot in a park; the bookable resource for showings."""

    __tablename__ = "lots"

    park_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name_or_number: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    park: Mapped[Park] = relationship(back_populates="lots", lazy="selectin")
    showings: Mapped[list["Showing"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="lot", lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )
    availability_rules: Mapped[list["AvailabilityRule"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="lot", lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Lot(id={self.id}, park_id={self.park_id}, name={self.name_or_number!r})>"


class ManagerAssignment(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Many-to-many link between managers and the parks they run."""

    __tablename__ = "manager_assignments"

    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    park_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("parks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(back_populates="assignments", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821
    park: Mapped[Park] = relationship(back_populates="assignments", lazy="selectin")

    __table_args__ = (UniqueConstraint("user_id", "park_id", name="uq_manager_assignments_user_park"),)
