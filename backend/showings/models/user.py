"""User model: park managers and administrators."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showings.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An admin or a manager assigned to one or more parks."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="MANAGER", nullable=False)  # ADMIN, MANAGER
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    assignments: Mapped[list["ManagerAssignment"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="user", lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )
    calendar_token: Mapped["GoogleCalendarToken | None"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="user", uselist=False, lazy="raise_on_sql", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
