"""Holiday ORM model: CustomHoliday (institution closed days)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hr_portal.database import Base


class CustomHoliday(Base):
    """A day the institution is closed in addition to the legal holidays."""

    __tablename__ = "custom_holidays"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    holiday_date: Mapped[date] = mapped_column(sa.Date, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False, default="")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id", ondelete="SET NULL"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<CustomHoliday {self.holiday_date} {self.name!r}>"
