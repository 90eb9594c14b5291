"""Peptide protocol: what is dosed and on which recurrence rule."""

import enum
from datetime import date, datetime
from sqlalchemy import Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.types import JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pepmetrics.db.base import Base


class FrequencyType(str, enum.Enum):
    DAILY = "daily"
    SPECIFIC_DAYS = "specific-days"
    EVERY_X_DAYS = "every-x-days"
    CYCLING = "cycling"


class ProtocolStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"


class Protocol(Base):
    __tablename__ = "protocols"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    peptide_name: Mapped[str] = mapped_column(String(255), nullable=False)
    dose: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "250mcg"
    frequency_type: Mapped[str] = mapped_column(String(32), nullable=False, default=FrequencyType.DAILY.value)
    specific_days: Mapped[list | None] = mapped_column(JSON, nullable=True)  # ["monday", "thursday"]
    interval_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cycle_on_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cycle_off_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cycle_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    timing_preference: Mapped[str] = mapped_column(String(32), nullable=False, default="any-time")
    preferred_time: Mapped[str | None] = mapped_column(String(8), nullable=True)  # HH:MM
    doses_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ProtocolStatus.ACTIVE.value)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user: Mapped["User"] = relationship("User", back_populates="protocols")
    dose_logs: Mapped[list["DoseLog"]] = relationship(
        "DoseLog", back_populates="protocol", cascade="all, delete-orphan"
    )
