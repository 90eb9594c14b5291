from __future__ import annotations

from datetime import datetime
from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pepmetrics.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)

    garmin_data: Mapped[list["GarminDailyData"]] = relationship(
        "GarminDailyData", back_populates="user", cascade="all, delete-orphan"
    )
    garmin_activities: Mapped[list["GarminActivity"]] = relationship(
        "GarminActivity", back_populates="user", cascade="all, delete-orphan"
    )
    garmin_imports: Mapped[list["GarminImport"]] = relationship(
        "GarminImport", back_populates="user", cascade="all, delete-orphan"
    )
    protocols: Mapped[list["Protocol"]] = relationship(
        "Protocol", back_populates="user", cascade="all, delete-orphan"
    )
    dose_logs: Mapped[list["DoseLog"]] = relationship(
        "DoseLog", back_populates="user", cascade="all, delete-orphan"
    )
    ai_insights: Mapped[list["AIInsight"]] = relationship(
        "AIInsight", back_populates="user", cascade="all, delete-orphan"
    )
