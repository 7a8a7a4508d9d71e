from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, Float, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt, str_enum


class ShiftStatus(str, enum.Enum):
    ACTIVE = "Active"
    ENDED = "Ended"


class Shift(Base, HasId, HasCreatedAt):
    __tablename__ = "shift"
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[ShiftStatus] = mapped_column(str_enum(ShiftStatus), default=ShiftStatus.ACTIVE, nullable=False, index=True)
    warehouse: Mapped[str] = mapped_column(String(32), nullable=False)
    zone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # reference to an externally stored photo; bytes never land here
    selfie_uri: Mapped[str | None] = mapped_column(String(512), nullable=True)
    end_selfie_uri: Mapped[str | None] = mapped_column(String(512), nullable=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    geo_validated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class GeofenceSetting(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "geofence_setting"
    warehouse: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius_meters: Mapped[int] = mapped_column(Integer, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)


Index("ix_shift_user_status", Shift.user_id, Shift.status)
