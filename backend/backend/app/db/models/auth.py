from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt, str_enum


class Role(str, enum.Enum):
    PICKER_PACKER = "PickerPacker"
    ASM = "ASM"
    STORE_MANAGER = "StoreManager"
    OPS_ADMIN = "OpsAdmin"


class UserStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    ACTIVE = "Active"
    INACTIVE = "Inactive"


# Statuses that may log in and receive work.
WORKING_STATUSES = (UserStatus.APPROVED, UserStatus.ACTIVE)


class User(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "users"

    employee_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    pin_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    role: Mapped[Role] = mapped_column(str_enum(Role), default=Role.PICKER_PACKER, nullable=False, index=True)
    status: Mapped[UserStatus] = mapped_column(str_enum(UserStatus), default=UserStatus.PENDING, nullable=False, index=True)
    warehouse: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    @property
    def can_work(self) -> bool:
        return self.status in WORKING_STATUSES
