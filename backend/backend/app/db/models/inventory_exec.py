from __future__ import annotations

import enum

from sqlalchemy import String, Integer, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt, str_enum


# NOTE:
# LockTag rows are the physical inventory truth. Bin.current_quantity is a
# display counter maintained by putaway/pick flows, never used for allocation.


class LockTagStatus(str, enum.Enum):
    IN_STOCK = "InStock"
    ALLOCATED = "Allocated"
    CONSUMED = "Consumed"


class Sku(Base, HasId, HasCreatedAt):
    __tablename__ = "sku"

    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(16), default="EA", nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)


class Bin(Base, HasId, HasCreatedAt):
    __tablename__ = "bin"

    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    warehouse: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    zone: Mapped[str] = mapped_column(String(32), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    current_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(24), default="Active", nullable=False)


class LockTag(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "lock_tag"

    tag_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    sku_id: Mapped[str] = mapped_column(ForeignKey("sku.id"), nullable=False, index=True)
    bin_id: Mapped[str] = mapped_column(ForeignKey("bin.id"), nullable=False, index=True)
    status: Mapped[LockTagStatus] = mapped_column(
        str_enum(LockTagStatus), default=LockTagStatus.IN_STOCK, nullable=False, index=True
    )

    sku: Mapped[Sku] = relationship()
    bin: Mapped[Bin] = relationship()


# allocation scans (sku, bin, status) in insertion order
Index("ix_lock_tag_pool", LockTag.sku_id, LockTag.bin_id, LockTag.status, LockTag.created_at)
