from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, Integer, Boolean, DateTime, ForeignKey, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt, str_enum


class TaskType(str, enum.Enum):
    PICK = "Pick"
    PACK = "Pack"
    PUTAWAY = "Putaway"
    BIN_TO_BIN = "BinToBin"
    CYCLE_COUNT = "CycleCount"


class TaskStatus(str, enum.Enum):
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


OPEN_TASK_STATUSES = (TaskStatus.PENDING, TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)
CLOSED_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class TaskPriority(str, enum.Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


class TaskItemStatus(str, enum.Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"


class ExceptionStatus(str, enum.Enum):
    PENDING = "Pending"
    RESOLVED = "Resolved"


class Task(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "wms_task"
    type: Mapped[TaskType] = mapped_column(str_enum(TaskType), nullable=False, index=True)
    status: Mapped[TaskStatus] = mapped_column(str_enum(TaskStatus), default=TaskStatus.PENDING, nullable=False, index=True)
    priority: Mapped[TaskPriority] = mapped_column(str_enum(TaskPriority), default=TaskPriority.NORMAL, nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    warehouse: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    zone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # structured link to the order this task fulfils; notes are display only
    order_id: Mapped[str | None] = mapped_column(ForeignKey("wms_order.id"), nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(String(512), nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["TaskItem"]] = relationship(
        back_populates="task", cascade="all, delete-orphan", order_by="TaskItem.created_at"
    )


class TaskItem(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "task_item"
    task_id: Mapped[str] = mapped_column(ForeignKey("wms_task.id"), nullable=False, index=True)
    order_item_id: Mapped[str | None] = mapped_column(ForeignKey("order_item.id"), nullable=True, index=True)
    sku_id: Mapped[str] = mapped_column(ForeignKey("sku.id"), nullable=False, index=True)
    bin_id: Mapped[str] = mapped_column(ForeignKey("bin.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_scanned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[TaskItemStatus] = mapped_column(
        str_enum(TaskItemStatus), default=TaskItemStatus.PENDING, nullable=False
    )

    task: Mapped[Task] = relationship(back_populates="items")
    sku = relationship("Sku")
    bin = relationship("Bin")
    lock_tags: Mapped[list["TaskItemLockTag"]] = relationship(
        back_populates="task_item", cascade="all, delete-orphan", order_by="TaskItemLockTag.created_at"
    )


class TaskItemLockTag(Base, HasId, HasCreatedAt):
    """Reservation of one LockTag against one TaskItem."""

    __tablename__ = "task_item_lock_tag"
    task_item_id: Mapped[str] = mapped_column(ForeignKey("task_item.id"), nullable=False, index=True)
    lock_tag_id: Mapped[str] = mapped_column(ForeignKey("lock_tag.id"), nullable=False, index=True)
    lock_tag_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    scanned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    task_item: Mapped[TaskItem] = relationship(back_populates="lock_tags")

    __table_args__ = (UniqueConstraint("task_item_id", "lock_tag_id", name="uq_task_item_lock_tag"),)


class TaskException(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "task_exception"
    task_id: Mapped[str | None] = mapped_column(ForeignKey("wms_task.id"), nullable=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)  # Damage|Missing|WrongItem|...|SHORT_ALLOCATION
    status: Mapped[ExceptionStatus] = mapped_column(
        str_enum(ExceptionStatus), default=ExceptionStatus.PENDING, nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(512), nullable=False)
    sku_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    lock_tag_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    bin_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    resolved_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


Index("ix_task_assignee_status", Task.assigned_to, Task.status)
