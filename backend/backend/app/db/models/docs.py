from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.db.models.common import HasId, HasCreatedAt, HasUpdatedAt, str_enum
from app.db.models.wms.tasking import TaskPriority


class OrderStatus(str, enum.Enum):
    ASSIGNED = "Assigned"
    PICKED = "Picked"
    PACKED = "Packed"
    SHIPPED = "Shipped"


class OrderItemStatus(str, enum.Enum):
    PENDING = "Pending"
    PICKED = "Picked"


class Order(Base, HasId, HasCreatedAt, HasUpdatedAt):
    __tablename__ = "wms_order"
    order_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(str_enum(OrderStatus), default=OrderStatus.ASSIGNED, nullable=False, index=True)
    priority: Mapped[TaskPriority] = mapped_column(str_enum(TaskPriority), default=TaskPriority.URGENT, nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    warehouse: Mapped[str] = mapped_column(String(32), nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # wms_task.order_id points back here; the cycle is broken with ALTER on create
    task_id: Mapped[str | None] = mapped_column(
        ForeignKey("wms_task.id", use_alter=True, name="fk_wms_order_task_id"),
        unique=True,
        nullable=True,
    )

    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    picked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.created_at"
    )


class OrderItem(Base, HasId, HasCreatedAt):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(ForeignKey("wms_order.id"), nullable=False, index=True)
    sku_id: Mapped[str] = mapped_column(ForeignKey("sku.id"), nullable=False, index=True)
    bin_id: Mapped[str] = mapped_column(ForeignKey("bin.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[OrderItemStatus] = mapped_column(
        str_enum(OrderItemStatus), default=OrderItemStatus.PENDING, nullable=False
    )

    order: Mapped[Order] = relationship(back_populates="items")
    sku = relationship("Sku")
    bin = relationship("Bin")


Index("ix_order_assignee_status", Order.assigned_to, Order.status)
