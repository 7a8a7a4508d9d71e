from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import STRICT_ALLOCATION
from app.core.errors import EmptyOrder, InsufficientStock, NoPickersAvailable
from app.core.logging import get_logger
from app.db.models.auth import Role, User, WORKING_STATUSES
from app.db.models.docs import Order, OrderItem
from app.db.models.wms.tasking import (
    OPEN_TASK_STATUSES,
    Task,
    TaskItem,
    TaskItemLockTag,
    TaskItemStatus,
    TaskStatus,
    TaskType,
)
from services.wms.inventory_ops.ledger import InventoryLedger

log = get_logger("wms.assignment")

T = TypeVar("T")


@dataclass
class Shortage:
    task_item_id: str
    order_item_id: str | None
    sku_id: str
    bin_id: str
    requested: int
    allocated: int

    @property
    def shortfall(self) -> int:
        return self.requested - self.allocated

    def as_dict(self) -> dict:
        return {
            "task_item_id": self.task_item_id,
            "order_item_id": self.order_item_id,
            "sku_id": self.sku_id,
            "bin_id": self.bin_id,
            "requested": self.requested,
            "allocated": self.allocated,
            "shortfall": self.shortfall,
        }


@dataclass
class PickTaskResult:
    task: Task
    shortages: list[Shortage] = field(default_factory=list)


def pick_assignee(pool: Sequence[T], assigned_count: int) -> T:
    """Idle-first, then round-robin.

    The first ``len(pool)`` assignments go to distinct workers; after that the
    pool is cycled in order.
    """
    if not pool:
        raise NoPickersAvailable()
    return pool[assigned_count % len(pool)]


def available_pickers(db: Session, warehouse: str | None = None) -> list[User]:
    """Approved PickerPackers, least busy first (open task count, then employee id)."""
    open_tasks = (
        db.query(Task.assigned_to.label("user_id"), func.count(Task.id).label("n"))
        .filter(Task.status.in_(OPEN_TASK_STATUSES), Task.assigned_to.is_not(None))
        .group_by(Task.assigned_to)
        .subquery()
    )
    q = (
        db.query(User)
        .outerjoin(open_tasks, open_tasks.c.user_id == User.id)
        .filter(User.role == Role.PICKER_PACKER, User.status.in_(WORKING_STATUSES))
    )
    if warehouse:
        q = q.filter(User.warehouse == warehouse)
    return q.order_by(func.coalesce(open_tasks.c.n, 0), User.employee_id).all()


class TaskAssigner:
    """Creates pick tasks for one batch of orders.

    ``assigned_count`` lives on the instance so a batch shares one rotation;
    a fresh assigner starts again at the least busy worker.
    """

    def __init__(
        self,
        db: Session,
        pool: Sequence[User],
        *,
        ledger: InventoryLedger | None = None,
        strict: bool | None = None,
    ):
        self.db = db
        self.pool = list(pool)
        self.ledger = ledger or InventoryLedger(db)
        self.strict = STRICT_ALLOCATION if strict is None else strict
        self.assigned_count = 0

    def next_assignee(self) -> User:
        return pick_assignee(self.pool, self.assigned_count)

    def create_pick_task(self, order: Order, items: Sequence[OrderItem], *, zone: str | None = None) -> PickTaskResult:
        if not items:
            raise EmptyOrder()
        worker = self.next_assignee()

        task = Task(
            type=TaskType.PICK,
            status=TaskStatus.ASSIGNED,
            priority=order.priority,
            assigned_to=worker.id,
            warehouse=order.warehouse,
            zone=zone or items[0].bin.zone,
            order_id=order.id,
            notes=f"Order {order.order_number}",
        )
        self.db.add(task)
        self.db.flush()

        shortages: list[Shortage] = []
        for oi in items:
            ti = TaskItem(
                task_id=task.id,
                order_item_id=oi.id,
                sku_id=oi.sku_id,
                bin_id=oi.bin_id,
                quantity=oi.quantity,
                quantity_scanned=0,
                status=TaskItemStatus.PENDING,
            )
            self.db.add(ti)
            self.db.flush()

            allocation = self.ledger.allocate(oi.sku_id, oi.bin_id, oi.quantity)
            for tag in allocation.tags:
                self.db.add(
                    TaskItemLockTag(
                        task_item_id=ti.id,
                        lock_tag_id=tag.id,
                        lock_tag_code=tag.tag_code,
                        scanned=False,
                    )
                )
            if allocation.is_short:
                shortages.append(
                    Shortage(
                        task_item_id=ti.id,
                        order_item_id=oi.id,
                        sku_id=oi.sku_id,
                        bin_id=oi.bin_id,
                        requested=oi.quantity,
                        allocated=allocation.allocated,
                    )
                )
        self.db.flush()

        if shortages and self.strict:
            raise InsufficientStock(
                f"Insufficient stock for order {order.order_number}",
                details={"shortages": [s.as_dict() for s in shortages]},
            )

        self.assigned_count += 1
        log.info(
            "pick task %s for order %s assigned to %s (%s items, %s short)",
            task.id, order.order_number, worker.employee_id, len(items), len(shortages),
        )
        return PickTaskResult(task=task, shortages=shortages)
