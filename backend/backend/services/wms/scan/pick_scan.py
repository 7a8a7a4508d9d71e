from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy.orm import Session

from app.core.audit import audit
from app.core.errors import InvalidTaskOperation, MissingRequiredField, TaskAlreadyCompleted, TaskNotFound
from app.core.logging import get_logger
from app.db.models.common import utcnow
from app.db.models.wms.tasking import (
    CLOSED_TASK_STATUSES,
    Task,
    TaskItem,
    TaskItemLockTag,
    TaskItemStatus,
    TaskStatus,
    TaskType,
)
from app.db.session import atomic
from services.wms.inventory_ops.ledger import InventoryLedger
from services.wms.orders.coordinator import on_task_completed

log = get_logger("wms.scan")

NOT_IN_TASK = "Lock tag not found in this task"


@dataclass
class ScanResult:
    matched: bool
    task_id: str
    item_id: str | None = None
    sku: str | None = None
    action: str | None = None  # scanned | already_scanned
    new_count: int | None = None
    quantity: int | None = None
    item_completed: bool = False
    message: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


def _assigned_task(db: Session, task_id: str, worker_id: str) -> Task:
    task = (
        db.query(Task)
        .filter(Task.id == task_id, Task.assigned_to == worker_id)
        .with_for_update()
        .first()
    )
    if not task:
        raise TaskNotFound()
    return task


def process_scan(db: Session, task_id: str, worker_id: str, code: str) -> ScanResult:
    """Apply one decoded barcode to a task.

    Progress counts distinct reservation rows: only the Unscanned -> Scanned
    flip of a TaskItemLockTag moves the item counter, so scanning the same
    tag twice never inflates it.
    """
    code = (code or "").strip()
    if not code:
        raise MissingRequiredField("code is required")

    with atomic(db):
        task = _assigned_task(db, task_id, worker_id)
        if task.status in CLOSED_TASK_STATUSES:
            raise InvalidTaskOperation(f"Task is {task.status.value}")

        row = (
            db.query(TaskItemLockTag)
            .join(TaskItem, TaskItem.id == TaskItemLockTag.task_item_id)
            .filter(TaskItem.task_id == task.id, TaskItemLockTag.lock_tag_code == code)
            .first()
        )
        if row is None:
            log.debug("scan %s on task %s matched nothing", code, task.id)
            return ScanResult(matched=False, task_id=task.id, message=NOT_IN_TASK)

        item = db.query(TaskItem).filter(TaskItem.id == row.task_item_id).with_for_update().first()
        sku_code = item.sku.code if item.sku else None
        now = utcnow()

        flipped = (
            db.query(TaskItemLockTag)
            .filter(TaskItemLockTag.id == row.id, TaskItemLockTag.scanned == False)  # noqa: E712
            .update({TaskItemLockTag.scanned: True, TaskItemLockTag.scanned_at: now}, synchronize_session=False)
        )
        if flipped != 1:
            return ScanResult(
                matched=True,
                task_id=task.id,
                item_id=item.id,
                sku=sku_code,
                action="already_scanned",
                new_count=item.quantity_scanned,
                quantity=item.quantity,
                item_completed=item.status == TaskItemStatus.COMPLETED,
                message=f"Already scanned {item.quantity_scanned}/{item.quantity}",
            )

        # clamp in the WHERE clause; the read-modify-write never happens in Python
        (
            db.query(TaskItem)
            .filter(TaskItem.id == item.id, TaskItem.quantity_scanned < TaskItem.quantity)
            .update({TaskItem.quantity_scanned: TaskItem.quantity_scanned + 1}, synchronize_session=False)
        )
        db.refresh(item)
        db.expire(row)

        if item.quantity_scanned >= item.quantity and item.status != TaskItemStatus.COMPLETED:
            item.status = TaskItemStatus.COMPLETED
            log.info("task item %s complete (%s/%s)", item.id, item.quantity_scanned, item.quantity)

        if not InventoryLedger(db).consume(row.lock_tag_id):
            log.warning("lock tag %s was not Allocated when scanned on task %s", code, task.id)

        if task.status in (TaskStatus.PENDING, TaskStatus.ASSIGNED):
            task.status = TaskStatus.IN_PROGRESS
            if task.started_at is None:
                task.started_at = now
        db.flush()

        result = ScanResult(
            matched=True,
            task_id=task.id,
            item_id=item.id,
            sku=sku_code,
            action="scanned",
            new_count=item.quantity_scanned,
            quantity=item.quantity,
            item_completed=item.status == TaskItemStatus.COMPLETED,
            message=f"Scanned {item.quantity_scanned}/{item.quantity}",
        )
    return result


def complete_task(db: Session, task_id: str, worker_id: str) -> Task:
    """Close a task and cascade to its order.

    Completing with unscanned items is allowed; callers inspect the task view.
    """
    with atomic(db):
        task = _assigned_task(db, task_id, worker_id)
        touched = (
            db.query(Task)
            .filter(Task.id == task.id, Task.status.not_in(CLOSED_TASK_STATUSES))
            .update({Task.status: TaskStatus.COMPLETED, Task.completed_at: utcnow()}, synchronize_session=False)
        )
        db.refresh(task)
        if touched != 1:
            if task.status == TaskStatus.COMPLETED:
                log.warning("task %s completed twice by %s", task.id, worker_id)
                raise TaskAlreadyCompleted()
            raise InvalidTaskOperation(f"Task is {task.status.value}")

        if task.type == TaskType.PICK:
            on_task_completed(db, task)

        unscanned = [ti.id for ti in task.items if ti.status != TaskItemStatus.COMPLETED]
        if unscanned:
            log.warning("task %s completed with %s unscanned items", task.id, len(unscanned))
        audit(
            db,
            actor=worker_id,
            action="TASK_COMPLETED",
            entity_type="Task",
            entity_id=task.id,
            payload={"order_id": task.order_id, "unscanned_items": unscanned},
        )
    log.info("task %s completed", task_id)
    return task


def cancel_task(db: Session, task_id: str, *, actor: str, reason: str | None = None) -> Task:
    """Cancel an open task and give its unscanned reservations back to the pool."""
    with atomic(db):
        task = db.query(Task).filter(Task.id == task_id).with_for_update().first()
        if not task:
            raise TaskNotFound()
        touched = (
            db.query(Task)
            .filter(Task.id == task.id, Task.status.not_in(CLOSED_TASK_STATUSES))
            .update({Task.status: TaskStatus.CANCELLED}, synchronize_session=False)
        )
        db.refresh(task)
        if touched != 1:
            raise InvalidTaskOperation(f"Task is {task.status.value}")

        pending = (
            db.query(TaskItemLockTag)
            .join(TaskItem, TaskItem.id == TaskItemLockTag.task_item_id)
            .filter(TaskItem.task_id == task.id, TaskItemLockTag.scanned == False)  # noqa: E712
            .all()
        )
        released = InventoryLedger(db).release([r.lock_tag_id for r in pending])
        for r in pending:
            db.delete(r)

        audit(
            db,
            actor=actor,
            action="TASK_CANCELLED",
            entity_type="Task",
            entity_id=task.id,
            payload={"reason": reason, "released": released},
        )
    log.info("task %s cancelled by %s, %s tags released", task_id, actor, released)
    return task
