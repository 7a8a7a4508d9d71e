from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.audit import audit
from app.core.errors import (
    CannotResolveException,
    ExceptionNotFound,
    InvalidInput,
    MissingRequiredField,
    TaskNotFound,
)
from app.core.logging import get_logger
from app.db.models.common import utcnow
from app.db.models.wms.tasking import (
    CLOSED_TASK_STATUSES,
    ExceptionStatus,
    Task,
    TaskException,
    TaskItem,
    TaskItemLockTag,
)
from app.db.session import atomic
from services.wms.inventory_ops.ledger import InventoryLedger
from services.wms.orders.coordinator import SHORT_ALLOCATION

log = get_logger("wms.exceptions")

# kinds a worker may report from the floor
REPORTABLE_TYPES = ("Damage", "Missing", "WrongItem", "TagReplacement", "Overstock", "Understock", "Other")


def exception_view(e: TaskException) -> dict:
    return {
        "id": e.id,
        "type": e.type,
        "status": e.status.value,
        "task_id": e.task_id,
        "user_id": e.user_id,
        "description": e.description,
        "sku_id": e.sku_id,
        "lock_tag_id": e.lock_tag_id,
        "bin_id": e.bin_id,
        "quantity": e.quantity,
        "data": e.data,
        "resolved_by": e.resolved_by,
        "resolved_at": e.resolved_at.isoformat() if e.resolved_at else None,
        "created_at": e.created_at.isoformat() if e.created_at else None,
    }


def report_exception(
    db: Session,
    *,
    user_id: str,
    type: str,
    description: str,
    task_id: str | None = None,
    sku_id: str | None = None,
    lock_tag_id: str | None = None,
    bin_id: str | None = None,
    quantity: int | None = None,
    data: dict | None = None,
) -> TaskException:
    if not type or not description:
        raise MissingRequiredField("type and description are required")
    if type not in REPORTABLE_TYPES:
        raise InvalidInput(f"Unknown exception type {type}", details={"allowed": list(REPORTABLE_TYPES)})
    if quantity is not None and quantity < 0:
        raise InvalidInput("quantity cannot be negative")
    if task_id and not db.query(Task.id).filter(Task.id == task_id).first():
        raise TaskNotFound()

    with atomic(db):
        e = TaskException(
            task_id=task_id,
            user_id=user_id,
            type=type,
            status=ExceptionStatus.PENDING,
            description=description,
            sku_id=sku_id,
            lock_tag_id=lock_tag_id,
            bin_id=bin_id,
            quantity=quantity,
            data=data or {},
        )
        db.add(e)
    log.info("exception %s reported on task %s by %s", type, task_id, user_id)
    return e


def list_exceptions(
    db: Session,
    *,
    user_id: str | None = None,
    status: ExceptionStatus | None = None,
    type: str | None = None,
    task_id: str | None = None,
    limit: int = 200,
) -> list[TaskException]:
    q = db.query(TaskException)
    if user_id:
        q = q.filter(TaskException.user_id == user_id)
    if status:
        q = q.filter(TaskException.status == status)
    if type:
        q = q.filter(TaskException.type == type)
    if task_id:
        q = q.filter(TaskException.task_id == task_id)
    return q.order_by(TaskException.created_at.desc()).limit(limit).all()


def _top_up(db: Session, e: TaskException) -> dict:
    """Try to reserve what a short allocation is still missing."""
    ti = db.query(TaskItem).filter(TaskItem.id == (e.data or {}).get("task_item_id")).first()
    if ti is None:
        return {"reallocated": 0, "remaining": e.quantity or 0}
    task = db.query(Task).filter(Task.id == ti.task_id).first()
    reserved = (
        db.query(func.count(TaskItemLockTag.id)).filter(TaskItemLockTag.task_item_id == ti.id).scalar() or 0
    )
    need = ti.quantity - reserved
    if need <= 0 or task is None or task.status in CLOSED_TASK_STATUSES:
        return {"reallocated": 0, "remaining": max(need, 0)}

    allocation = InventoryLedger(db).allocate(ti.sku_id, ti.bin_id, need)
    for tag in allocation.tags:
        db.add(TaskItemLockTag(task_item_id=ti.id, lock_tag_id=tag.id, lock_tag_code=tag.tag_code, scanned=False))
    db.flush()
    return {"reallocated": allocation.allocated, "remaining": allocation.shortfall}


def resolve_exception(
    db: Session,
    exception_id: str,
    *,
    actor: str,
    resolution: str | None = None,
    reallocate: bool = True,
) -> TaskException:
    """Close an exception.

    For SHORT_ALLOCATION, first re-run allocation for the missing quantity.
    If units are still missing the exception stays Pending with the new
    shortfall, unless ``resolution`` explains why it may close short.
    """
    with atomic(db):
        e = db.query(TaskException).filter(TaskException.id == exception_id).with_for_update().first()
        if not e:
            raise ExceptionNotFound()
        if e.status != ExceptionStatus.PENDING:
            raise CannotResolveException(f"Exception is already {e.status.value}")

        outcome: dict = {}
        if e.type == SHORT_ALLOCATION:
            if reallocate:
                outcome = _top_up(db, e)
            remaining = outcome.get("remaining", e.quantity or 0)
            if remaining > 0 and not resolution:
                if not outcome.get("reallocated"):
                    raise CannotResolveException(
                        f"{remaining} units are still missing; give a resolution to close it short",
                        details={"remaining": remaining},
                    )
                e.quantity = remaining
                e.data = {**(e.data or {}), **outcome}
                audit(db, actor=actor, action="EXCEPTION_TOPPED_UP", entity_type="TaskException",
                      entity_id=e.id, payload={"type": e.type, **outcome})
                log.info("exception %s topped up by %s, %s still missing", exception_id, actor, remaining)
                return e

        e.status = ExceptionStatus.RESOLVED
        e.resolved_by = actor
        e.resolved_at = utcnow()
        e.data = {**(e.data or {}), "resolution": resolution, **outcome}
        audit(
            db,
            actor=actor,
            action="EXCEPTION_RESOLVED",
            entity_type="TaskException",
            entity_id=e.id,
            payload={"type": e.type, "resolution": resolution, **outcome},
        )
    log.info("exception %s resolved by %s", exception_id, actor)
    return e
