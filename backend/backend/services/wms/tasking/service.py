from __future__ import annotations

from sqlalchemy.orm import Session, selectinload

from app.core.errors import TaskNotFound
from app.db.models.docs import Order
from app.db.models.wms.tasking import (
    CLOSED_TASK_STATUSES,
    Task,
    TaskItem,
    TaskItemStatus,
    TaskStatus,
    TaskType,
)


def _iso(value):
    return value.isoformat() if value is not None else None


def item_view(ti: TaskItem, *, with_tags: bool = False) -> dict:
    out = {
        "id": ti.id,
        "order_item_id": ti.order_item_id,
        "sku_id": ti.sku_id,
        "sku_code": ti.sku.code if ti.sku else None,
        "sku_name": ti.sku.name if ti.sku else None,
        "bin_id": ti.bin_id,
        "bin_code": ti.bin.code if ti.bin else None,
        "quantity": ti.quantity,
        "quantity_scanned": ti.quantity_scanned,
        "reserved": len(ti.lock_tags),
        "status": ti.status.value,
    }
    if with_tags:
        out["lock_tags"] = [
            {
                "id": r.id,
                "lock_tag_id": r.lock_tag_id,
                "lock_tag_code": r.lock_tag_code,
                "scanned": r.scanned,
                "scanned_at": _iso(r.scanned_at),
            }
            for r in ti.lock_tags
        ]
    return out


def task_view(db: Session, task: Task, *, with_tags: bool = False) -> dict:
    items = [item_view(ti, with_tags=with_tags) for ti in task.items]
    order_number = None
    if task.order_id:
        order_number = db.query(Order.order_number).filter(Order.id == task.order_id).scalar()
    return {
        "id": task.id,
        "type": task.type.value,
        "status": task.status.value,
        "priority": task.priority.value,
        "assigned_to": task.assigned_to,
        "warehouse": task.warehouse,
        "zone": task.zone,
        "order_id": task.order_id,
        "order_number": order_number,
        "notes": task.notes,
        "started_at": _iso(task.started_at),
        "completed_at": _iso(task.completed_at),
        "created_at": _iso(task.created_at),
        "items": items,
        "progress": {
            "scanned": sum(i["quantity_scanned"] for i in items),
            "total": sum(i["quantity"] for i in items),
        },
        "unscanned_items": [i["id"] for i in items if i["status"] != TaskItemStatus.COMPLETED.value],
    }


def _with_items(q):
    return q.options(selectinload(Task.items).selectinload(TaskItem.lock_tags))


def get_task(db: Session, task_id: str, *, assigned_to: str | None = None) -> Task:
    q = db.query(Task).filter(Task.id == task_id)
    if assigned_to is not None:
        q = q.filter(Task.assigned_to == assigned_to)
    task = _with_items(q).first()
    if not task:
        raise TaskNotFound()
    return task


def get_my_tasks(
    db: Session,
    assignee: str,
    *,
    status: TaskStatus | None = None,
    type: TaskType | None = None,
) -> list[Task]:
    q = db.query(Task).filter(Task.assigned_to == assignee)
    if status is not None:
        q = q.filter(Task.status == status)
    if type is not None:
        q = q.filter(Task.type == type)
    return _with_items(q).order_by(Task.created_at.desc()).all()


def get_picking_tasks(db: Session, assignee: str) -> list[Task]:
    """Open pick tasks for one worker, newest first."""
    q = db.query(Task).filter(
        Task.assigned_to == assignee,
        Task.type == TaskType.PICK,
        Task.status.not_in(CLOSED_TASK_STATUSES),
    )
    return _with_items(q).order_by(Task.created_at.desc()).all()
