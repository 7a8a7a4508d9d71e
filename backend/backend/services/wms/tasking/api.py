from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.wms.tasking import TaskStatus, TaskType
from services.wms.orders.coordinator import order_view, packing_queue
from services.wms.scan.pick_scan import cancel_task, complete_task, process_scan
from services.wms.security.security import require_operation
from services.wms.shifts.service import require_active_shift
from services.wms.tasking.service import get_my_tasks, get_picking_tasks, get_task, task_view

router = APIRouter(prefix="/tasks", tags=["tasks"])


class ScanIn(BaseModel):
    code: str


class CancelIn(BaseModel):
    reason: str | None = None


@router.get("")
def my_tasks(
    status: TaskStatus | None = None,
    type: TaskType | None = None,
    db: Session = Depends(get_db),
    p=Depends(require_operation("tasks.work")),
):
    tasks = get_my_tasks(db, p.user_id, status=status, type=type)
    return {"success": True, "data": [task_view(db, t) for t in tasks]}


@router.get("/picking")
def picking(db: Session = Depends(get_db), p=Depends(require_operation("tasks.work"))):
    return {"success": True, "data": [task_view(db, t) for t in get_picking_tasks(db, p.user_id)]}


@router.get("/packing-queue")
def packing(db: Session = Depends(get_db), p=Depends(require_operation("tasks.work"))):
    return {"success": True, "data": [order_view(db, o, with_task=False) for o in packing_queue(db, p.user_id)]}


@router.get("/{task_id}")
def task_detail(task_id: str, db: Session = Depends(get_db), p=Depends(require_operation("tasks.work"))):
    task = get_task(db, task_id, assigned_to=p.user_id)
    return {"success": True, "data": task_view(db, task, with_tags=True)}


@router.post("/{task_id}/scan")
def scan(task_id: str, payload: ScanIn, db: Session = Depends(get_db), p=Depends(require_active_shift)):
    result = process_scan(db, task_id, p.user_id, payload.code)
    return {"success": True, "data": result.as_dict()}


@router.post("/{task_id}/complete")
def complete(task_id: str, db: Session = Depends(get_db), p=Depends(require_active_shift)):
    task = complete_task(db, task_id, p.user_id)
    return {"success": True, "data": task_view(db, task)}


@router.post("/{task_id}/cancel")
def cancel(
    task_id: str,
    payload: CancelIn | None = None,
    db: Session = Depends(get_db),
    p=Depends(require_operation("tasks.cancel")),
):
    task = cancel_task(db, task_id, actor=p.user_id, reason=payload.reason if payload else None)
    return {"success": True, "data": task_view(db, task)}
