from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.auth import Role
from app.db.models.wms.tasking import ExceptionStatus
from services.wms.security.security import require_operation
from services.wms.tasking.exceptions import (
    exception_view,
    list_exceptions,
    report_exception,
    resolve_exception,
)

router = APIRouter(prefix="/exceptions", tags=["exceptions"])


class ReportIn(BaseModel):
    type: str
    description: str
    task_id: str | None = None
    sku_id: str | None = None
    lock_tag_id: str | None = None
    bin_id: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    data: dict | None = None


class ResolveIn(BaseModel):
    resolution: str | None = None
    reallocate: bool = True


@router.post("")
def report(payload: ReportIn, db: Session = Depends(get_db), p=Depends(require_operation("exceptions.report"))):
    e = report_exception(db, user_id=p.user_id, **payload.model_dump())
    return {"success": True, "data": exception_view(e)}


@router.get("")
def list_(
    status: ExceptionStatus | None = None,
    type: str | None = None,
    task_id: str | None = None,
    db: Session = Depends(get_db),
    p=Depends(require_operation("exceptions.report")),
):
    # workers see their own reports; supervisors see everything
    user_id = p.user_id if p.role == Role.PICKER_PACKER.value else None
    rows = list_exceptions(db, user_id=user_id, status=status, type=type, task_id=task_id)
    return {"success": True, "data": [exception_view(e) for e in rows]}


@router.post("/{exception_id}/resolve")
def resolve(
    exception_id: str,
    payload: ResolveIn | None = None,
    db: Session = Depends(get_db),
    p=Depends(require_operation("exceptions.resolve")),
):
    payload = payload or ResolveIn()
    e = resolve_exception(
        db, exception_id, actor=p.user_id, resolution=payload.resolution, reallocate=payload.reallocate
    )
    return {"success": True, "data": exception_view(e)}
