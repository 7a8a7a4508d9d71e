from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db.session import get_db
from services.auth.service import decide_user, list_users, pending_users, user_view
from services.wms.security.security import require_operation
from services.wms.shifts.service import delete_geofence, geofence_view, get_geofence, list_geofences, upsert_geofence

router = APIRouter(prefix="/admin", tags=["admin"])


class GeofenceIn(BaseModel):
    warehouse: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_meters: int | None = Field(default=None, gt=0)
    enabled: bool = True


@router.get("/users")
def users(db: Session = Depends(get_db), p=Depends(require_operation("users.approve"))):
    # user_view never carries the PIN hash
    return {"success": True, "data": [user_view(u) for u in list_users(db)]}


@router.get("/pending-approvals")
def pending(db: Session = Depends(get_db), p=Depends(require_operation("users.approve"))):
    return {"success": True, "data": [user_view(u) for u in pending_users(db)]}


@router.post("/approve/{user_id}")
def approve(
    user_id: str,
    action: Literal["approve", "reject"] = "approve",
    db: Session = Depends(get_db),
    p=Depends(require_operation("users.approve")),
):
    user = decide_user(db, user_id, action=action, actor=p.user_id)
    return {"success": True, "data": user_view(user)}


@router.get("/geofence-settings")
def geofences(db: Session = Depends(get_db), p=Depends(require_operation("geofence.manage"))):
    return {"success": True, "data": [geofence_view(g) for g in list_geofences(db)]}


@router.get("/geofence-settings/{warehouse}")
def geofence(warehouse: str, db: Session = Depends(get_db), p=Depends(require_operation("geofence.manage"))):
    return {"success": True, "data": geofence_view(get_geofence(db, warehouse))}


@router.post("/geofence-settings")
def save_geofence(payload: GeofenceIn, db: Session = Depends(get_db), p=Depends(require_operation("geofence.manage"))):
    g = upsert_geofence(db, actor=p.user_id, **payload.model_dump())
    return {"success": True, "data": geofence_view(g)}


@router.delete("/geofence-settings/{warehouse}")
def remove_geofence(warehouse: str, db: Session = Depends(get_db), p=Depends(require_operation("geofence.manage"))):
    deleted = delete_geofence(db, actor=p.user_id, warehouse=warehouse)
    return {"success": True, "data": {"warehouse": warehouse, "deleted": deleted}}
