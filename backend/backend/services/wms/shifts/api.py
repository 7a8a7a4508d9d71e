from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.errors import ShiftNotStarted
from app.core.security import require_user
from app.db.session import get_db
from services.wms.shifts.service import active_shift, end_shift, shift_view, start_shift

router = APIRouter(prefix="/shifts", tags=["shifts"])


class Gps(BaseModel):
    latitude: float
    longitude: float


class StartShiftIn(BaseModel):
    warehouse: str
    zone: str | None = None
    gps: Gps
    # reference to the uploaded photo; bytes are stored elsewhere
    selfie_uri: str | None = None


class EndShiftIn(BaseModel):
    selfie_uri: str | None = None


@router.post("/start")
def start(payload: StartShiftIn, db: Session = Depends(get_db), p=Depends(require_user)):
    shift = start_shift(
        db,
        user_id=p.user_id,
        warehouse=payload.warehouse,
        zone=payload.zone,
        latitude=payload.gps.latitude,
        longitude=payload.gps.longitude,
        selfie_uri=payload.selfie_uri,
    )
    return {"success": True, "data": {"shift_id": shift.id, "shift": shift_view(shift)}}


@router.get("/active")
def active(db: Session = Depends(get_db), p=Depends(require_user)):
    shift = active_shift(db, p.user_id)
    if not shift:
        raise ShiftNotStarted("No active shift found")
    return {"success": True, "data": shift_view(shift)}


@router.post("/end")
def end(payload: EndShiftIn | None = None, db: Session = Depends(get_db), p=Depends(require_user)):
    payload = payload or EndShiftIn()
    shift, summary = end_shift(db, user_id=p.user_id, selfie_uri=payload.selfie_uri)
    return {"success": True, "data": {"shift": shift_view(shift), "summary": summary}}
