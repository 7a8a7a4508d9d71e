from __future__ import annotations

import math

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core import config
from app.core.audit import audit
from app.core.errors import ActiveShiftExists, GeofenceNotFound, InvalidInput, OutsideGeofence, ShiftNotStarted
from app.core.logging import get_logger
from app.core.security import Principal
from app.db.models.common import as_utc, utcnow
from app.db.models.wms.shifts import GeofenceSetting, Shift, ShiftStatus
from app.db.models.wms.tasking import OPEN_TASK_STATUSES, Task, TaskItem, TaskItemLockTag, TaskStatus
from app.db.session import atomic, get_db
from services.wms.security.security import require_operation

log = get_logger("wms.shifts")

EARTH_RADIUS_M = 6371e3


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = math.radians(lat2 - lat1)
    dl = math.radians(lon2 - lon1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _validate_coords(latitude: float, longitude: float) -> None:
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise InvalidInput("GPS coordinates out of range", details={"latitude": latitude, "longitude": longitude})


def within_geofence(db: Session, warehouse: str, latitude: float, longitude: float) -> bool:
    # no setting, a disabled setting or the global switch off all mean "allowed"
    if not config.GEO_FENCE_ENABLED:
        return True
    setting = db.query(GeofenceSetting).filter(GeofenceSetting.warehouse == warehouse).first()
    if not setting or not setting.enabled:
        return True
    distance = haversine_m(latitude, longitude, setting.latitude, setting.longitude)
    log.debug("geofence %s distance=%.1fm radius=%sm", warehouse, distance, setting.radius_meters)
    return distance <= setting.radius_meters


def active_shift(db: Session, user_id: str) -> Shift | None:
    return (
        db.query(Shift)
        .filter(Shift.user_id == user_id, Shift.status == ShiftStatus.ACTIVE)
        .order_by(Shift.started_at.desc())
        .first()
    )


def start_shift(
    db: Session,
    *,
    user_id: str,
    warehouse: str,
    latitude: float,
    longitude: float,
    zone: str | None = None,
    selfie_uri: str | None = None,
) -> Shift:
    if not warehouse:
        raise InvalidInput("warehouse is required")
    _validate_coords(latitude, longitude)
    if not within_geofence(db, warehouse, latitude, longitude):
        log.warning("shift start outside geofence user=%s warehouse=%s", user_id, warehouse)
        raise OutsideGeofence()
    if active_shift(db, user_id):
        raise ActiveShiftExists()

    with atomic(db):
        shift = Shift(
            user_id=user_id,
            status=ShiftStatus.ACTIVE,
            warehouse=warehouse,
            zone=zone,
            started_at=utcnow(),
            selfie_uri=selfie_uri,
            latitude=latitude,
            longitude=longitude,
            geo_validated=True,
        )
        db.add(shift)
        db.flush()
        audit(db, actor=user_id, action="SHIFT_STARTED", entity_type="Shift", entity_id=shift.id,
              payload={"warehouse": warehouse, "zone": zone})
    log.info("shift %s started by %s", shift.id, user_id)
    return shift


def shift_summary(db: Session, shift: Shift, ended_at=None) -> dict:
    started = as_utc(shift.started_at)
    ended = as_utc(ended_at or shift.ended_at) or utcnow()
    duration_min = int((ended - started).total_seconds() // 60)

    completed = (
        db.query(func.count(Task.id))
        .filter(
            Task.assigned_to == shift.user_id,
            Task.status == TaskStatus.COMPLETED,
            Task.completed_at >= shift.started_at,
        )
        .scalar()
    ) or 0
    pending = (
        db.query(func.count(Task.id))
        .filter(Task.assigned_to == shift.user_id, Task.status.in_(OPEN_TASK_STATUSES))
        .scalar()
    ) or 0
    # distinct tags scanned during the shift
    scanned = (
        db.query(func.count(TaskItemLockTag.id))
        .join(TaskItem, TaskItem.id == TaskItemLockTag.task_item_id)
        .join(Task, Task.id == TaskItem.task_id)
        .filter(
            Task.assigned_to == shift.user_id,
            TaskItemLockTag.scanned == True,  # noqa: E712
            TaskItemLockTag.scanned_at >= shift.started_at,
        )
        .scalar()
    ) or 0

    return {
        "shift_id": shift.id,
        "user_id": shift.user_id,
        "duration_minutes": duration_min,
        "tasks_completed": completed,
        "tasks_pending": pending,
        "items_scanned": scanned,
        "throughput": round(scanned / duration_min, 2) if duration_min > 0 else 0,
    }


def end_shift(db: Session, *, user_id: str, selfie_uri: str | None = None) -> tuple[Shift, dict]:
    shift = active_shift(db, user_id)
    if not shift:
        raise ShiftNotStarted()

    with atomic(db):
        now = utcnow()
        summary = shift_summary(db, shift, ended_at=now)
        shift.status = ShiftStatus.ENDED
        shift.ended_at = now
        shift.end_selfie_uri = selfie_uri
        audit(db, actor=user_id, action="SHIFT_ENDED", entity_type="Shift", entity_id=shift.id, payload=summary)
    log.info("shift %s ended: %s", shift.id, summary)
    return shift, summary


def is_clocked_in_and_geo_valid(db: Session, worker_id: str) -> bool:
    shift = active_shift(db, worker_id)
    return bool(shift and shift.geo_validated)


def require_active_shift(
    p: Principal = Depends(require_operation("tasks.work")),
    db: Session = Depends(get_db),
) -> Principal:
    """Route gate for scan/complete: a PickerPacker who is clocked in."""
    if not is_clocked_in_and_geo_valid(db, p.user_id):
        raise ShiftNotStarted()
    return p


def shift_view(s: Shift) -> dict:
    return {
        "id": s.id,
        "user_id": s.user_id,
        "status": s.status.value,
        "warehouse": s.warehouse,
        "zone": s.zone,
        "started_at": s.started_at.isoformat() if s.started_at else None,
        "ended_at": s.ended_at.isoformat() if s.ended_at else None,
        "selfie_uri": s.selfie_uri,
        "latitude": s.latitude,
        "longitude": s.longitude,
        "geo_validated": s.geo_validated,
    }


# --- geofence settings ---

def list_geofences(db: Session) -> list[GeofenceSetting]:
    return db.query(GeofenceSetting).order_by(GeofenceSetting.warehouse).all()


def get_geofence(db: Session, warehouse: str) -> GeofenceSetting:
    g = db.query(GeofenceSetting).filter(GeofenceSetting.warehouse == warehouse).first()
    if g is None:
        raise GeofenceNotFound(f"No geofence configured for {warehouse}")
    return g


def upsert_geofence(
    db: Session,
    *,
    actor: str,
    warehouse: str,
    latitude: float,
    longitude: float,
    radius_meters: int | None = None,
    enabled: bool = True,
) -> GeofenceSetting:
    _validate_coords(latitude, longitude)
    radius = config.GEO_FENCE_RADIUS_METERS if radius_meters is None else radius_meters
    if radius <= 0:
        raise InvalidInput("radius_meters must be positive")

    with atomic(db):
        g = db.query(GeofenceSetting).filter(GeofenceSetting.warehouse == warehouse).first()
        action = "GEOFENCE_UPDATED"
        if g is None:
            g = GeofenceSetting(warehouse=warehouse, created_by=actor)
            db.add(g)
            action = "GEOFENCE_CREATED"
        g.latitude = latitude
        g.longitude = longitude
        g.radius_meters = radius
        g.enabled = enabled
        g.updated_by = actor
        db.flush()
        audit(db, actor=actor, action=action, entity_type="GeofenceSetting", entity_id=g.id,
              payload={"warehouse": warehouse, "latitude": latitude, "longitude": longitude,
                       "radius_meters": radius, "enabled": enabled})
    return g


def delete_geofence(db: Session, *, actor: str, warehouse: str) -> bool:
    with atomic(db):
        g = db.query(GeofenceSetting).filter(GeofenceSetting.warehouse == warehouse).first()
        if g is None:
            return False
        audit(db, actor=actor, action="GEOFENCE_DELETED", entity_type="GeofenceSetting", entity_id=g.id,
              payload={"warehouse": warehouse})
        db.delete(g)
    return True


def geofence_view(g: GeofenceSetting) -> dict:
    return {
        "id": g.id,
        "warehouse": g.warehouse,
        "latitude": g.latitude,
        "longitude": g.longitude,
        "radius_meters": g.radius_meters,
        "enabled": g.enabled,
        "created_by": g.created_by,
        "updated_by": g.updated_by,
    }
