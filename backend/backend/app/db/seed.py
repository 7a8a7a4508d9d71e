"""Development data: users per role, SKUs, bins, lock tags, geofences and orders.

Run with ``python -m app.db.seed`` from ``backend/backend``. Safe to re-run;
nothing is created when users already exist.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from app.core.config import DEFAULT_WAREHOUSE, DEFAULT_ZONE, GEO_FENCE_RADIUS_METERS
from app.core.logging import get_logger, setup_logging
from app.core.security import hash_pin
from app.db.base import Base
from app.db.models.auth import Role, User, UserStatus
from app.db.models.common import utcnow
from app.db.models.inventory_exec import Bin, LockTag, LockTagStatus, Sku
from app.db.models.wms.shifts import GeofenceSetting
from app.db.session import SessionLocal, engine
from app.db import models  # noqa: F401
from services.wms.orders.coordinator import assign_batch
from services.wms.tasking.assignment import available_pickers

log = get_logger("seed")

DEFAULT_PIN = "123456"
TAGS_PER_SLOT = 20

USERS = [
    ("PP-WH1-000001", "John Picker", "+15550000001", Role.PICKER_PACKER),
    ("PP-WH1-000002", "Jane Packer", "+15550000002", Role.PICKER_PACKER),
    ("ASM-WH1-000001", "Alice Manager", "+15552000001", Role.ASM),
    ("SM-WH1-000001", "Store Manager", "+15552500001", Role.STORE_MANAGER),
    ("ADMIN-WH1-000001", "Operations Admin", "+15553000001", Role.OPS_ADMIN),
]

GEOFENCES = [("WH1", 37.7749, -122.4194), ("WH2", 37.7849, -122.4094)]

# (order number, customer, [(sku index, bin index, qty), ...])
ORDERS = [
    ("ORD-1001", "John Doe", [(0, 0, 5), (1, 1, 3)]),
    ("ORD-1002", "Jane Smith", [(2, 0, 2), (3, 2, 4)]),
    ("ORD-1003", "Bob Johnson", [(4, 1, 6), (0, 0, 3)]),
    ("ORD-1004", "Alice Williams", [(1, 1, 4), (2, 0, 5)]),
    ("ORD-1005", "Mike Brown", [(3, 0, 3), (4, 2, 2)]),
    ("ORD-1006", "Sarah Davis", [(0, 1, 4), (1, 0, 5)]),
    ("ORD-1007", "Tom Wilson", [(2, 2, 6), (3, 1, 3)]),
    ("ORD-1008", "Emma Taylor", [(4, 0, 4), (0, 1, 5)]),
    ("ORD-1009", "David Martinez", [(1, 2, 3), (2, 0, 4)]),
    ("ORD-1010", "Lisa Anderson", [(3, 1, 5), (4, 2, 3)]),
]


def seed(db: Session, *, warehouse: str = DEFAULT_WAREHOUSE, zone: str = DEFAULT_ZONE) -> dict:
    if db.query(User.id).first():
        log.info("users already present; skipping seed")
        return {"skipped": True}

    pin_hash = hash_pin(DEFAULT_PIN)
    now = utcnow()
    users = [
        User(employee_id=eid, name=name, phone=phone, pin_hash=pin_hash, role=role,
             status=UserStatus.APPROVED, warehouse=warehouse, approved_at=now)
        for eid, name, phone, role in USERS
    ]
    db.add_all(users)

    skus = [
        Sku(code=f"SKU-{i:04d}", name=f"Product {i}", description=f"Description for product {i}",
            category="Test Category", unit_of_measure="box" if i % 2 == 0 else "each")
        for i in range(1, 6)
    ]
    bins = [
        Bin(code=f"{warehouse}-{zone}-B{i:02d}", warehouse=warehouse, zone=zone,
            capacity=100, current_quantity=len(skus) * TAGS_PER_SLOT)
        for i in range(1, 4)
    ]
    db.add_all(skus + bins)
    db.flush()

    n = 0
    for sku in skus:
        for bin_ in bins:
            for _ in range(TAGS_PER_SLOT):
                n += 1
                db.add(LockTag(tag_code=f"LT{n:06d}", sku_id=sku.id, bin_id=bin_.id, status=LockTagStatus.IN_STOCK))

    admin = next(u for u in users if u.role == Role.OPS_ADMIN)
    db.flush()
    for wh, lat, lon in GEOFENCES:
        db.add(GeofenceSetting(warehouse=wh, latitude=lat, longitude=lon,
                               radius_meters=GEO_FENCE_RADIUS_METERS, enabled=True, created_by=admin.id))
    db.commit()
    log.info("seeded %s users, %s skus, %s bins, %s lock tags", len(users), len(skus), len(bins), n)

    manager = next(u for u in users if u.role == Role.STORE_MANAGER)
    batch = [
        {
            "order_number": number,
            "customer_name": customer,
            "items": [{"sku": skus[s].code, "bin": bins[b].code, "quantity": q} for s, b, q in lines],
        }
        for number, customer, lines in ORDERS
    ]
    created = assign_batch(db, batch, actor=manager.id, pool=available_pickers(db, warehouse),
                           warehouse=warehouse, zone=zone)
    log.info("seeded %s orders", len(created))
    return {"users": len(users), "skus": len(skus), "bins": len(bins), "lock_tags": n, "orders": len(created)}


def main() -> None:
    setup_logging()
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed(db)


if __name__ == "__main__":
    main()
