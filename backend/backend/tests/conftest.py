"""
Test configuration and fixtures.

Every test gets its own in-memory SQLite database. The environment is set
before the application is imported so module-level config picks it up.
"""
import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["GEO_FENCE_ENABLED"] = "true"
os.environ["STRICT_ALLOCATION"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token, hash_pin
from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.models.auth import Role, User, UserStatus
from app.db.models.inventory_exec import Bin, LockTag, LockTagStatus, Sku
from app.db.session import get_db
from main import app

DEFAULT_PIN = "123456"
_PIN_HASH = hash_pin(DEFAULT_PIN)
_seq = itertools.count(1)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- factories ---

def make_user(
    db,
    *,
    role=Role.PICKER_PACKER,
    status=UserStatus.APPROVED,
    warehouse="WH1",
    employee_id=None,
    name="Test User",
):
    n = next(_seq)
    user = User(
        employee_id=employee_id or f"EMP-{n:05d}",
        name=name,
        phone=f"+1555{n:07d}",
        pin_hash=_PIN_HASH,
        role=role,
        status=status,
        warehouse=warehouse,
    )
    db.add(user)
    db.commit()
    return user


def add_stock(db, sku_code, bin_code, count, *, prefix=None, zone="Z1"):
    """Create (or reuse) a SKU and Bin and put ``count`` InStock tags in it."""
    sku = db.query(Sku).filter(Sku.code == sku_code).first()
    if sku is None:
        sku = Sku(code=sku_code, name=f"Product {sku_code}", unit_of_measure="each")
        db.add(sku)
    bin_ = db.query(Bin).filter(Bin.code == bin_code).first()
    if bin_ is None:
        bin_ = Bin(code=bin_code, warehouse="WH1", zone=zone, capacity=100, current_quantity=count)
        db.add(bin_)
    db.flush()

    prefix = prefix or f"{sku_code}-{bin_code}-"
    tags = [
        LockTag(tag_code=f"{prefix}{i:04d}", sku_id=sku.id, bin_id=bin_.id, status=LockTagStatus.IN_STOCK)
        for i in range(1, count + 1)
    ]
    for tag in tags:
        db.add(tag)
        db.flush()
    db.commit()
    return sku, bin_, tags


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def line(sku, bin_, quantity):
    return {"sku": sku, "bin": bin_, "quantity": quantity}


@pytest.fixture
def stock(db):
    """20 tags of SKU-A in BIN-1 and 20 tags of SKU-B in BIN-2."""
    a = add_stock(db, "SKU-A", "BIN-1", 20, prefix="LTA")
    b = add_stock(db, "SKU-B", "BIN-2", 20, prefix="LTB")
    return {"A": a, "B": b}


@pytest.fixture
def pickers(db):
    return [
        make_user(db, employee_id=f"PP-WH1-00000{i}", name="Picker")
        for i in range(1, 4)
    ]


@pytest.fixture
def manager(db):
    return make_user(db, role=Role.STORE_MANAGER, employee_id="SM-WH1-000001", name="Store Manager")


@pytest.fixture
def supervisor(db):
    return make_user(db, role=Role.ASM, employee_id="ASM-WH1-000001", name="Area Manager")


@pytest.fixture
def ops_admin(db):
    return make_user(db, role=Role.OPS_ADMIN, employee_id="ADMIN-WH1-000001", name="Ops Admin")
