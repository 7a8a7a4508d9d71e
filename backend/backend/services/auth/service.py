from __future__ import annotations

import re
import secrets

from sqlalchemy.orm import Session

from app.core.audit import audit
from app.core.config import DEFAULT_WAREHOUSE
from app.core.errors import InvalidCredentials, InvalidInput, PendingApproval, Unauthorized, UserNotFound
from app.core.logging import get_logger
from app.core.security import create_access_token, generate_pin, hash_pin, verify_pin
from app.db.models.auth import Role, User, UserStatus
from app.db.models.common import utcnow
from app.db.session import atomic

log = get_logger("auth")

PHONE_RE = re.compile(r"^\+?\(?\d{3}\)?[-\s.]?\d{3}[-\s.]?\d{4,6}$")
NAME_RE = re.compile(r"^[a-zA-Z\s\-']{2,50}$")
WAREHOUSE_RE = re.compile(r"^[A-Z0-9]{2,10}$")


def sanitize_phone(phone: str) -> str:
    phone = (phone or "").strip()
    digits = re.sub(r"\D", "", phone)
    return ("+" + digits) if phone.startswith("+") else digits


def _new_employee_id(db: Session, warehouse: str) -> str:
    while True:
        candidate = f"PP-{warehouse}-{secrets.randbelow(900000) + 100000}"
        if not db.query(User.id).filter(User.employee_id == candidate).first():
            return candidate


def signup(db: Session, *, name: str, phone: str, warehouse: str = DEFAULT_WAREHOUSE) -> tuple[User, str]:
    """Register a PickerPacker awaiting approval. Returns the user and the one-time PIN."""
    if not NAME_RE.match(name or ""):
        raise InvalidInput("Name must be 2-50 letters")
    if not PHONE_RE.match((phone or "").strip()):
        raise InvalidInput("Invalid phone number format")
    if not WAREHOUSE_RE.match(warehouse or ""):
        raise InvalidInput("Invalid warehouse code")

    phone = sanitize_phone(phone)
    pin = generate_pin()

    with atomic(db):
        user = db.query(User).filter(User.phone == phone).first()
        if user is not None:
            if user.status == UserStatus.PENDING:
                raise InvalidInput("An account with this phone number is already pending approval")
            if user.status != UserStatus.REJECTED:
                raise InvalidInput("This phone number is already registered. Please login instead")
            # rejected users may apply again with a fresh id and PIN
            user.name = name
            user.warehouse = warehouse
            user.employee_id = _new_employee_id(db, warehouse)
            user.pin_hash = hash_pin(pin)
            user.status = UserStatus.PENDING
            user.approved_at = None
            user.approved_by = None
        else:
            user = User(
                employee_id=_new_employee_id(db, warehouse),
                name=name,
                phone=phone,
                pin_hash=hash_pin(pin),
                role=Role.PICKER_PACKER,
                status=UserStatus.PENDING,
                warehouse=warehouse,
            )
            db.add(user)
    log.info("signup %s (%s) pending approval", user.employee_id, warehouse)
    return user, pin


def login(db: Session, *, phone: str, pin: str) -> tuple[User, str]:
    user = db.query(User).filter(User.phone == sanitize_phone(phone)).first()
    if not user or not verify_pin(pin, user.pin_hash):
        raise InvalidCredentials()
    if user.status == UserStatus.PENDING:
        raise PendingApproval()
    if not user.can_work:
        raise Unauthorized("Your account is not active")
    return user, create_access_token(user)


def user_view(u: User) -> dict:
    return {
        "id": u.id,
        "employee_id": u.employee_id,
        "name": u.name,
        "phone": u.phone,
        "role": u.role.value,
        "status": u.status.value,
        "warehouse": u.warehouse,
        "approved_at": u.approved_at.isoformat() if u.approved_at else None,
        "approved_by": u.approved_by,
        "created_at": u.created_at.isoformat() if u.created_at else None,
    }


def pending_users(db: Session) -> list[User]:
    return db.query(User).filter(User.status == UserStatus.PENDING).order_by(User.created_at.desc()).all()


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


DECISIONS = {"approve": "APPROVED", "reject": "REJECTED"}


def decide_user(db: Session, user_id: str, *, action: str, actor: str) -> User:
    if action not in DECISIONS:
        raise InvalidInput("action must be approve or reject")
    with atomic(db):
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFound()
        if action == "approve":
            user.status = UserStatus.APPROVED
            user.approved_at = utcnow()
            user.approved_by = actor
        else:
            user.status = UserStatus.REJECTED
        audit(db, actor=actor, action=f"USER_{DECISIONS[action]}", entity_type="User", entity_id=user.id,
              payload={"employee_id": user.employee_id})
    log.info("user %s %s by %s", user.employee_id, DECISIONS[action].lower(), actor)
    return user
