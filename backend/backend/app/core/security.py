from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app.core.config import JWT_SECRET, JWT_ALG, JWT_TTL_MIN, JWT_ISSUER
from app.core.errors import Unauthorized, TokenExpired, PendingApproval
from app.db.session import get_db
from app.db.models.auth import User, Role, UserStatus

bearer = HTTPBearer(auto_error=False)

pin_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass
class Principal:
    user_id: str | None = None
    employee_id: str = "anonymous"
    role: str | None = None
    warehouse: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def has_role(self, *roles: str) -> bool:
        return self.role is not None and self.role in roles


ANONYMOUS = Principal()


def hash_pin(pin: str) -> str:
    return pin_context.hash(pin)


def verify_pin(pin: str, pin_hash: str) -> bool:
    try:
        return pin_context.verify(pin, pin_hash)
    except (ValueError, TypeError):
        # malformed or unknown hash format
        return False


def generate_pin(digits: int = 6) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(digits))


def create_access_token(user: User, *, ttl_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = JWT_TTL_MIN if ttl_minutes is None else ttl_minutes
    payload = {
        "iss": JWT_ISSUER,
        "sub": user.id,
        "eid": user.employee_id,
        "role": user.role.value,
        "wh": user.warehouse,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl)).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALG)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG], issuer=JWT_ISSUER)
    except JWTError as exc:
        raise TokenExpired() from exc


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Principal:
    if not creds or not creds.credentials:
        # Anonymous
        return ANONYMOUS

    payload = decode_access_token(creds.credentials)
    user_id = payload.get("sub")

    # The token outlives approval decisions; re-check the stored status.
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise TokenExpired()
    if user.status == UserStatus.PENDING:
        raise PendingApproval()
    if not user.can_work:
        raise Unauthorized("Your account is not active")

    return Principal(
        user_id=user.id,
        employee_id=user.employee_id,
        role=user.role.value,
        warehouse=user.warehouse,
    )


def require_user(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_authenticated:
        raise Unauthorized("Not authenticated")
    return principal
