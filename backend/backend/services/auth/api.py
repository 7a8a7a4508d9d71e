from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_WAREHOUSE, JWT_TTL_MIN
from app.core.errors import UserNotFound
from app.core.security import Principal, require_user
from app.db.session import get_db
from app.db.models.auth import User
from services.auth.service import login, signup, user_view

router = APIRouter(prefix="/auth", tags=["auth"])


class SignupIn(BaseModel):
    name: str
    phone: str
    warehouse: str = DEFAULT_WAREHOUSE


class LoginIn(BaseModel):
    phone: str
    pin: str


@router.post("/signup")
def signup_(payload: SignupIn, db: Session = Depends(get_db)):
    user, pin = signup(db, name=payload.name, phone=payload.phone, warehouse=payload.warehouse)
    return {
        "success": True,
        "data": {
            "user_id": user.id,
            "employee_id": user.employee_id,
            # only time the PIN is ever exposed
            "pin": pin,
            "status": user.status.value,
            "message": "Account created. Please wait for approval and save your PIN securely.",
        },
    }


@router.post("/login")
def login_(payload: LoginIn, db: Session = Depends(get_db)):
    user, token = login(db, phone=payload.phone, pin=payload.pin)
    return {
        "success": True,
        "data": {
            "access_token": token,
            "token_type": "bearer",
            "expires_in": JWT_TTL_MIN * 60,
            "user": user_view(user),
        },
    }


@router.get("/status")
def status(db: Session = Depends(get_db), p: Principal = Depends(require_user)):
    user = db.query(User).filter(User.id == p.user_id).first()
    if not user:
        raise UserNotFound()
    return {"success": True, "data": {"status": user.status.value, "user": user_view(user)}}
