import pytest

from app.core.errors import InvalidCredentials, InvalidInput, PendingApproval, TokenExpired, Unauthorized
from app.core.security import create_access_token, decode_access_token, hash_pin, verify_pin
from app.db.models.auth import Role, User, UserStatus
from app.db.models.security_audit import AuditLog
from services.auth.service import decide_user, login, sanitize_phone, signup

from conftest import DEFAULT_PIN, make_user


def test_sanitize_phone():
    assert sanitize_phone("555-123-4567") == "5551234567"
    assert sanitize_phone(" +1 (555) 123-4567 ") == "+15551234567"


def test_pin_hashing():
    h = hash_pin("654321")
    assert h != "654321"
    assert verify_pin("654321", h)
    assert not verify_pin("000000", h)
    assert not verify_pin("654321", "not-a-hash")


class TestSignup:
    def test_creates_pending_picker_with_pin(self, db):
        user, pin = signup(db, name="Jane Doe", phone="555-123-4567", warehouse="WH1")

        assert user.status == UserStatus.PENDING
        assert user.role == Role.PICKER_PACKER
        assert user.phone == "5551234567"
        assert user.employee_id.startswith("PP-WH1-")
        assert len(pin) == 6 and pin.isdigit()
        assert user.pin_hash != pin
        assert verify_pin(pin, user.pin_hash)

    @pytest.mark.parametrize(
        "name,phone,warehouse",
        [
            ("J", "555-123-4567", "WH1"),
            ("Jane 99", "555-123-4567", "WH1"),
            ("Jane Doe", "12345", "WH1"),
            ("Jane Doe", "555-123-4567", "wh1"),
        ],
    )
    def test_rejects_bad_input(self, db, name, phone, warehouse):
        with pytest.raises(InvalidInput):
            signup(db, name=name, phone=phone, warehouse=warehouse)
        assert db.query(User).count() == 0

    def test_pending_phone_cannot_sign_up_again(self, db):
        signup(db, name="Jane Doe", phone="555-123-4567")
        with pytest.raises(InvalidInput):
            signup(db, name="Jane Doe", phone="555-123-4567")
        assert db.query(User).count() == 1

    def test_rejected_user_can_reapply(self, db, supervisor):
        user, old_pin = signup(db, name="Jane Doe", phone="555-123-4567")
        decide_user(db, user.id, action="reject", actor=supervisor.id)

        again, new_pin = signup(db, name="Jane Q Doe", phone="555-123-4567")

        assert again.id == user.id
        assert again.status == UserStatus.PENDING
        assert again.name == "Jane Q Doe"
        assert verify_pin(new_pin, again.pin_hash)
        assert db.query(User).count() == 2  # the supervisor and Jane


class TestLogin:
    def test_approved_user_gets_token(self, db, supervisor):
        user, pin = signup(db, name="Jane Doe", phone="555-123-4567")
        decide_user(db, user.id, action="approve", actor=supervisor.id)

        logged_in, token = login(db, phone="(555) 123-4567", pin=pin)

        assert logged_in.id == user.id
        claims = decode_access_token(token)
        assert claims["sub"] == user.id
        assert claims["role"] == Role.PICKER_PACKER.value
        assert claims["wh"] == "WH1"

    def test_wrong_pin(self, db):
        user = make_user(db)
        with pytest.raises(InvalidCredentials):
            login(db, phone=user.phone, pin="000000")

    def test_unknown_phone(self, db):
        with pytest.raises(InvalidCredentials):
            login(db, phone="555-000-0000", pin=DEFAULT_PIN)

    def test_pending_user(self, db):
        user, pin = signup(db, name="Jane Doe", phone="555-123-4567")
        with pytest.raises(PendingApproval):
            login(db, phone="555-123-4567", pin=pin)

    def test_pending_user_with_wrong_pin_sees_bad_credentials(self, db):
        signup(db, name="Jane Doe", phone="555-123-4567")
        with pytest.raises(InvalidCredentials):
            login(db, phone="555-123-4567", pin="not-it")

    def test_rejected_user(self, db):
        user = make_user(db, status=UserStatus.REJECTED)
        with pytest.raises(Unauthorized):
            login(db, phone=user.phone, pin=DEFAULT_PIN)


class TestApproval:
    def test_approve_records_who_and_when(self, db, supervisor):
        user, _ = signup(db, name="Jane Doe", phone="555-123-4567")

        decide_user(db, user.id, action="approve", actor=supervisor.id)

        db.expire_all()
        assert user.status == UserStatus.APPROVED
        assert user.approved_by == supervisor.id
        assert user.approved_at is not None
        assert db.query(AuditLog).filter(AuditLog.action == "USER_APPROVED").count() == 1

    def test_unknown_action(self, db, supervisor):
        user, _ = signup(db, name="Jane Doe", phone="555-123-4567")
        with pytest.raises(InvalidInput):
            decide_user(db, user.id, action="maybe", actor=supervisor.id)


def test_expired_token(db):
    user = make_user(db)
    token = create_access_token(user, ttl_minutes=-1)
    with pytest.raises(TokenExpired):
        decode_access_token(token)
