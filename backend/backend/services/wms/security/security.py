from __future__ import annotations

from typing import Callable

from fastapi import Depends

from app.core.errors import Forbidden, Unauthorized
from app.core.logging import get_logger
from app.core.security import Principal, get_principal
from app.db.models.auth import Role

log = get_logger("wms.security")

_SUPERVISORS = frozenset({Role.ASM.value, Role.STORE_MANAGER.value, Role.OPS_ADMIN.value})

# operation -> roles allowed to perform it
POLICY: dict[str, frozenset[str]] = {
    "orders.create": frozenset({Role.STORE_MANAGER.value, Role.OPS_ADMIN.value}),
    "orders.view": _SUPERVISORS | {Role.PICKER_PACKER.value},
    "tasks.work": frozenset({Role.PICKER_PACKER.value}),
    "tasks.cancel": _SUPERVISORS,
    "users.approve": _SUPERVISORS,
    "geofence.manage": frozenset({Role.OPS_ADMIN.value}),
    "exceptions.report": _SUPERVISORS | {Role.PICKER_PACKER.value},
    "exceptions.resolve": _SUPERVISORS,
    "inventory.view": _SUPERVISORS,
}


def is_allowed(role: str | None, operation: str) -> bool:
    allowed = POLICY.get(operation)
    if allowed is None:
        raise KeyError(f"unknown operation {operation!r}")
    return role in allowed


def authorize(principal: Principal, operation: str) -> Principal:
    if not principal.is_authenticated:
        raise Unauthorized("Not authenticated")
    if not is_allowed(principal.role, operation):
        log.warning("denied %s for %s (%s)", operation, principal.employee_id, principal.role)
        raise Forbidden(
            f"Role {principal.role} may not perform {operation}",
            details={"operation": operation, "allowed_roles": sorted(POLICY[operation])},
        )
    return principal


def require_operation(operation: str) -> Callable[..., Principal]:
    if operation not in POLICY:
        raise KeyError(f"unknown operation {operation!r}")

    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        return authorize(principal, operation)

    return _dep
