"""
Application errors.

Every error carries a stable ``ERR_xxx`` code, a user-facing message and the
HTTP status the API layer renders it with. Services raise these; routes never
build HTTP errors themselves.
"""
from __future__ import annotations

from typing import Any


class WmsError(Exception):
    """Base class for errors surfaced to API callers"""

    error_code = "ERR_090"
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error_code": self.error_code, "message": self.message, "details": self.details}


# --- authentication / authorization ---

class PendingApproval(WmsError):
    error_code = "ERR_002"
    status_code = 403
    default_message = "Your account is pending approval from your Area Supervisor"


class InvalidCredentials(WmsError):
    error_code = "ERR_003"
    status_code = 401
    default_message = "Invalid phone number or PIN"


class TokenExpired(WmsError):
    error_code = "ERR_004"
    status_code = 401
    default_message = "Your session has expired. Please login again"


class Unauthorized(WmsError):
    error_code = "ERR_005"
    status_code = 401
    default_message = "You are not authorized to perform this action"


class Forbidden(Unauthorized):
    status_code = 403


class UserNotFound(WmsError):
    error_code = "ERR_006"
    status_code = 404
    default_message = "User not found"


# --- location ---

class OutsideGeofence(WmsError):
    error_code = "ERR_010"
    status_code = 403
    default_message = "You are outside the allowed work area"


class GeofenceNotFound(WmsError):
    error_code = "ERR_012"
    status_code = 404
    default_message = "No geofence is configured for this warehouse"


# --- tasks ---

class TaskNotFound(WmsError):
    error_code = "ERR_022"
    status_code = 404
    default_message = "Task not found"


class TaskAlreadyCompleted(WmsError):
    error_code = "ERR_023"
    status_code = 409
    default_message = "This task has already been completed"


class InvalidTaskOperation(WmsError):
    error_code = "ERR_024"
    status_code = 409
    default_message = "This operation is not valid for the current task status"


# --- inventory ---

class BinNotFound(WmsError):
    error_code = "ERR_031"
    status_code = 404
    default_message = "Bin not found"


class InsufficientStock(WmsError):
    error_code = "ERR_034"
    status_code = 409
    default_message = "Insufficient quantity available"


class SkuNotFound(WmsError):
    error_code = "ERR_035"
    status_code = 404
    default_message = "SKU not found"


# --- validation / orders ---

class InvalidInput(WmsError):
    error_code = "ERR_050"
    status_code = 400
    default_message = "Invalid input provided"


class MissingRequiredField(WmsError):
    error_code = "ERR_051"
    status_code = 400
    default_message = "Required field is missing"


class EmptyOrder(WmsError):
    error_code = "ERR_053"
    status_code = 400
    default_message = "An order needs at least one item"


class DuplicateOrder(WmsError):
    error_code = "ERR_054"
    status_code = 409
    default_message = "An order with this number already exists"


class NoPickersAvailable(WmsError):
    error_code = "ERR_055"
    status_code = 409
    default_message = "No approved pickers are available"


class OrderNotFound(WmsError):
    error_code = "ERR_056"
    status_code = 404
    default_message = "Order not found"


# --- exceptions ---

class ExceptionNotFound(WmsError):
    error_code = "ERR_060"
    status_code = 404
    default_message = "Exception not found"


class CannotResolveException(WmsError):
    error_code = "ERR_061"
    status_code = 409
    default_message = "Cannot resolve this exception"


# --- shifts ---

class ShiftNotStarted(WmsError):
    error_code = "ERR_070"
    status_code = 400
    default_message = "Please start your shift before performing this action"


class ActiveShiftExists(WmsError):
    error_code = "ERR_072"
    status_code = 409
    default_message = "You already have an active shift"
