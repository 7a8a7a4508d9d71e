from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.errors import InvalidInput, WmsError
from app.core.logging import get_logger, setup_logging
from app.db.base import Base
from app.db.session import engine

# Register models
from app.db import models  # noqa: F401

from services.auth.api import router as auth_router
from services.admin.api import router as admin_router
from services.wms.orders.api import router as orders_router
from services.wms.tasking.api import router as tasks_router
from services.wms.tasking.exceptions_api import router as exceptions_router
from services.wms.shifts.api import router as shifts_router
from services.wms.inventory_ops.api import router as inventory_router

setup_logging()
log = get_logger("api")

app = FastAPI(title="PickerPacker Fulfillment")


def _error_response(err: WmsError) -> JSONResponse:
    return JSONResponse(status_code=err.status_code, content={"success": False, "error": err.to_dict()})


@app.exception_handler(WmsError)
async def _wms_error(request: Request, exc: WmsError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()]
    return _error_response(InvalidInput(details={"errors": errors}))


@app.exception_handler(Exception)
async def _unexpected(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return _error_response(WmsError())


@app.on_event("startup")
async def _startup():
    # Dev-friendly schema creation (migrations are available for real upgrades)
    Base.metadata.create_all(bind=engine)


@app.get("/health")
def health():
    return {"ok": True}


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(orders_router)
app.include_router(tasks_router)
app.include_router(exceptions_router)
app.include_router(shifts_router)
app.include_router(inventory_router)
