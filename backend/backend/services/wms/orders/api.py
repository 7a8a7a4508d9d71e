from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_WAREHOUSE
from app.db.session import get_db
from app.db.models.auth import Role
from app.db.models.docs import OrderStatus
from services.wms.orders.coordinator import create_order_with_task, get_order, list_orders, order_view
from services.wms.security.security import require_operation

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderLineIn(BaseModel):
    sku: str
    bin: str
    quantity: int


class OrderIn(BaseModel):
    order_number: str
    customer_name: str
    items: list[OrderLineIn] = Field(default_factory=list)
    warehouse: str | None = None
    zone: str | None = None


def _own_only(p) -> str | None:
    # workers only ever see orders assigned to them
    return p.user_id if p.role == Role.PICKER_PACKER.value else None


@router.post("")
def create(payload: OrderIn, db: Session = Depends(get_db), p=Depends(require_operation("orders.create"))):
    created = create_order_with_task(
        db,
        order_number=payload.order_number,
        customer_name=payload.customer_name,
        items=[line.model_dump() for line in payload.items],
        actor=p.user_id,
        warehouse=payload.warehouse or p.warehouse or DEFAULT_WAREHOUSE,
        zone=payload.zone,
    )
    return {
        "success": True,
        "data": {
            "order": order_view(db, created.order),
            "shortages": [s.as_dict() for s in created.shortages],
        },
    }


@router.get("")
def list_(status: OrderStatus | None = None, db: Session = Depends(get_db), p=Depends(require_operation("orders.view"))):
    orders = list_orders(db, assigned_to=_own_only(p), status=status)
    return {"success": True, "data": [order_view(db, o) for o in orders]}


@router.get("/{order_id}")
def detail(order_id: str, db: Session = Depends(get_db), p=Depends(require_operation("orders.view"))):
    order = get_order(db, order_id, assigned_to=_own_only(p))
    return {"success": True, "data": order_view(db, order)}
