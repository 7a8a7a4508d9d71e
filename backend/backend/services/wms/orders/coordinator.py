from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.audit import audit
from app.core.config import DEFAULT_WAREHOUSE
from app.core.errors import (
    BinNotFound,
    DuplicateOrder,
    EmptyOrder,
    InvalidInput,
    MissingRequiredField,
    NoPickersAvailable,
    OrderNotFound,
    SkuNotFound,
)
from app.core.logging import get_logger
from app.db.models.auth import User
from app.db.models.common import utcnow
from app.db.models.docs import Order, OrderItem, OrderItemStatus, OrderStatus
from app.db.models.inventory_exec import Bin, Sku
from app.db.models.wms.tasking import Task, TaskException, TaskItem, TaskPriority
from app.db.session import atomic
from services.wms.tasking.assignment import Shortage, TaskAssigner, available_pickers
from services.wms.tasking.service import task_view

log = get_logger("wms.orders")

SHORT_ALLOCATION = "SHORT_ALLOCATION"


@dataclass
class OrderCreation:
    order: Order
    task: Task
    shortages: list[Shortage] = field(default_factory=list)


def _resolve_lines(db: Session, items: Sequence[Mapping[str, Any]]) -> list[tuple[Sku, Bin, int]]:
    lines: list[tuple[Sku, Bin, int]] = []
    for n, raw in enumerate(items, start=1):
        sku_code, bin_code, qty = raw.get("sku"), raw.get("bin"), raw.get("quantity")
        if not sku_code or not bin_code or qty is None:
            raise MissingRequiredField(f"Item {n} needs sku, bin and quantity", details={"line": n})
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidInput(f"Item {n} quantity must be a positive integer", details={"line": n, "quantity": qty})

        sku = db.query(Sku).filter(Sku.code == sku_code).first()
        if not sku:
            raise SkuNotFound(f"SKU {sku_code} not found", details={"line": n, "sku": sku_code})
        bin_ = db.query(Bin).filter(Bin.code == bin_code).first()
        if not bin_:
            raise BinNotFound(f"Bin {bin_code} not found", details={"line": n, "bin": bin_code})
        lines.append((sku, bin_, qty))
    return lines


def create_order_with_task(
    db: Session,
    *,
    order_number: str,
    customer_name: str,
    items: Sequence[Mapping[str, Any]],
    actor: str,
    pool: Sequence[User] | None = None,
    assigner: TaskAssigner | None = None,
    warehouse: str = DEFAULT_WAREHOUSE,
    zone: str | None = None,
    strict: bool | None = None,
) -> OrderCreation:
    """Create an order, its items and the pick task that fulfils it in one transaction.

    ``items`` are mappings of ``{"sku": code, "bin": code, "quantity": int}``.
    Pass ``assigner`` to share round-robin state across a batch; otherwise a
    new one is built from ``pool`` (default: available pickers of the warehouse).
    """
    if not order_number or not customer_name:
        raise MissingRequiredField("order_number and customer_name are required")
    if not items:
        raise EmptyOrder()

    if assigner is None:
        if pool is None:
            pool = available_pickers(db, warehouse)
        assigner = TaskAssigner(db, pool, strict=strict)
    if not assigner.pool:
        raise NoPickersAvailable()

    if db.query(Order.id).filter(Order.order_number == order_number).first():
        raise DuplicateOrder(f"Order {order_number} already exists")

    lines = _resolve_lines(db, items)

    turn = assigner.assigned_count
    try:
        with atomic(db):
            order = Order(
                order_number=order_number,
                customer_name=customer_name,
                status=OrderStatus.ASSIGNED,
                priority=TaskPriority.URGENT,
                warehouse=warehouse,
                total_items=sum(qty for _, _, qty in lines),
                assigned_at=utcnow(),
            )
            db.add(order)
            db.flush()

            order_items = [
                OrderItem(order_id=order.id, sku_id=sku.id, bin_id=bin_.id, quantity=qty, status=OrderItemStatus.PENDING)
                for sku, bin_, qty in lines
            ]
            db.add_all(order_items)
            db.flush()

            result = assigner.create_pick_task(order, order_items, zone=zone)
            task = result.task
            order.task_id = task.id
            order.assigned_to = task.assigned_to

            for s in result.shortages:
                db.add(
                    TaskException(
                        task_id=task.id,
                        user_id=actor,
                        type=SHORT_ALLOCATION,
                        description=f"Reserved {s.allocated} of {s.requested} for order {order_number}",
                        sku_id=s.sku_id,
                        bin_id=s.bin_id,
                        quantity=s.shortfall,
                        data=s.as_dict(),
                    )
                )

            audit(
                db,
                actor=actor,
                action="ORDER_CREATED",
                entity_type="Order",
                entity_id=order.id,
                payload={
                    "order_number": order_number,
                    "task_id": task.id,
                    "assigned_to": task.assigned_to,
                    "shortages": [s.as_dict() for s in result.shortages],
                },
            )
    except Exception as exc:
        # nothing was committed, so the worker keeps this turn in the rotation
        assigner.assigned_count = turn
        if isinstance(exc, IntegrityError) and db.query(Order.id).filter(Order.order_number == order_number).first():
            # lost a race on the order number between the check and the insert
            raise DuplicateOrder(f"Order {order_number} already exists") from exc
        raise

    log.info("order %s created with task %s", order_number, task.id)
    return OrderCreation(order=order, task=task, shortages=result.shortages)


def assign_batch(
    db: Session,
    orders: Iterable[Mapping[str, Any]],
    *,
    actor: str,
    pool: Sequence[User] | None = None,
    warehouse: str = DEFAULT_WAREHOUSE,
    zone: str | None = None,
    strict: bool | None = None,
) -> list[OrderCreation]:
    """Create several orders sharing one assigner, so workers rotate across the batch.

    Each order commits on its own; a failing order stops the batch and leaves
    the earlier ones in place.
    """
    if pool is None:
        pool = available_pickers(db, warehouse)
    assigner = TaskAssigner(db, pool, strict=strict)
    created = []
    for entry in orders:
        created.append(
            create_order_with_task(
                db,
                order_number=entry["order_number"],
                customer_name=entry["customer_name"],
                items=entry["items"],
                actor=actor,
                assigner=assigner,
                warehouse=warehouse,
                zone=zone,
            )
        )
    return created


def on_task_completed(db: Session, task: Task) -> Order | None:
    """Move the order fulfilled by ``task`` to Picked.

    Only an Assigned order transitions; anything else (no order, already
    Picked or beyond) is left untouched, so replays are harmless. Runs inside
    the caller's transaction.
    """
    order = db.query(Order).filter(Order.task_id == task.id).first()
    if order is None:
        log.debug("task %s has no linked order", task.id)
        return None
    if order.status != OrderStatus.ASSIGNED:
        return order

    order.status = OrderStatus.PICKED
    if order.picked_at is None:
        order.picked_at = utcnow()
    for oi in order.items:
        oi.status = OrderItemStatus.PICKED
    db.flush()
    log.info("order %s picked", order.order_number)
    return order


# --- read projections ---

def _iso(value):
    return value.isoformat() if value is not None else None


def order_view(db: Session, order: Order, *, with_task: bool = True) -> dict:
    picked_by_item: dict[str, int] = {}
    task = None
    if order.task_id:
        task = (
            db.query(Task)
            .options(selectinload(Task.items).selectinload(TaskItem.lock_tags))
            .filter(Task.id == order.task_id)
            .first()
        )
        if task:
            picked_by_item = {ti.order_item_id: ti.quantity_scanned for ti in task.items if ti.order_item_id}

    out = {
        "id": order.id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "status": order.status.value,
        "priority": order.priority.value,
        "assigned_to": order.assigned_to,
        "warehouse": order.warehouse,
        "total_items": order.total_items,
        "task_id": order.task_id,
        "assigned_at": _iso(order.assigned_at),
        "picked_at": _iso(order.picked_at),
        "created_at": _iso(order.created_at),
        "items": [
            {
                "id": oi.id,
                "sku_id": oi.sku_id,
                "sku_code": oi.sku.code if oi.sku else None,
                "sku_name": oi.sku.name if oi.sku else None,
                "bin_id": oi.bin_id,
                "bin_code": oi.bin.code if oi.bin else None,
                "quantity": oi.quantity,
                # progress lives on the task item; this is a projection of it
                "quantity_picked": picked_by_item.get(oi.id, 0),
                "status": oi.status.value,
            }
            for oi in order.items
        ],
    }
    if with_task:
        out["task"] = task_view(db, task) if task else None
    return out


def get_order(db: Session, order_id: str, *, assigned_to: str | None = None) -> Order:
    q = db.query(Order).filter(Order.id == order_id)
    if assigned_to is not None:
        q = q.filter(Order.assigned_to == assigned_to)
    order = q.first()
    if not order:
        raise OrderNotFound()
    return order


def list_orders(
    db: Session,
    *,
    assigned_to: str | None = None,
    status: OrderStatus | None = None,
    warehouse: str | None = None,
) -> list[Order]:
    q = db.query(Order)
    if assigned_to is not None:
        q = q.filter(Order.assigned_to == assigned_to)
    if status is not None:
        q = q.filter(Order.status == status)
    if warehouse is not None:
        q = q.filter(Order.warehouse == warehouse)
    return q.order_by(Order.created_at.desc()).all()


def packing_queue(db: Session, assigned_to: str) -> list[Order]:
    """Picked orders waiting to be packed, oldest pick first."""
    return (
        db.query(Order)
        .filter(Order.assigned_to == assigned_to, Order.status == OrderStatus.PICKED)
        .order_by(Order.picked_at.asc())
        .all()
    )
