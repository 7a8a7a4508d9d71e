import pytest

from app.core.errors import CannotResolveException, ExceptionNotFound, InvalidInput, TaskNotFound
from app.db.models.wms.tasking import ExceptionStatus, TaskException, TaskItemLockTag
from services.wms.orders.coordinator import SHORT_ALLOCATION, create_order_with_task
from services.wms.tasking.exceptions import list_exceptions, report_exception, resolve_exception

from conftest import add_stock, line


@pytest.fixture
def short_order(db, pickers, manager):
    add_stock(db, "SKU-S", "BIN-S", 3)
    return create_order_with_task(
        db, order_number="ORD-3001", customer_name="Short", items=[line("SKU-S", "BIN-S", 5)],
        actor=manager.id, pool=pickers,
    )


def _short_exception(db, task_id):
    return (
        db.query(TaskException)
        .filter(TaskException.task_id == task_id, TaskException.type == SHORT_ALLOCATION)
        .one()
    )


class TestReport:
    def test_worker_reports_damage(self, db, short_order, pickers):
        e = report_exception(
            db, user_id=pickers[0].id, type="Damage", description="Torn packaging",
            task_id=short_order.task.id, quantity=1,
        )
        assert e.status == ExceptionStatus.PENDING
        assert [x.id for x in list_exceptions(db, user_id=pickers[0].id)] == [e.id]

    def test_unknown_type(self, db, pickers):
        with pytest.raises(InvalidInput):
            report_exception(db, user_id=pickers[0].id, type=SHORT_ALLOCATION, description="nope")

    def test_unknown_task(self, db, pickers):
        with pytest.raises(TaskNotFound):
            report_exception(db, user_id=pickers[0].id, type="Missing", description="gone", task_id="missing")


class TestResolve:
    def test_top_up_after_restock(self, db, short_order, supervisor):
        add_stock(db, "SKU-S", "BIN-S", 5, prefix="RESTOCK-")
        e = _short_exception(db, short_order.task.id)

        resolved = resolve_exception(db, e.id, actor=supervisor.id)

        assert resolved.status == ExceptionStatus.RESOLVED
        assert resolved.resolved_by == supervisor.id
        assert resolved.data["reallocated"] == 2
        assert resolved.data["remaining"] == 0
        ti = short_order.task.items[0]
        assert db.query(TaskItemLockTag).filter(TaskItemLockTag.task_item_id == ti.id).count() == 5

    def test_partial_top_up_stays_pending(self, db, short_order, supervisor):
        add_stock(db, "SKU-S", "BIN-S", 1, prefix="RESTOCK-")
        e = _short_exception(db, short_order.task.id)

        still_open = resolve_exception(db, e.id, actor=supervisor.id)

        assert still_open.status == ExceptionStatus.PENDING
        assert still_open.quantity == 1
        assert still_open.data["reallocated"] == 1
        assert still_open.resolved_at is None
        assert [x.id for x in list_exceptions(db, status=ExceptionStatus.PENDING)] == [e.id]
        assert db.query(TaskItemLockTag).count() == 4

        add_stock(db, "SKU-S", "BIN-S", 1, prefix="RESTOCK2-")
        resolved = resolve_exception(db, e.id, actor=supervisor.id)
        assert resolved.status == ExceptionStatus.RESOLVED
        assert db.query(TaskItemLockTag).count() == 5

    def test_closing_short_needs_a_resolution(self, db, short_order, supervisor):
        e = _short_exception(db, short_order.task.id)

        with pytest.raises(CannotResolveException):
            resolve_exception(db, e.id, actor=supervisor.id)
        db.expire_all()
        assert e.status == ExceptionStatus.PENDING

        resolved = resolve_exception(db, e.id, actor=supervisor.id, resolution="customer accepts 3")
        assert resolved.status == ExceptionStatus.RESOLVED
        assert resolved.data["remaining"] == 2
        assert resolved.data["resolution"] == "customer accepts 3"

    def test_resolve_without_reallocation(self, db, short_order, supervisor):
        add_stock(db, "SKU-S", "BIN-S", 5, prefix="RESTOCK-")
        e = _short_exception(db, short_order.task.id)

        with pytest.raises(CannotResolveException):
            resolve_exception(db, e.id, actor=supervisor.id, reallocate=False)

        resolved = resolve_exception(db, e.id, actor=supervisor.id, reallocate=False, resolution="ship short")
        assert resolved.status == ExceptionStatus.RESOLVED
        assert "reallocated" not in resolved.data
        assert db.query(TaskItemLockTag).count() == 3

    def test_cannot_resolve_twice(self, db, short_order, supervisor):
        e = _short_exception(db, short_order.task.id)
        resolve_exception(db, e.id, actor=supervisor.id, resolution="ship short")
        with pytest.raises(CannotResolveException):
            resolve_exception(db, e.id, actor=supervisor.id, resolution="ship short")

    def test_unknown_exception(self, db, supervisor):
        with pytest.raises(ExceptionNotFound):
            resolve_exception(db, "missing", actor=supervisor.id)
