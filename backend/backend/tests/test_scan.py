import pytest

from app.core.errors import (
    InvalidTaskOperation,
    MissingRequiredField,
    TaskAlreadyCompleted,
    TaskNotFound,
)
from app.db.models.docs import OrderStatus
from app.db.models.inventory_exec import LockTag, LockTagStatus
from app.db.models.security_audit import AuditLog
from app.db.models.wms.tasking import TaskItemLockTag, TaskItemStatus, TaskStatus
from services.wms.orders.coordinator import create_order_with_task
from services.wms.scan.pick_scan import NOT_IN_TASK, cancel_task, complete_task, process_scan

from conftest import line


@pytest.fixture
def order(db, stock, pickers, manager):
    """ORD-1001: 5 x SKU-A from BIN-1 and 3 x SKU-B from BIN-2, assigned to the first picker."""
    return create_order_with_task(
        db,
        order_number="ORD-1001",
        customer_name="John Doe",
        items=[line("SKU-A", "BIN-1", 5), line("SKU-B", "BIN-2", 3)],
        actor=manager.id,
        pool=pickers,
    )


def _item(task, quantity):
    return next(ti for ti in task.items if ti.quantity == quantity)


def _codes(task, quantity):
    return [r.lock_tag_code for r in _item(task, quantity).lock_tags]


def _tag(db, code):
    return db.query(LockTag).filter(LockTag.tag_code == code).one()


class TestProcessScan:
    def test_first_scan_starts_task_and_consumes_tag(self, db, order, pickers):
        task = order.task
        code = _codes(task, 5)[0]

        result = process_scan(db, task.id, pickers[0].id, code)

        assert result.matched is True
        assert result.action == "scanned"
        assert (result.new_count, result.quantity) == (1, 5)
        assert result.sku == "SKU-A"
        assert result.item_completed is False
        assert result.message == "Scanned 1/5"

        db.expire_all()
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.started_at is not None
        assert _tag(db, code).status == LockTagStatus.CONSUMED
        row = db.query(TaskItemLockTag).filter(TaskItemLockTag.lock_tag_code == code).one()
        assert row.scanned is True
        assert row.scanned_at is not None

    def test_last_scan_completes_item(self, db, order, pickers):
        task = order.task
        codes = _codes(task, 5)
        for code in codes[:4]:
            result = process_scan(db, task.id, pickers[0].id, code)
        assert result.new_count == 4
        assert result.item_completed is False

        result = process_scan(db, task.id, pickers[0].id, codes[4])
        assert result.new_count == 5
        assert result.item_completed is True

        db.expire_all()
        item = _item(task, 5)
        assert item.status == TaskItemStatus.COMPLETED
        assert _item(task, 3).status == TaskItemStatus.PENDING

    def test_rescan_does_not_inflate_progress(self, db, order, pickers):
        task = order.task
        code = _codes(task, 3)[0]
        process_scan(db, task.id, pickers[0].id, code)

        again = process_scan(db, task.id, pickers[0].id, code)

        assert again.matched is True
        assert again.action == "already_scanned"
        assert again.new_count == 1
        assert again.message == "Already scanned 1/3"
        db.expire_all()
        assert _item(task, 3).quantity_scanned == 1

    def test_unknown_code_changes_nothing(self, db, order, pickers, stock):
        task = order.task
        # a real tag of the right SKU that was never reserved for this task
        reserved = {r.lock_tag_id for ti in task.items for r in ti.lock_tags}
        stray = next(t for t in stock["A"][2] if t.id not in reserved)

        for code in (stray.tag_code, "LT-NOPE"):
            result = process_scan(db, task.id, pickers[0].id, code)
            assert result.matched is False
            assert result.message == NOT_IN_TASK
            assert result.new_count is None

        db.expire_all()
        assert task.status == TaskStatus.ASSIGNED
        assert task.started_at is None
        assert _tag(db, stray.tag_code).status == LockTagStatus.IN_STOCK
        assert all(ti.quantity_scanned == 0 for ti in task.items)

    def test_blank_code(self, db, order, pickers):
        with pytest.raises(MissingRequiredField):
            process_scan(db, order.task.id, pickers[0].id, "   ")

    def test_other_workers_cannot_scan(self, db, order, pickers):
        code = _codes(order.task, 5)[0]
        with pytest.raises(TaskNotFound):
            process_scan(db, order.task.id, pickers[1].id, code)
        assert _tag(db, code).status == LockTagStatus.ALLOCATED

    def test_closed_task_rejects_scans(self, db, order, pickers):
        task = order.task
        code = _codes(task, 5)[0]
        complete_task(db, task.id, pickers[0].id)
        with pytest.raises(InvalidTaskOperation):
            process_scan(db, task.id, pickers[0].id, code)

    def test_progress_is_monotonic_and_bounded(self, db, order, pickers):
        task = order.task
        codes = _codes(task, 3)
        seen = []
        for code in codes + codes + ["LT-NOPE"]:
            result = process_scan(db, task.id, pickers[0].id, code)
            if result.matched:
                seen.append(result.new_count)
        assert seen == sorted(seen)
        assert max(seen) == 3
        db.expire_all()
        assert _item(task, 3).quantity_scanned == 3


class TestCompleteTask:
    def test_completion_cascades_to_order(self, db, order, pickers):
        task = order.task
        for ti in task.items:
            for r in ti.lock_tags:
                process_scan(db, task.id, pickers[0].id, r.lock_tag_code)

        done = complete_task(db, task.id, pickers[0].id)

        assert done.status == TaskStatus.COMPLETED
        assert done.completed_at is not None
        db.expire_all()
        assert order.order.status == OrderStatus.PICKED
        assert order.order.picked_at is not None
        assert db.query(AuditLog).filter(AuditLog.action == "TASK_COMPLETED").count() == 1

    def test_second_completion_is_rejected(self, db, order, pickers):
        task = order.task
        complete_task(db, task.id, pickers[0].id)
        db.expire_all()
        first = task.completed_at

        with pytest.raises(TaskAlreadyCompleted):
            complete_task(db, task.id, pickers[0].id)

        db.expire_all()
        assert task.completed_at == first
        assert order.order.status == OrderStatus.PICKED

    def test_unscanned_items_do_not_block_completion(self, db, order, pickers):
        task = order.task
        process_scan(db, task.id, pickers[0].id, _codes(task, 3)[0])

        complete_task(db, task.id, pickers[0].id)

        entry = db.query(AuditLog).filter(AuditLog.action == "TASK_COMPLETED").one()
        assert len(entry.payload["unscanned_items"]) == 2

    def test_other_worker_cannot_complete(self, db, order, pickers):
        with pytest.raises(TaskNotFound):
            complete_task(db, order.task.id, pickers[2].id)


class TestCancelTask:
    def test_cancel_releases_unscanned_reservations(self, db, order, pickers, manager):
        task = order.task
        scanned = _codes(task, 5)[0]
        process_scan(db, task.id, pickers[0].id, scanned)

        cancel_task(db, task.id, actor=manager.id, reason="customer cancelled")

        db.expire_all()
        assert task.status == TaskStatus.CANCELLED
        assert _tag(db, scanned).status == LockTagStatus.CONSUMED
        allocated = db.query(LockTag).filter(LockTag.status == LockTagStatus.ALLOCATED).count()
        assert allocated == 0
        rows = db.query(TaskItemLockTag).all()
        assert [r.lock_tag_code for r in rows] == [scanned]

    def test_closed_task_cannot_be_cancelled_or_completed(self, db, order, pickers, manager):
        task = order.task
        cancel_task(db, task.id, actor=manager.id)

        with pytest.raises(InvalidTaskOperation):
            cancel_task(db, task.id, actor=manager.id)
        with pytest.raises(InvalidTaskOperation):
            complete_task(db, task.id, pickers[0].id)

    def test_unknown_task(self, db, manager):
        with pytest.raises(TaskNotFound):
            cancel_task(db, "missing", actor=manager.id)
