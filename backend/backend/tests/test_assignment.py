from collections import Counter

import pytest

from app.core.errors import EmptyOrder, InsufficientStock, NoPickersAvailable
from app.db.models.auth import Role, UserStatus
from app.db.models.docs import Order, OrderItem
from app.db.models.wms.tasking import Task, TaskPriority, TaskStatus, TaskType
from services.wms.tasking.assignment import TaskAssigner, available_pickers, pick_assignee

from conftest import add_stock, make_user


class TestPickAssignee:
    @pytest.mark.parametrize("orders,workers", [(10, 3), (7, 2), (5, 5), (12, 4), (2, 5)])
    def test_round_robin_fairness(self, orders, workers):
        pool = [f"w{i}" for i in range(workers)]
        picks = [pick_assignee(pool, n) for n in range(orders)]
        counts = Counter(picks)

        lo, hi = orders // workers, -(-orders // workers)
        assert all(lo <= c <= hi for c in counts.values())
        assert sum(counts.values()) == orders
        # idle first: the first min(N, M) orders go to distinct workers
        first = picks[: min(orders, workers)]
        assert len(set(first)) == len(first)

    def test_cycles_in_pool_order(self):
        pool = ["a", "b", "c"]
        assert [pick_assignee(pool, n) for n in range(7)] == ["a", "b", "c", "a", "b", "c", "a"]

    def test_empty_pool(self):
        with pytest.raises(NoPickersAvailable):
            pick_assignee([], 0)


class TestAvailablePickers:
    def test_filters_role_status_and_warehouse(self, db):
        ok = make_user(db, employee_id="PP-WH1-000010")
        active = make_user(db, employee_id="PP-WH1-000011", status=UserStatus.ACTIVE)
        make_user(db, employee_id="PP-WH1-000012", status=UserStatus.PENDING)
        make_user(db, employee_id="PP-WH1-000013", status=UserStatus.REJECTED)
        make_user(db, employee_id="ASM-WH1-000099", role=Role.ASM)
        make_user(db, employee_id="PP-WH2-000001", warehouse="WH2")

        pool = available_pickers(db, "WH1")
        assert [u.id for u in pool] == [ok.id, active.id]

    def test_idle_workers_first(self, db):
        busy = make_user(db, employee_id="PP-WH1-000001")
        idle = make_user(db, employee_id="PP-WH1-000002")
        done = make_user(db, employee_id="PP-WH1-000003")
        db.add(Task(type=TaskType.PICK, status=TaskStatus.ASSIGNED, warehouse="WH1", assigned_to=busy.id))
        # closed tasks do not count as load
        db.add(Task(type=TaskType.PICK, status=TaskStatus.COMPLETED, warehouse="WH1", assigned_to=done.id))
        db.commit()

        pool = available_pickers(db, "WH1")
        assert [u.employee_id for u in pool] == [idle.employee_id, done.employee_id, busy.employee_id]


class TestTaskAssigner:
    def test_rejects_order_without_items(self, db, pickers):
        order = Order(order_number="ORD-X", customer_name="X", warehouse="WH1", priority=TaskPriority.URGENT)
        with pytest.raises(EmptyOrder):
            TaskAssigner(db, pickers).create_pick_task(order, [])

    def test_counter_only_advances_on_success(self, db, pickers, stock):
        assigner = TaskAssigner(db, pickers, strict=True)
        low_sku, low_bin, _ = add_stock(db, "SKU-LOW", "BIN-LOW", 1)

        with pytest.raises(InsufficientStock):
            assigner.create_pick_task(*_order(db, "ORD-SHORT", low_sku, low_bin, 3))
        db.rollback()
        assert assigner.assigned_count == 0
        assert assigner.next_assignee() is pickers[0]

        sku, bin_, _ = stock["A"]
        result = assigner.create_pick_task(*_order(db, "ORD-FULL", sku, bin_, 3))
        assert result.task.assigned_to == pickers[0].id
        assert assigner.assigned_count == 1
        assert assigner.next_assignee() is pickers[1]


def _order(db, number, sku, bin_, quantity):
    order = Order(order_number=number, customer_name="C", warehouse="WH1", priority=TaskPriority.URGENT)
    db.add(order)
    db.flush()
    item = OrderItem(order_id=order.id, sku_id=sku.id, bin_id=bin_.id, quantity=quantity)
    db.add(item)
    db.flush()
    return order, [item]
