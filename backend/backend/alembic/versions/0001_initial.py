"""initial fulfillment schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19T09:00:00Z
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column("id", sa.String(length=36), primary_key=True)


def _created():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated():
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade():
    op.create_table(
        "users",
        _id(), _created(), _updated(),
        sa.Column("employee_id", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("pin_hash", sa.String(length=256), nullable=False),
        sa.Column("role", sa.String(length=24), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("warehouse", sa.String(length=32), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_by", sa.String(length=36), nullable=True),
    )
    op.create_index("ix_users_employee_id", "users", ["employee_id"], unique=True)
    op.create_index("ix_users_phone", "users", ["phone"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_status", "users", ["status"])
    op.create_index("ix_users_warehouse", "users", ["warehouse"])

    op.create_table(
        "audit_log",
        _id(), _created(),
        sa.Column("actor", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
    )
    op.create_index("ix_audit_log_actor", "audit_log", ["actor"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_type", "audit_log", ["entity_type"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_entity_time", "audit_log", ["entity_type", "entity_id", "created_at"])

    op.create_table(
        "sku",
        _id(), _created(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=256), nullable=False),
        sa.Column("unit_of_measure", sa.String(length=16), nullable=False),
        sa.Column("description", sa.String(length=512), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_sku_code", "sku", ["code"], unique=True)

    op.create_table(
        "bin",
        _id(), _created(),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("warehouse", sa.String(length=32), nullable=False),
        sa.Column("zone", sa.String(length=32), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("current_quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
    )
    op.create_index("ix_bin_code", "bin", ["code"], unique=True)
    op.create_index("ix_bin_warehouse", "bin", ["warehouse"])

    op.create_table(
        "lock_tag",
        _id(), _created(), _updated(),
        sa.Column("tag_code", sa.String(length=64), nullable=False),
        sa.Column("sku_id", sa.String(length=36), sa.ForeignKey("sku.id"), nullable=False),
        sa.Column("bin_id", sa.String(length=36), sa.ForeignKey("bin.id"), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
    )
    op.create_index("ix_lock_tag_tag_code", "lock_tag", ["tag_code"], unique=True)
    op.create_index("ix_lock_tag_sku_id", "lock_tag", ["sku_id"])
    op.create_index("ix_lock_tag_bin_id", "lock_tag", ["bin_id"])
    op.create_index("ix_lock_tag_status", "lock_tag", ["status"])
    op.create_index("ix_lock_tag_pool", "lock_tag", ["sku_id", "bin_id", "status", "created_at"])

    # wms_order.task_id -> wms_task is added after both tables exist
    op.create_table(
        "wms_order",
        _id(), _created(), _updated(),
        sa.Column("order_number", sa.String(length=64), nullable=False),
        sa.Column("customer_name", sa.String(length=256), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("priority", sa.String(length=24), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("warehouse", sa.String(length=32), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.String(length=36), nullable=True, unique=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("picked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_wms_order_order_number", "wms_order", ["order_number"], unique=True)
    op.create_index("ix_wms_order_status", "wms_order", ["status"])
    op.create_index("ix_wms_order_assigned_to", "wms_order", ["assigned_to"])
    op.create_index("ix_order_assignee_status", "wms_order", ["assigned_to", "status"])

    op.create_table(
        "wms_task",
        _id(), _created(), _updated(),
        sa.Column("type", sa.String(length=24), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("priority", sa.String(length=24), nullable=False),
        sa.Column("assigned_to", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("warehouse", sa.String(length=32), nullable=False),
        sa.Column("zone", sa.String(length=32), nullable=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("wms_order.id"), nullable=True),
        sa.Column("notes", sa.String(length=512), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_wms_task_type", "wms_task", ["type"])
    op.create_index("ix_wms_task_status", "wms_task", ["status"])
    op.create_index("ix_wms_task_assigned_to", "wms_task", ["assigned_to"])
    op.create_index("ix_wms_task_warehouse", "wms_task", ["warehouse"])
    op.create_index("ix_wms_task_order_id", "wms_task", ["order_id"])
    op.create_index("ix_task_assignee_status", "wms_task", ["assigned_to", "status"])

    with op.batch_alter_table("wms_order") as batch:
        batch.create_foreign_key("fk_wms_order_task_id", "wms_task", ["task_id"], ["id"])

    op.create_table(
        "order_item",
        _id(), _created(),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("wms_order.id"), nullable=False),
        sa.Column("sku_id", sa.String(length=36), sa.ForeignKey("sku.id"), nullable=False),
        sa.Column("bin_id", sa.String(length=36), sa.ForeignKey("bin.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
    )
    op.create_index("ix_order_item_order_id", "order_item", ["order_id"])
    op.create_index("ix_order_item_sku_id", "order_item", ["sku_id"])
    op.create_index("ix_order_item_bin_id", "order_item", ["bin_id"])

    op.create_table(
        "task_item",
        _id(), _created(), _updated(),
        sa.Column("task_id", sa.String(length=36), sa.ForeignKey("wms_task.id"), nullable=False),
        sa.Column("order_item_id", sa.String(length=36), sa.ForeignKey("order_item.id"), nullable=True),
        sa.Column("sku_id", sa.String(length=36), sa.ForeignKey("sku.id"), nullable=False),
        sa.Column("bin_id", sa.String(length=36), sa.ForeignKey("bin.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quantity_scanned", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
    )
    op.create_index("ix_task_item_task_id", "task_item", ["task_id"])
    op.create_index("ix_task_item_order_item_id", "task_item", ["order_item_id"])
    op.create_index("ix_task_item_sku_id", "task_item", ["sku_id"])
    op.create_index("ix_task_item_bin_id", "task_item", ["bin_id"])

    op.create_table(
        "task_item_lock_tag",
        _id(), _created(),
        sa.Column("task_item_id", sa.String(length=36), sa.ForeignKey("task_item.id"), nullable=False),
        sa.Column("lock_tag_id", sa.String(length=36), sa.ForeignKey("lock_tag.id"), nullable=False),
        sa.Column("lock_tag_code", sa.String(length=64), nullable=False),
        sa.Column("scanned", sa.Boolean(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("task_item_id", "lock_tag_id", name="uq_task_item_lock_tag"),
    )
    op.create_index("ix_task_item_lock_tag_task_item_id", "task_item_lock_tag", ["task_item_id"])
    op.create_index("ix_task_item_lock_tag_lock_tag_id", "task_item_lock_tag", ["lock_tag_id"])
    op.create_index("ix_task_item_lock_tag_lock_tag_code", "task_item_lock_tag", ["lock_tag_code"])

    op.create_table(
        "task_exception",
        _id(), _created(), _updated(),
        sa.Column("task_id", sa.String(length=36), sa.ForeignKey("wms_task.id"), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("description", sa.String(length=512), nullable=False),
        sa.Column("sku_id", sa.String(length=36), nullable=True),
        sa.Column("lock_tag_id", sa.String(length=36), nullable=True),
        sa.Column("bin_id", sa.String(length=36), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("resolved_by", sa.String(length=36), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_task_exception_task_id", "task_exception", ["task_id"])
    op.create_index("ix_task_exception_user_id", "task_exception", ["user_id"])
    op.create_index("ix_task_exception_type", "task_exception", ["type"])
    op.create_index("ix_task_exception_status", "task_exception", ["status"])

    op.create_table(
        "shift",
        _id(), _created(),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("warehouse", sa.String(length=32), nullable=False),
        sa.Column("zone", sa.String(length=32), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("selfie_uri", sa.String(length=512), nullable=True),
        sa.Column("end_selfie_uri", sa.String(length=512), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("geo_validated", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_shift_user_id", "shift", ["user_id"])
    op.create_index("ix_shift_status", "shift", ["status"])
    op.create_index("ix_shift_user_status", "shift", ["user_id", "status"])

    op.create_table(
        "geofence_setting",
        _id(), _created(), _updated(),
        sa.Column("warehouse", sa.String(length=32), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("radius_meters", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("updated_by", sa.String(length=36), nullable=True),
    )
    op.create_index("ix_geofence_setting_warehouse", "geofence_setting", ["warehouse"], unique=True)


def downgrade():
    op.drop_table("geofence_setting")
    op.drop_table("shift")
    op.drop_table("task_exception")
    op.drop_table("task_item_lock_tag")
    op.drop_table("task_item")
    op.drop_table("order_item")
    with op.batch_alter_table("wms_order") as batch:
        batch.drop_constraint("fk_wms_order_task_id", type_="foreignkey")
    op.drop_table("wms_task")
    op.drop_table("wms_order")
    op.drop_table("lock_tag")
    op.drop_table("bin")
    op.drop_table("sku")
    op.drop_table("audit_log")
    op.drop_table("users")
