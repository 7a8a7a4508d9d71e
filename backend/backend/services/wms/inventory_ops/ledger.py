from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.models.inventory_exec import Bin, LockTag, LockTagStatus, Sku

log = get_logger("wms.ledger")


@dataclass
class Allocation:
    """Result of one allocate() call. ``tags`` are the LockTags this call claimed."""

    sku_id: str
    bin_id: str
    requested: int
    tags: list[LockTag] = field(default_factory=list)

    @property
    def allocated(self) -> int:
        return len(self.tags)

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.allocated, 0)

    @property
    def is_short(self) -> bool:
        return self.shortfall > 0


class InventoryLedger:
    """LockTag pool for one session.

    Every status flip is a conditional UPDATE guarded by the expected current
    status, so a tag is only ever claimed by the caller whose UPDATE touched it.
    Nothing here commits; callers own the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def available(self, sku_id: str, bin_id: str) -> int:
        return (
            self.db.query(func.count(LockTag.id))
            .filter(
                LockTag.sku_id == sku_id,
                LockTag.bin_id == bin_id,
                LockTag.status == LockTagStatus.IN_STOCK,
            )
            .scalar()
        ) or 0

    def allocate(self, sku_id: str, bin_id: str, quantity: int) -> Allocation:
        if quantity <= 0:
            raise ValueError("quantity must be positive")

        result = Allocation(sku_id=sku_id, bin_id=bin_id, requested=quantity)
        tried: set[str] = set()

        while result.allocated < quantity:
            need = quantity - result.allocated
            candidates = self._candidates(sku_id, bin_id, need, exclude=tried)
            if not candidates:
                break
            for tag in candidates:
                tried.add(tag.id)
                if self._claim(tag.id):
                    result.tags.append(tag)
                else:
                    log.debug("lost claim on lock tag %s; retrying selection", tag.tag_code)

        if result.is_short:
            log.warning(
                "short allocation sku=%s bin=%s requested=%s allocated=%s",
                sku_id, bin_id, quantity, result.allocated,
            )
        return result

    def _candidates(self, sku_id: str, bin_id: str, limit: int, *, exclude: Iterable[str] = ()) -> list[LockTag]:
        q = self.db.query(LockTag).filter(
            LockTag.sku_id == sku_id,
            LockTag.bin_id == bin_id,
            LockTag.status == LockTagStatus.IN_STOCK,
        )
        exclude = list(exclude)
        if exclude:
            q = q.filter(LockTag.id.not_in(exclude))
        # FOR UPDATE SKIP LOCKED on PostgreSQL; a no-op on SQLite
        return (
            q.order_by(LockTag.created_at, LockTag.tag_code)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )

    def _claim(self, tag_id: str) -> bool:
        return self._transition(tag_id, LockTagStatus.IN_STOCK, LockTagStatus.ALLOCATED)

    def consume(self, tag_id: str) -> bool:
        """Allocated -> Consumed. False when the tag was not Allocated."""
        return self._transition(tag_id, LockTagStatus.ALLOCATED, LockTagStatus.CONSUMED)

    def release(self, tag_ids: Iterable[str]) -> int:
        """Return Allocated tags to InStock. Consumed tags stay consumed."""
        ids = list(tag_ids)
        if not ids:
            return 0
        released = (
            self.db.query(LockTag)
            .filter(LockTag.id.in_(ids), LockTag.status == LockTagStatus.ALLOCATED)
            .update({LockTag.status: LockTagStatus.IN_STOCK}, synchronize_session="fetch")
        )
        log.info("released %s of %s lock tags", released, len(ids))
        return released

    def _transition(self, tag_id: str, expected: LockTagStatus, new: LockTagStatus) -> bool:
        touched = (
            self.db.query(LockTag)
            .filter(LockTag.id == tag_id, LockTag.status == expected)
            .update({LockTag.status: new}, synchronize_session="evaluate")
        )
        return touched == 1

    def stock_levels(self, *, sku_id: str | None = None, bin_id: str | None = None) -> list[dict]:
        q = (
            self.db.query(
                Sku.id, Sku.code, Bin.id, Bin.code, LockTag.status, func.count(LockTag.id)
            )
            .join(Sku, Sku.id == LockTag.sku_id)
            .join(Bin, Bin.id == LockTag.bin_id)
        )
        if sku_id:
            q = q.filter(LockTag.sku_id == sku_id)
        if bin_id:
            q = q.filter(LockTag.bin_id == bin_id)
        q = q.group_by(Sku.id, Sku.code, Bin.id, Bin.code, LockTag.status).order_by(Sku.code, Bin.code)

        levels: dict[tuple[str, str], dict] = {}
        for s_id, s_code, b_id, b_code, status, count in q.all():
            row = levels.setdefault(
                (s_id, b_id),
                {
                    "sku_id": s_id,
                    "sku_code": s_code,
                    "bin_id": b_id,
                    "bin_code": b_code,
                    **{st.value: 0 for st in LockTagStatus},
                },
            )
            row[LockTagStatus(status).value] = count
        return list(levels.values())
