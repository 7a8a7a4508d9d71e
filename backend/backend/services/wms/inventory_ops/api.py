from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.errors import BinNotFound, SkuNotFound
from app.db.session import get_db
from app.db.models.inventory_exec import Bin, Sku
from services.wms.inventory_ops.ledger import InventoryLedger
from services.wms.security.security import require_operation

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/stock")
def stock(
    sku: str | None = None,
    bin: str | None = None,
    db: Session = Depends(get_db),
    p=Depends(require_operation("inventory.view")),
):
    """LockTag counts per (sku, bin) and status. Filters take codes."""
    sku_id = bin_id = None
    if sku:
        sku_id = db.query(Sku.id).filter(Sku.code == sku).scalar()
        if not sku_id:
            raise SkuNotFound(f"SKU {sku} not found")
    if bin:
        bin_id = db.query(Bin.id).filter(Bin.code == bin).scalar()
        if not bin_id:
            raise BinNotFound(f"Bin {bin} not found")
    return {"success": True, "data": InventoryLedger(db).stock_levels(sku_id=sku_id, bin_id=bin_id)}
