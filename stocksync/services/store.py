# stocksync/services/store.py
import json
from typing import Optional, Tuple

from sqlalchemy import select, update

from ..errors import InsufficientStockError, ProductNotFoundError
from ..models import db, utcnow, GlobalProduct, ProductSiteMapping, StockSyncLog, WooCommerceSite

NON_GLOBAL_MESSAGE = "Non-global product - no action taken"
SKU_MISMATCH_MESSAGE = "SKU mismatch - product not found on target site"

# =========================================================
# Global inventory
# =========================================================

def get_global_product(sku: str) -> Optional[GlobalProduct]:
    if not sku:
        return None
    return GlobalProduct.query.filter_by(sku=sku).first()

def list_global_products() -> list[GlobalProduct]:
    return GlobalProduct.query.order_by(GlobalProduct.id).all()

def upsert_global_product(sku: str, product_name: str, stock_quantity: int) -> GlobalProduct:
    product = get_global_product(sku)
    if product is None:
        product = GlobalProduct(sku=sku)
        db.session.add(product)
    product.product_name = product_name
    product.stock_quantity = int(stock_quantity)
    product.updated_at = utcnow()
    db.session.commit()
    return product

def _current_stock(sku: str) -> int:
    return db.session.execute(
        select(GlobalProduct.stock_quantity).where(GlobalProduct.sku == sku)
    ).scalar_one()

def decrement_stock(sku: str, qty: int) -> Tuple[int, int]:
    """
    Subtract qty in one conditional UPDATE so concurrent reducers cannot
    both pass the non-negative check on a stale read. Returns (old, new).
    """
    result = db.session.execute(
        update(GlobalProduct)
        .where(GlobalProduct.sku == sku, GlobalProduct.stock_quantity >= qty)
        .values(stock_quantity=GlobalProduct.stock_quantity - qty, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise InsufficientStockError(sku)
    new = _current_stock(sku)
    db.session.commit()
    return new + qty, new

def increment_stock(sku: str, qty: int) -> Tuple[int, int]:
    result = db.session.execute(
        update(GlobalProduct)
        .where(GlobalProduct.sku == sku)
        .values(stock_quantity=GlobalProduct.stock_quantity + qty, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.rollback()
        raise ProductNotFoundError(sku)
    new = _current_stock(sku)
    db.session.commit()
    return new - qty, new

def set_stock(sku: str, qty: int) -> Tuple[int, int]:
    product = get_global_product(sku)
    if product is None:
        raise ProductNotFoundError(sku)
    old = product.stock_quantity
    product.stock_quantity = int(qty)
    product.updated_at = utcnow()
    db.session.commit()
    return old, int(qty)

# =========================================================
# SKU -> remote product mapping
# =========================================================

def get_mapping(sku: str, site_id: int) -> Optional[int]:
    mapping = ProductSiteMapping.query.filter_by(product_sku=sku, site_id=site_id).first()
    return mapping.woo_product_id if mapping else None

def save_mapping(sku: str, site_id: int, woo_product_id: int, commit: bool = True):
    mapping = ProductSiteMapping.query.filter_by(product_sku=sku, site_id=site_id).first()
    if mapping is None:
        mapping = ProductSiteMapping(product_sku=sku, site_id=site_id)
        db.session.add(mapping)
    mapping.woo_product_id = int(woo_product_id)
    mapping.last_synced = utcnow()
    if commit:
        db.session.commit()

# =========================================================
# Site status
# =========================================================

def mark_site_status(site_id: int, status: str, commit: bool = True):
    db.session.execute(
        update(WooCommerceSite)
        .where(WooCommerceSite.id == site_id)
        .values(sync_status=status, last_sync=utcnow())
        .execution_options(synchronize_session=False)
    )
    if commit:
        db.session.commit()

# =========================================================
# Sync log (append-only)
# =========================================================

def log_sync(commit: bool = True, **fields) -> StockSyncLog:
    entry = StockSyncLog(**fields)
    db.session.add(entry)
    if commit:
        db.session.commit()
    return entry

def log_non_global_product(sku: str, site_url: Optional[str], action: str) -> StockSyncLog:
    return log_sync(
        product_sku=sku,
        site_url=site_url,
        action=action,
        source="woocommerce",
        success=False,
        error_message=NON_GLOBAL_MESSAGE,
    )

def log_stock_error(err: Exception, site_url: Optional[str], action: Optional[str], data: dict) -> StockSyncLog:
    db.session.rollback()
    data = data if isinstance(data, dict) else {}
    return log_sync(
        product_sku=data.get("sku"),
        site_url=site_url,
        action=action,
        source=data.get("source") or "unknown",
        success=False,
        error_message=str(err),
        meta=json.dumps(data, default=str),
    )

def recent_logs(limit: int = 100, sku: Optional[str] = None) -> list[StockSyncLog]:
    q = StockSyncLog.query
    if sku:
        q = q.filter_by(product_sku=sku)
    return q.order_by(StockSyncLog.id.desc()).limit(limit).all()
