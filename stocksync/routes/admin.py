# stocksync/routes/admin.py
from flask import Blueprint, current_app, request

from ..errors import RemoteError, StockSyncError
from ..models import db
from ..services import sites, store
from ..services.stock import _require_int
from ..services.sync import bulk_sync, register_global_product, sync_product_to_site
from ..utils.logger import error
from ..utils.security import verify_admin_key

bp = Blueprint("admin", __name__)


@bp.before_request
def _admin_only():
    verify_admin_key()


def _registry():
    return current_app.extensions["site_registry"]


def _body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _fail(e: Exception, what: str):
    db.session.rollback()
    error(f"[admin] {what}: {e}")
    if isinstance(e, RemoteError) and e.status in (401, 403):
        return {"error": "WooCommerce API authentication failed. Check API keys and permissions."}, 400
    if isinstance(e, RemoteError) and e.status == 404:
        return {"error": "WooCommerce API endpoint not found. Check site URL configuration."}, 400
    status = e.status_code if isinstance(e, StockSyncError) else 500
    return {"error": str(e)}, status

# =========================================================
# Sites
# =========================================================

@bp.get("/sites")
def list_sites():
    try:
        data = [s.to_dict() for s in sites.list_sites()]
    except Exception as e:
        return _fail(e, "list sites")
    return {"success": True, "data": data}, 200


@bp.post("/sites")
def add_site():
    body = _body()
    try:
        site, api_key = sites.add_site(
            _registry(),
            site_url=body.get("site_url"),
            site_name=body.get("site_name"),
            consumer_key=body.get("consumer_key"),
            consumer_secret=body.get("consumer_secret"),
            is_primary=bool(body.get("is_primary")),
        )
    except Exception as e:
        return _fail(e, "add site")
    return {"success": True, "data": site.to_dict(), "apiKey": api_key}, 200

# =========================================================
# Sync
# =========================================================

@bp.post("/sync/bulk")
def sync_bulk():
    try:
        outcome = bulk_sync(_registry())
    except Exception as e:
        return _fail(e, "bulk sync")
    return {"success": True, "message": "Bulk sync completed", **outcome}, 200


@bp.post("/sync/product")
def sync_product():
    body = _body()
    sku, site_id = body.get("sku"), body.get("siteId")
    if not sku or not site_id:
        return {"error": "SKU and siteId are required"}, 400
    try:
        site_id = int(site_id)
    except (TypeError, ValueError):
        return {"error": "siteId must be an integer"}, 400

    try:
        data = sync_product_to_site(_registry(), str(sku), site_id)
    except Exception as e:
        return _fail(e, f"product sync SKU={sku} site={site_id}")
    return {"success": True, "message": f"Product {sku} synced to {data['site']}", "data": data}, 200


@bp.post("/products")
def register_product():
    body = _body()
    sku = body.get("sku")
    if not sku:
        return {"error": "SKU is required"}, 400
    try:
        stock = _require_int({"stock_quantity": body.get("stock_quantity", 0)}, "stock_quantity", 0)
        legs = register_global_product(
            _registry(), str(sku), stock, body.get("product_name") or str(sku), body.get("inventory_type") or ""
        )
    except Exception as e:
        return _fail(e, f"register SKU={sku}")

    if legs is None:
        return {"success": True, "synced": False, "message": f"Product {sku} is not marked as Global"}, 200
    return {"success": True, "synced": True, "siteResults": [leg.as_dict(str(sku)) for leg in legs]}, 200

# =========================================================
# Logs
# =========================================================

@bp.get("/logs")
def logs():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit or 100, 1000))
    rows = store.recent_logs(limit=limit, sku=request.args.get("sku"))
    return {"success": True, "data": [r.to_dict() for r in rows]}, 200
