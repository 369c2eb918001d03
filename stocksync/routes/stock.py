# stocksync/routes/stock.py
from flask import Blueprint, current_app, request

from ..errors import StockSyncError
from ..services import store
from ..services.stock import handle_manual_update, handle_order, handle_stock_reduce, handle_stock_restore
from ..utils.logger import info, error
from ..utils.security import verify_sync_request

bp = Blueprint("stock", __name__)

STOREFRONT_ACTIONS = {
    "reduce": handle_stock_reduce,
    "restore": handle_stock_restore,
    "manual": handle_manual_update,
}


@bp.post("/<action>")
def stock_action(action: str):
    registry = current_app.extensions["site_registry"]
    site_url = verify_sync_request(registry)

    if action != "order" and action not in STOREFRONT_ACTIONS:
        return {"error": "Invalid action"}, 400

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    info(f"[stock] /{action} received. SKU={body.get('sku')} origin={site_url}")

    try:
        if action == "order":
            handle_order(registry, body)
        else:
            STOREFRONT_ACTIONS[action](registry, body, site_url)
    except Exception as e:
        status = e.status_code if isinstance(e, StockSyncError) else 500
        error(f"[stock] /{action} SKU={body.get('sku')}: {e}")
        try:
            store.log_stock_error(e, site_url, action, body)
        except Exception as log_err:
            error(f"[stock] could not write error log row: {log_err}")
        return {"error": str(e)}, status

    return {"success": True}, 200
