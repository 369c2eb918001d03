# stocksync/routes/products.py
from flask import Blueprint, request

from ..services import store
from ..utils.logger import error
from ..utils.security import verify_api_key_headers

bp = Blueprint("products", __name__)


@bp.post("/check")
def check():
    verify_api_key_headers()

    body = request.get_json(silent=True) or {}
    sku = body.get("sku") if isinstance(body, dict) else None
    if not sku:
        return {"error": "SKU is required"}, 400

    try:
        product = store.get_global_product(str(sku))
    except Exception as e:
        error(f"[products] check SKU={sku}: {e}")
        return {"error": str(e)}, 500

    if product is None:
        return {"exists": False}, 200
    return {"exists": True, "sku": product.sku}, 200
