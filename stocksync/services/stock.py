# stocksync/services/stock.py
from typing import Callable, Optional

from . import store
from .registry import SiteConfig, SiteRegistry
from .sync import sync_stock_to_sites
from ..errors import ProductNotFoundError, ValidationError
from ..utils.logger import info

# =========================================================
# Input validation
# =========================================================

def _require_sku(data: dict) -> str:
    sku = data.get("sku")
    if isinstance(sku, (int, float)) and not isinstance(sku, bool):
        sku = str(sku)
    if not isinstance(sku, str) or not sku.strip():
        raise ValidationError("sku is required")
    return sku.strip()

def _require_int(data: dict, field: str, minimum: int) -> int:
    value = data.get(field)
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return number

def _order_id(value) -> Optional[str]:
    return None if value is None else str(value)

# =========================================================
# Shared skeleton
# ---------------------------------------------------------
# load product -> mutate global stock -> fan out -> transaction row.
# The transaction row is written after the fan-out whatever the legs did.
# =========================================================

def _reconcile(registry: SiteRegistry, sku: str, action: str, mutate: Callable[[], tuple],
               targets: list[SiteConfig], sync_action: str, log_fields: dict) -> dict:
    old, new = mutate()
    info(f"[{action}] SKU={sku} {old} -> {new}")

    legs = sync_stock_to_sites(registry, sku, new, targets, sync_action)

    store.log_sync(product_sku=sku, action=action, old_stock=old, new_stock=new, **log_fields)
    return {
        "sku": sku,
        "old_stock": old,
        "new_stock": new,
        "sites": [leg.as_dict(sku) for leg in legs],
    }

def _non_global(sku: str, site_url: Optional[str], action: str) -> None:
    store.log_non_global_product(sku, site_url, action)
    info(f"[{action}] SKU={sku} is not a global product, no action taken (origin {site_url})")
    return None

# =========================================================
# Handlers for storefront events
# =========================================================

def handle_stock_reduce(registry: SiteRegistry, data: dict, site_url: Optional[str]) -> Optional[dict]:
    sku = _require_sku(data)
    qty = _require_int(data, "qty", 1)

    if store.get_global_product(sku) is None:
        return _non_global(sku, site_url, "reduce")

    return _reconcile(
        registry, sku, "reduce",
        lambda: store.decrement_stock(sku, qty),
        registry.get_other_sites(site_url), "reduce",
        {"site_url": site_url, "quantity": qty, "order_id": _order_id(data.get("order_id")),
         "source": "woocommerce"},
    )

def handle_stock_restore(registry: SiteRegistry, data: dict, site_url: Optional[str]) -> Optional[dict]:
    """Cancelled/refunded order on a storefront: put qty back."""
    sku = _require_sku(data)
    qty = _require_int(data, "qty", 1)

    if store.get_global_product(sku) is None:
        return _non_global(sku, site_url, "restore")

    return _reconcile(
        registry, sku, "restore",
        lambda: store.increment_stock(sku, qty),
        registry.get_other_sites(site_url), "restore",
        {"site_url": site_url, "quantity": qty, "order_id": _order_id(data.get("order_id")),
         "source": "woocommerce"},
    )

def handle_manual_update(registry: SiteRegistry, data: dict, site_url: Optional[str]) -> Optional[dict]:
    """Stock edited by hand in a storefront admin: absolute value, not a delta."""
    sku = _require_sku(data)
    stock = _require_int(data, "stock", 0)

    if store.get_global_product(sku) is None:
        return _non_global(sku, site_url, "manual")

    return _reconcile(
        registry, sku, "manual_update",
        lambda: store.set_stock(sku, stock),
        registry.get_other_sites(site_url), "manual_update",
        {"site_url": site_url, "source": "woocommerce"},
    )

# =========================================================
# Handler for orders placed in the central app
# =========================================================

def handle_order(registry: SiteRegistry, data: dict) -> dict:
    sku = _require_sku(data)
    quantity = _require_int(data, "quantity", 1)

    if store.get_global_product(sku) is None:
        raise ProductNotFoundError(sku)

    # the origin is the central app, so every storefront gets the new value
    return _reconcile(
        registry, sku, "reduce_from_nextjs",
        lambda: store.decrement_stock(sku, quantity),
        registry.get_all_sites(), "nextjs_order",
        {"site_url": data.get("siteUrl") or "nextjs", "quantity": quantity,
         "order_id": _order_id(data.get("orderId")), "source": "nextjs"},
    )
