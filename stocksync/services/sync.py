# stocksync/services/sync.py
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from . import store
from .registry import SiteConfig, SiteRegistry
from ..errors import ProductNotFoundError, RemoteError, SiteNotFoundError, StockSyncError, ValidationError
from ..models import db, WooCommerceSite
from ..utils.logger import debug, info, warn, error

# =========================================================
# Per-site leg
# ---------------------------------------------------------
# A leg resolves the remote product id (cached mapping, then a lookup by
# SKU, optionally a create) and pushes the stock value. Legs run on worker
# threads and only talk HTTP; every database write happens afterwards on
# the request thread in _record_leg().
# =========================================================

@dataclass
class LegResult:
    site: SiteConfig
    success: bool
    woo_product_id: Optional[int] = None
    discovered: bool = False
    created: bool = False
    error: Optional[str] = None

    def as_dict(self, sku: str) -> dict:
        out = {"site": self.site.site_name, "sku": sku, "success": self.success}
        if self.error:
            out["error"] = self.error
        return out


def _push_leg(client, site: SiteConfig, sku: str, stock: int,
              woo_product_id: Optional[int], create_name: Optional[str] = None) -> LegResult:
    discovered = created = False
    try:
        if client is None:
            raise RemoteError(f"No client for site: {site.site_url}")

        if woo_product_id:
            try:
                client.set_stock(woo_product_id, stock)
                info(f"[sync ➝ {site.site_url}] SKU={sku} PID {woo_product_id} pushed {stock}")
                return LegResult(site, True, woo_product_id)
            except RemoteError as e:
                if e.status != 404:
                    raise
                # cached id is stale (product deleted or recreated remotely)
                warn(f"[sync ➝ {site.site_url}] SKU={sku} PID {woo_product_id} gone, looking up by SKU")
                woo_product_id = None

        remote = client.find_product_by_sku(sku)
        if remote:
            woo_product_id = remote["id"]
            discovered = True
        elif create_name is not None:
            woo_product_id = client.create_product(create_name, sku, stock)["id"]
            discovered = created = True
            info(f"[sync ➝ {site.site_url}] SKU={sku} created PID {woo_product_id} with stock {stock}")
            return LegResult(site, True, woo_product_id, discovered, created)
        else:
            warn(f"[sync ➝ {site.site_url}] SKU={sku} not found on site")
            return LegResult(site, False, error=store.SKU_MISMATCH_MESSAGE)

        client.set_stock(woo_product_id, stock)
        info(f"[sync ➝ {site.site_url}] SKU={sku} PID {woo_product_id} pushed {stock}")
        return LegResult(site, True, woo_product_id, discovered)

    except Exception as e:  # one bad site never unwinds the others
        error(f"[sync ➝ {site.site_url}] SKU={sku}: {e}")
        return LegResult(site, False, woo_product_id, discovered, created, error=str(e))


def _record_leg(leg: LegResult, sku: str, stock: int, log_action: str):
    site = leg.site
    if leg.discovered and leg.woo_product_id:
        store.save_mapping(sku, site.id, leg.woo_product_id, commit=False)
    store.mark_site_status(site.id, "success" if leg.success else "failed", commit=False)
    store.log_sync(
        commit=False,
        product_sku=sku,
        site_url=site.site_url,
        action=log_action,
        new_stock=stock,
        source="nextjs",
        success=leg.success,
        error_message=leg.error,
    )


def _max_workers(n_sites: int) -> int:
    return max(1, min(n_sites, int(current_app.config.get("SYNC_MAX_WORKERS", 8))))

# =========================================================
# Fan-out
# =========================================================

def sync_stock_to_sites(registry: SiteRegistry, sku: str, stock: int, sites: list[SiteConfig],
                        action: str, create_name: Optional[str] = None,
                        log_action: Optional[str] = None) -> list[LegResult]:
    """
    Push `stock` for `sku` to every site concurrently and wait for all legs
    to settle. Returns one LegResult per site; failures are recorded, never
    raised.
    """
    if not sites:
        debug(f"[sync] SKU={sku} no target sites")
        return []

    log_action = log_action or f"sync_{action}"
    known = {site.id: store.get_mapping(sku, site.id) for site in sites}
    clients = {site.site_url: registry.get_client(site.site_url) for site in sites}

    with ThreadPoolExecutor(max_workers=_max_workers(len(sites))) as pool:
        futures = [
            pool.submit(_push_leg, clients[site.site_url], site, sku, stock, known[site.id], create_name)
            for site in sites
        ]
        legs = [f.result() for f in futures]

    try:
        for leg in legs:
            _record_leg(leg, sku, stock, log_action)
        db.session.commit()
    except SQLAlchemyError as e:
        # global stock is already committed; losing leg rows must not fail the caller
        db.session.rollback()
        error(f"[sync] SKU={sku} could not record {len(legs)} leg(s): {e}")

    ok = sum(1 for leg in legs if leg.success)
    info(f"[sync] SKU={sku} {action}: {ok}/{len(legs)} site(s) updated")
    return legs

# =========================================================
# Admin: bulk / single product / initial registration
# =========================================================

def bulk_sync(registry: SiteRegistry) -> dict:
    sites = registry.get_all_sites()
    if not sites:
        raise ValidationError("No WooCommerce sites configured")

    products = [(p.sku, p.product_name, p.stock_quantity) for p in store.list_global_products()]
    synced = failed = 0
    results = []

    for sku, name, stock in products:
        try:
            legs = sync_stock_to_sites(registry, sku, stock, sites, "bulk",
                                       create_name=name or sku, log_action="bulk_sync")
        except Exception as e:
            db.session.rollback()
            error(f"[bulk] SKU={sku}: {e}")
            failed += len(sites)
            results.append({"product": name, "sku": sku, "error": str(e), "siteResults": []})
            continue

        synced += sum(1 for leg in legs if leg.success)
        failed += sum(1 for leg in legs if not leg.success)
        results.append({
            "product": name,
            "sku": sku,
            "siteResults": [leg.as_dict(sku) for leg in legs],
        })

    info(f"[bulk] done: {len(products)} product(s) x {len(sites)} site(s), synced={synced} failed={failed}")
    return {
        "stats": {
            "totalProducts": len(products),
            "totalSites": len(sites),
            "synced": synced,
            "failed": failed,
            "totalOperations": len(products) * len(sites),
        },
        "results": results,
    }


def sync_product_to_site(registry: SiteRegistry, sku: str, site_id: int) -> dict:
    site_row = db.session.get(WooCommerceSite, site_id)
    if site_row is None:
        raise SiteNotFoundError(site_id)
    site_url = site_row.site_url.strip()
    site_name = site_row.site_name

    product = store.get_global_product(sku)
    if product is None:
        raise ProductNotFoundError(sku, status_code=404)
    name, stock = product.product_name, product.stock_quantity

    client = registry.get_client(site_url)
    if client is None:
        raise StockSyncError(f"No WooCommerce client configured for site: {site_url}", 400)

    try:
        remote = client.find_product_by_sku(sku)
        if remote:
            woo_product_id = remote["id"]
            client.set_stock(woo_product_id, stock)
        else:
            woo_product_id = client.create_product(name or sku, sku, stock)["id"]
    except RemoteError:
        store.mark_site_status(site_id, "failed")
        raise

    store.save_mapping(sku, site_id, woo_product_id, commit=False)
    store.mark_site_status(site_id, "success", commit=False)
    db.session.commit()
    info(f"[admin] SKU={sku} synced to {site_name} (PID {woo_product_id})")
    return {
        "sku": sku,
        "productName": name,
        "stock": stock,
        "site": site_name,
        "wooProductId": woo_product_id,
    }


def register_global_product(registry: SiteRegistry, sku: str, stock_quantity: int,
                            product_name: str, inventory_type: str) -> Optional[list[LegResult]]:
    """Enroll a SKU in cross-site sync and push it (creating it if needed) to every site."""
    if inventory_type != "Global":
        info(f"[register] SKU={sku} is not marked as Global. No sync needed.")
        return None

    store.upsert_global_product(sku, product_name, stock_quantity)
    info(f"[register] syncing Global product {sku} to all sites")
    return sync_stock_to_sites(registry, sku, stock_quantity, registry.get_all_sites(), "initial",
                               create_name=product_name or sku, log_action="initial_sync")
