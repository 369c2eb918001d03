import pytest

from conftest import S1, S2, S3, stock_of
from stocksync.errors import InsufficientStockError, ProductNotFoundError, ValidationError
from stocksync.models import GlobalProduct, ProductSiteMapping, StockSyncLog, WooCommerceSite
from stocksync.services.stock import (
    handle_manual_update,
    handle_order,
    handle_stock_reduce,
    handle_stock_restore,
)
from stocksync.services.store import NON_GLOBAL_MESSAGE, SKU_MISMATCH_MESSAGE


def _rows(action=None):
    q = StockSyncLog.query
    if action:
        q = q.filter_by(action=action)
    return q.order_by(StockSyncLog.id).all()


# =========================================================
# Non-global SKUs
# =========================================================

@pytest.mark.parametrize("handler,data,action", [
    (handle_stock_reduce, {"sku": "NOPE", "qty": 1}, "reduce"),
    (handle_stock_restore, {"sku": "NOPE", "qty": 1}, "restore"),
    (handle_manual_update, {"sku": "NOPE", "stock": 5}, "manual"),
])
def test_non_global_sku_is_a_logged_noop(two_sites, registry, woo, handler, data, action):
    assert handler(registry, data, S1) is None

    rows = _rows()
    assert len(rows) == 1
    assert rows[0].action == action
    assert rows[0].success is False
    assert rows[0].error_message == NON_GLOBAL_MESSAGE
    assert rows[0].site_url == S1
    assert GlobalProduct.query.filter_by(sku="NOPE").first() is None
    assert ProductSiteMapping.query.count() == 0
    assert woo.shop(S2).calls == []


def test_order_for_unknown_sku_is_an_error(two_sites, registry, woo):
    with pytest.raises(ProductNotFoundError):
        handle_order(registry, {"sku": "NOPE", "quantity": 1, "orderId": "O9"})
    assert _rows() == []
    assert woo.shop(S1).calls == [] and woo.shop(S2).calls == []

# =========================================================
# Reduce
# =========================================================

def test_reduce_excludes_origin_and_logs_transaction(two_sites, registry, woo):
    result = handle_stock_reduce(registry, {"sku": "X1", "qty": 3, "order_id": "O1"}, S1)

    assert result["old_stock"] == 10 and result["new_stock"] == 7
    assert stock_of("X1") == 7

    assert woo.shop(S1).calls == []
    assert woo.shop(S2).count("set_stock") == 1
    assert woo.shop(S2).products["X1"]["stock_quantity"] == 7

    tx = _rows("reduce")
    assert len(tx) == 1
    assert (tx[0].old_stock, tx[0].new_stock, tx[0].quantity) == (10, 7, 3)
    assert tx[0].order_id == "O1"
    assert tx[0].source == "woocommerce"

    legs = _rows("sync_reduce")
    assert len(legs) == 1
    assert legs[0].site_url == S2 and legs[0].success is True and legs[0].new_stock == 7


def test_reduce_to_exactly_zero_is_allowed(two_sites, registry):
    handle_stock_reduce(registry, {"sku": "X1", "qty": 10}, S1)
    assert stock_of("X1") == 0


def test_insufficient_stock_aborts_before_any_write(two_sites, registry, woo):
    with pytest.raises(InsufficientStockError):
        handle_stock_reduce(registry, {"sku": "X1", "qty": 11, "order_id": "O2"}, S1)

    assert stock_of("X1") == 10
    assert _rows() == []
    assert woo.shop(S2).calls == []


def test_restore_undoes_reduce(two_sites, registry):
    handle_stock_reduce(registry, {"sku": "X1", "qty": 4, "order_id": "O3"}, S1)
    assert stock_of("X1") == 6
    handle_stock_restore(registry, {"sku": "X1", "qty": 4, "order_id": "O3"}, S1)
    assert stock_of("X1") == 10

    tx = _rows("restore")[0]
    assert (tx.old_stock, tx.new_stock, tx.quantity) == (6, 10, 4)


def test_restore_has_no_upper_bound(two_sites, registry):
    handle_stock_restore(registry, {"sku": "X1", "qty": 500}, S2)
    assert stock_of("X1") == 510

# =========================================================
# Manual update
# =========================================================

def test_manual_update_sets_absolute_value(two_sites, registry, woo):
    handle_stock_reduce(registry, {"sku": "X1", "qty": 2}, S1)
    handle_manual_update(registry, {"sku": "X1", "stock": 50}, S1)

    assert stock_of("X1") == 50
    assert woo.shop(S2).products["X1"]["stock_quantity"] == 50
    tx = _rows("manual_update")[0]
    assert (tx.old_stock, tx.new_stock) == (8, 50)
    assert len(_rows("sync_manual_update")) == 1


def test_manual_update_to_zero(two_sites, registry):
    handle_manual_update(registry, {"sku": "X1", "stock": 0}, S2)
    assert stock_of("X1") == 0

# =========================================================
# Order placed in the central app
# =========================================================

def test_order_pushes_to_every_site(two_sites, registry, woo):
    handle_order(registry, {"sku": "X1", "quantity": 2, "orderId": "N-1"})

    assert stock_of("X1") == 8
    assert woo.shop(S1).count("set_stock") == 1
    assert woo.shop(S2).count("set_stock") == 1

    tx = _rows("reduce_from_nextjs")
    assert len(tx) == 1
    assert tx[0].site_url == "nextjs"
    assert tx[0].source == "nextjs"
    assert tx[0].order_id == "N-1"
    assert len(_rows("sync_nextjs_order")) == 2


def test_order_keeps_given_site_url(two_sites, registry):
    handle_order(registry, {"sku": "X1", "quantity": 1, "orderId": 42, "siteUrl": "https://portal"})
    tx = _rows("reduce_from_nextjs")[0]
    assert tx.site_url == "https://portal"
    assert tx.order_id == "42"


def test_order_insufficient_stock(two_sites, registry, woo):
    with pytest.raises(InsufficientStockError):
        handle_order(registry, {"sku": "X1", "quantity": 99, "orderId": "N-2"})
    assert stock_of("X1") == 10
    assert woo.shop(S1).calls == []

# =========================================================
# Fan-out behaviour
# =========================================================

def test_one_failing_site_does_not_block_others(three_sites, registry, woo):
    woo.shop(S2).fail_push = "PUT products/22 failed 503: busy"

    result = handle_stock_reduce(registry, {"sku": "X1", "qty": 1, "order_id": "O4"}, S1)

    assert stock_of("X1") == 9
    assert {s["success"] for s in result["sites"]} == {True, False}

    legs = _rows("sync_reduce")
    assert len(legs) == 2
    by_site = {row.site_url: row for row in legs}
    assert by_site[S2].success is False and "503" in by_site[S2].error_message
    assert by_site[S3].success is True
    assert len(_rows("reduce")) == 1

    statuses = {s.site_url: s.sync_status for s in WooCommerceSite.query.all()}
    assert statuses[S2] == "failed"
    assert statuses[S3] == "success"
    assert statuses[S1] == "pending"


def test_every_push_failing_still_updates_global_stock(three_sites, registry, woo):
    woo.shop(S2).fail_push = "down"
    woo.shop(S3).fail_push = "down"

    handle_stock_reduce(registry, {"sku": "X1", "qty": 5}, S1)

    assert stock_of("X1") == 5
    assert all(row.success is False for row in _rows("sync_reduce"))
    assert len(_rows("reduce")) == 1


def test_mapping_is_discovered_once_then_reused(two_sites, registry, woo):
    handle_stock_reduce(registry, {"sku": "X1", "qty": 1}, S1)
    mapping = ProductSiteMapping.query.filter_by(product_sku="X1").one()
    assert mapping.woo_product_id == 22

    handle_stock_reduce(registry, {"sku": "X1", "qty": 1}, S1)

    assert woo.shop(S2).count("find") == 1
    assert woo.shop(S2).count("set_stock") == 2
    assert ProductSiteMapping.query.count() == 1


def test_sku_missing_on_remote_is_logged_as_mismatch(two_sites, registry, woo):
    del woo.shop(S2).products["X1"]

    handle_stock_reduce(registry, {"sku": "X1", "qty": 1}, S1)

    assert stock_of("X1") == 9
    leg = _rows("sync_reduce")[0]
    assert leg.success is False
    assert leg.error_message == SKU_MISMATCH_MESSAGE
    assert woo.shop(S2).count("set_stock") == 0
    assert ProductSiteMapping.query.count() == 0


def test_remote_lookup_error_is_contained(two_sites, registry, woo):
    woo.shop(S2).fail_lookup = "timeout"
    handle_stock_restore(registry, {"sku": "X1", "qty": 1}, S1)
    assert stock_of("X1") == 11
    assert _rows("sync_restore")[0].error_message == "timeout"


def test_unknown_origin_fans_out_to_all_sites(two_sites, registry, woo):
    handle_stock_reduce(registry, {"sku": "X1", "qty": 1}, None)
    assert woo.shop(S1).count("set_stock") == 1
    assert woo.shop(S2).count("set_stock") == 1

# =========================================================
# Validation
# =========================================================

@pytest.mark.parametrize("handler,data", [
    (handle_stock_reduce, {"qty": 1}),
    (handle_stock_reduce, {"sku": "X1"}),
    (handle_stock_reduce, {"sku": "X1", "qty": 0}),
    (handle_stock_reduce, {"sku": "X1", "qty": "abc"}),
    (handle_stock_reduce, {"sku": "X1", "qty": 1.5}),
    (handle_stock_restore, {"sku": "", "qty": 1}),
    (handle_manual_update, {"sku": "X1"}),
    (handle_manual_update, {"sku": "X1", "stock": -1}),
])
def test_invalid_payloads_are_rejected(two_sites, registry, handler, data):
    with pytest.raises(ValidationError):
        handler(registry, data, S1)
    assert stock_of("X1") == 10
    assert _rows() == []


def test_numeric_strings_are_accepted(two_sites, registry):
    handle_stock_reduce(registry, {"sku": "X1", "qty": "2"}, S1)
    assert stock_of("X1") == 8
