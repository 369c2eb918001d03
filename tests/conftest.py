import threading

import pytest

from stocksync import create_app
from stocksync.errors import RemoteError
from stocksync.models import db, GlobalProduct, WooCommerceSite

S1 = "https://s1.example.com"
S2 = "https://s2.example.com"
S3 = "https://s3.example.com"
ADMIN_KEY = "admin-secret"


class FakeShop:
    """In-memory WooCommerce storefront standing in for WooClient."""

    def __init__(self, url, options=None):
        self.url = url
        self.options = options or {}
        self.products = {}  # sku -> {"id", "sku", "name", "stock_quantity"}
        self.calls = []
        self.fail_push = None
        self.fail_lookup = None
        self.before_push = None  # called outside the lock, e.g. to block on a barrier
        self._next_id = 1000
        self._lock = threading.Lock()

    def add_product(self, sku, pid, stock=0, name=None):
        self.products[sku] = {"id": pid, "sku": sku, "name": name or sku, "stock_quantity": stock}

    def count(self, kind):
        return sum(1 for c in self.calls if c[0] == kind)

    def find_product_by_sku(self, sku):
        with self._lock:
            self.calls.append(("find", sku))
        if self.fail_lookup:
            raise RemoteError(self.fail_lookup, status=500)
        return self.products.get(sku)

    def set_stock(self, product_id, qty):
        with self._lock:
            self.calls.append(("set_stock", product_id, qty))
        if self.before_push:
            self.before_push()
        if self.fail_push:
            raise RemoteError(self.fail_push, status=503)
        for p in self.products.values():
            if p["id"] == product_id:
                p["stock_quantity"] = qty
                return p
        raise RemoteError(f"PUT products/{product_id} failed 404", status=404)

    def create_product(self, name, sku, qty):
        with self._lock:
            self.calls.append(("create", sku, qty))
            if self.fail_push:
                raise RemoteError(self.fail_push, status=503)
            self._next_id += 1
            self.add_product(sku, self._next_id, qty, name)
            return self.products[sku]


class FakeWooFactory:
    """Client factory handed to SiteRegistry; one FakeShop per URL, kept across reloads."""

    def __init__(self):
        self.shops = {}

    def shop(self, url):
        return self.shops.setdefault(url, FakeShop(url))

    def __call__(self, url, consumer_key, consumer_secret, **options):
        shop = self.shop(url)
        shop.options = {"consumer_key": consumer_key, "consumer_secret": consumer_secret, **options}
        return shop


@pytest.fixture
def woo():
    return FakeWooFactory()


@pytest.fixture
def app(woo):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "ADMIN_API_KEY": ADMIN_KEY,
            "SYNC_MAX_WORKERS": 4,
        },
        client_factory=woo,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registry(app):
    return app.extensions["site_registry"]


def add_site(url, api_key=None, is_primary=False, is_active=True, name=None):
    site = WooCommerceSite(
        site_url=url,
        site_name=name or url.split("//")[1],
        api_key=api_key or f"key-{url.split('//')[1]}",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        is_primary=is_primary,
        is_active=is_active,
        sync_status="pending",
    )
    db.session.add(site)
    db.session.commit()
    return site


def add_global(sku, qty, name=None):
    product = GlobalProduct(sku=sku, product_name=name or f"Product {sku}", stock_quantity=qty)
    db.session.add(product)
    db.session.commit()
    return product


def stock_of(sku):
    db.session.expire_all()
    return GlobalProduct.query.filter_by(sku=sku).one().stock_quantity


@pytest.fixture
def two_sites(app, registry, woo):
    """S1 (primary) and S2 both carry X1; global X1 starts at 10."""
    s1 = add_site(S1, is_primary=True)
    s2 = add_site(S2)
    add_global("X1", 10)
    woo.shop(S1).add_product("X1", 11, 10)
    woo.shop(S2).add_product("X1", 22, 10)
    registry.reload()
    return s1, s2


@pytest.fixture
def three_sites(two_sites, registry, woo):
    s3 = add_site(S3)
    woo.shop(S3).add_product("X1", 33, 10)
    registry.reload()
    return (*two_sites, s3)
