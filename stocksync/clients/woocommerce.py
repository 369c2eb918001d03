from typing import Optional

import requests
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..errors import RemoteError, TransientRemoteError

TRANSIENT_STATUSES = (409, 429, 502, 503, 504)


def api_base(url: str, version: str) -> str:
    return f"{url.rstrip('/')}/wp-json/{version}"


class WooClient:
    """Thin WooCommerce REST client for a single storefront."""

    def __init__(self, url: str, consumer_key: str, consumer_secret: str,
                 version: str = "wc/v3", timeout: float = 10,
                 user_agent: str = "GlobalStockSync/1.0", push_attempts: int = 1):
        self.url = url
        self.base = api_base(url, version)
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout
        self.user_agent = user_agent
        self.push_attempts = max(1, int(push_attempts))

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "User-Agent": self.user_agent}

    def request(self, method: str, path: str, params: Optional[dict] = None, data: Optional[dict] = None):
        # query-string auth: keys travel as parameters, not basic auth
        query = {"consumer_key": self.consumer_key, "consumer_secret": self.consumer_secret}
        query.update(params or {})
        try:
            r = requests.request(method, f"{self.base}/{path.lstrip('/')}",
                                 params=query, json=data, headers=self._headers(),
                                 timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteError(f"{method} {path} failed: {e}") from e

        if r.status_code in TRANSIENT_STATUSES:
            raise TransientRemoteError(f"{method} {path} failed {r.status_code}: {r.text}",
                                       status=r.status_code, body=r.text)
        if not 200 <= r.status_code < 300:
            raise RemoteError(f"{method} {path} failed {r.status_code}: {r.text}",
                              status=r.status_code, body=r.text)
        try:
            return r.json()
        except ValueError as e:
            raise RemoteError(f"{method} {path} returned invalid JSON", status=r.status_code, body=r.text) from e

    def get(self, path: str, params: Optional[dict] = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, data: dict):
        return self.request("POST", path, data=data)

    def put(self, path: str, data: dict):
        return self.request("PUT", path, data=data)

    # =========================================================
    # Writes with retry on transient statuses
    # =========================================================

    def _write_with_retry(self, method: str, path: str, data: dict):
        for attempt in Retrying(
            reraise=True,
            stop=stop_after_attempt(self.push_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
            retry=retry_if_exception_type(TransientRemoteError),
        ):
            with attempt:
                return self.request(method, path, data=data)

    # =========================================================
    # Product helpers
    # =========================================================

    def find_product_by_sku(self, sku: str) -> Optional[dict]:
        products = self.get("products", {"sku": sku, "per_page": 1})
        if products:
            return products[0]
        return None

    def set_stock(self, product_id: int | str, qty: int) -> dict:
        return self._write_with_retry("PUT", f"products/{product_id}",
                                      {"stock_quantity": int(qty), "manage_stock": True})

    def create_product(self, name: str, sku: str, qty: int) -> dict:
        return self._write_with_retry("POST", "products", {
            "name": name,
            "sku": sku,
            "type": "simple",
            "regular_price": "0.00",
            "manage_stock": True,
            "stock_quantity": int(qty),
            "status": "publish",
        })
