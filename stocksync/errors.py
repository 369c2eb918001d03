from typing import Optional


class StockSyncError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(StockSyncError):
    status_code = 400


class InsufficientStockError(StockSyncError):
    def __init__(self, sku: str):
        super().__init__(f"Insufficient stock for SKU: {sku}")
        self.sku = sku


class ProductNotFoundError(StockSyncError):
    def __init__(self, sku: str, status_code: Optional[int] = None):
        super().__init__(f"Product not found: {sku}", status_code)
        self.sku = sku


class SiteNotFoundError(StockSyncError):
    status_code = 404

    def __init__(self, site_id):
        super().__init__("Site not found")
        self.site_id = site_id


class RemoteError(StockSyncError):
    """A WooCommerce REST call failed (HTTP error, timeout or bad payload)."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class TransientRemoteError(RemoteError):
    pass
