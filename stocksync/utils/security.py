import hmac
from typing import Optional

from flask import abort, current_app, request

from ..models import WooCommerceSite


def _site_for_api_key(api_key: str) -> Optional[WooCommerceSite]:
    if not api_key:
        return None
    return WooCommerceSite.query.filter_by(api_key=api_key, is_active=True).first()


def verify_sync_request(registry) -> Optional[str]:
    """
    Authenticate a storefront call and return the origin site URL.

    Either method is enough: x-wgss-api-key matching an active site, or
    x-wgss-source "woo" with an x-wgss-site the registry knows.
    """
    api_key = request.headers.get("x-wgss-api-key", "")
    source = request.headers.get("x-wgss-source", "")
    site_url = request.headers.get("x-wgss-site", "")

    by_key = _site_for_api_key(api_key)
    by_source = registry.get_site_config(site_url) if source == "woo" and site_url else None
    if not (by_key or by_source):
        abort(401, description="Unauthorized")
    return site_url or by_key.site_url


def verify_api_key_headers() -> WooCommerceSite:
    """Stricter check used by the product lookup: all three headers plus a valid key."""
    api_key = request.headers.get("x-wgss-api-key", "")
    if not (api_key and request.headers.get("x-wgss-source") and request.headers.get("x-wgss-site")):
        abort(401, description="Unauthorized")
    site = _site_for_api_key(api_key)
    if site is None:
        abort(401, description="Invalid API key")
    return site


def verify_admin_key():
    expected = current_app.config.get("ADMIN_API_KEY") or ""
    given = request.headers.get("x-admin-key", "")
    if not expected or not hmac.compare_digest(expected.encode(), given.encode()):
        abort(401, description="Unauthorized")
