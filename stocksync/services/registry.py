# stocksync/services/registry.py
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..clients.woocommerce import WooClient
from ..models import WooCommerceSite
from ..utils.logger import info


@dataclass(frozen=True)
class SiteConfig:
    id: int
    site_url: str
    site_name: str
    api_key: Optional[str]
    consumer_key: str
    consumer_secret: str
    is_primary: bool
    is_active: bool

    @classmethod
    def from_row(cls, row: WooCommerceSite) -> "SiteConfig":
        return cls(
            id=row.id,
            site_url=row.site_url,
            site_name=row.site_name or row.site_url,
            api_key=row.api_key,
            consumer_key=row.consumer_key or "",
            consumer_secret=row.consumer_secret or "",
            is_primary=bool(row.is_primary),
            is_active=bool(row.is_active),
        )


class SiteRegistry:
    """
    In-memory cache of active storefronts and one REST client per storefront.

    Populated by initialize(); everything else is a pure lookup. The cache is
    per process: a site added through another process is only seen here after
    reload().
    """

    def __init__(self, client_factory: Callable[..., object] = WooClient, client_options: Optional[dict] = None):
        self.client_factory = client_factory
        self.client_options = dict(client_options or {})
        self._lock = threading.Lock()
        self._sites: dict[str, SiteConfig] = {}
        self._clients: dict[str, object] = {}

    def initialize(self):
        rows = WooCommerceSite.query.filter_by(is_active=True).order_by(WooCommerceSite.id).all()
        sites: dict[str, SiteConfig] = {}
        clients: dict[str, object] = {}
        for row in rows:
            site = SiteConfig.from_row(row)
            sites[site.site_url] = site
            clients[site.site_url] = self.client_factory(
                site.site_url, site.consumer_key, site.consumer_secret, **self.client_options
            )
        with self._lock:
            self._sites = sites
            self._clients = clients
        info(f"[registry] loaded {len(sites)} active site(s)")

    reload = initialize

    def get_client(self, site_url: str):
        return self._clients.get(site_url)

    def get_site_config(self, site_url: str) -> Optional[SiteConfig]:
        return self._sites.get(site_url)

    def get_primary_site(self) -> Optional[SiteConfig]:
        return next((s for s in self._sites.values() if s.is_primary), None)

    def get_all_sites(self) -> list[SiteConfig]:
        return list(self._sites.values())

    def get_other_sites(self, exclude_site_url: Optional[str]) -> list[SiteConfig]:
        return [s for s in self.get_all_sites() if s.site_url != exclude_site_url]

    def get_site_by_api_key(self, api_key: str) -> Optional[SiteConfig]:
        if not api_key:
            return None
        return next((s for s in self._sites.values() if s.api_key == api_key), None)
