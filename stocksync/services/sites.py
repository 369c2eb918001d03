# stocksync/services/sites.py
import secrets

from sqlalchemy.exc import IntegrityError

from .registry import SiteRegistry
from ..errors import ValidationError
from ..models import db, WooCommerceSite
from ..utils.logger import info


def list_sites() -> list[WooCommerceSite]:
    return WooCommerceSite.query.order_by(WooCommerceSite.created_at.desc(), WooCommerceSite.id.desc()).all()


def add_site(registry: SiteRegistry, site_url: str, site_name: str, consumer_key: str,
             consumer_secret: str, is_primary: bool = False) -> tuple[WooCommerceSite, str]:
    """
    Register a storefront and hand back the API key it must send as
    x-wgss-api-key. Primary demotion is best effort: other sites are updated
    first, then the new row is inserted.
    """
    site_url = (site_url or "").strip()
    if not site_url.startswith(("http://", "https://")):
        raise ValidationError("Site URL must start with http:// or https://")
    if not (consumer_key and consumer_secret):
        raise ValidationError("consumer_key and consumer_secret are required")
    if WooCommerceSite.query.filter_by(site_url=site_url).first():
        raise ValidationError("Site URL already exists")

    api_key = secrets.token_hex(32)

    if is_primary:
        WooCommerceSite.query.filter(WooCommerceSite.site_url != site_url).update(
            {"is_primary": False}, synchronize_session=False
        )
        db.session.commit()

    site = WooCommerceSite(
        site_url=site_url,
        site_name=site_name or site_url,
        consumer_key=consumer_key,
        consumer_secret=consumer_secret,
        api_key=api_key,
        is_primary=bool(is_primary),
        is_active=True,
        sync_status="pending",
    )
    db.session.add(site)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError("Site URL already exists")

    info(f"[sites] added {site_url} (primary={bool(is_primary)})")
    registry.reload()
    return site, api_key
