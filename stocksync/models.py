from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


class WooCommerceSite(db.Model):
    __tablename__ = 'woocommerce_sites'
    id = db.Column(db.Integer, primary_key=True)
    site_url = db.Column(db.String(255), unique=True, nullable=False)
    site_name = db.Column(db.String(255))
    api_key = db.Column(db.String(64), index=True)
    consumer_key = db.Column(db.String(255))
    consumer_secret = db.Column(db.String(255))

    # Status
    is_primary = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sync_status = db.Column(db.String(20), default='pending')  # pending / success / failed
    last_sync = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "site_url": self.site_url,
            "site_name": self.site_name,
            "api_key": self.api_key,
            "consumer_key": self.consumer_key,
            "is_primary": self.is_primary,
            "is_active": self.is_active,
            "sync_status": self.sync_status,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class GlobalProduct(db.Model):
    """Authoritative stock count for a SKU enrolled in cross-site sync."""
    __tablename__ = 'global_products'
    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(100), unique=True, nullable=False, index=True)
    product_name = db.Column(db.String(255))
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class ProductSiteMapping(db.Model):
    __tablename__ = 'product_site_mapping'
    __table_args__ = (db.UniqueConstraint('product_sku', 'site_id', name='uq_product_site'),)
    id = db.Column(db.Integer, primary_key=True)
    product_sku = db.Column(db.String(100), nullable=False, index=True)
    site_id = db.Column(db.Integer, db.ForeignKey('woocommerce_sites.id'), nullable=False)
    woo_product_id = db.Column(db.Integer, nullable=False)
    last_synced = db.Column(db.DateTime(timezone=True), default=utcnow)


class StockSyncLog(db.Model):
    __tablename__ = 'stock_sync_logs'
    id = db.Column(db.Integer, primary_key=True)
    product_sku = db.Column(db.String(100), index=True)
    site_url = db.Column(db.String(255))
    action = db.Column(db.String(50))
    old_stock = db.Column(db.Integer)
    new_stock = db.Column(db.Integer)
    quantity = db.Column(db.Integer)
    order_id = db.Column(db.String(100))
    source = db.Column(db.String(50))  # 'woocommerce', 'nextjs', 'unknown'
    success = db.Column(db.Boolean, default=True, nullable=False)
    error_message = db.Column(db.Text)
    # "metadata" is reserved on declarative models
    meta = db.Column('metadata', db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "product_sku": self.product_sku,
            "site_url": self.site_url,
            "action": self.action,
            "old_stock": self.old_stock,
            "new_stock": self.new_stock,
            "quantity": self.quantity,
            "order_id": self.order_id,
            "source": self.source,
            "success": self.success,
            "error_message": self.error_message,
            "metadata": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
