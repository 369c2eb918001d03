import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///stocksync.db")
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")

# WooCommerce REST
WC_API_VERSION = os.getenv("WC_API_VERSION", "wc/v3")
WC_TIMEOUT = float(os.getenv("WC_TIMEOUT", "10"))
WC_USER_AGENT = os.getenv("WC_USER_AGENT", "GlobalStockSync/1.0")
WC_PUSH_ATTEMPTS = int(os.getenv("WC_PUSH_ATTEMPTS", "1"))  # 1 = no retry

SYNC_MAX_WORKERS = int(os.getenv("SYNC_MAX_WORKERS", "8"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def as_mapping() -> dict:
    return {
        "SQLALCHEMY_DATABASE_URI": DATABASE_URL,
        "ADMIN_API_KEY": ADMIN_API_KEY,
        "WC_API_VERSION": WC_API_VERSION,
        "WC_TIMEOUT": WC_TIMEOUT,
        "WC_USER_AGENT": WC_USER_AGENT,
        "WC_PUSH_ATTEMPTS": WC_PUSH_ATTEMPTS,
        "SYNC_MAX_WORKERS": SYNC_MAX_WORKERS,
        "LOG_LEVEL": LOG_LEVEL,
    }
