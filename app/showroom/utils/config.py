"""
Configuration module for the Showroom Promotions backend.

All settings are configurable via environment variables with sensible defaults
for Databricks Apps deployment.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Unity Catalog
# ---------------------------------------------------------------------------
CATALOG_NAME: str = os.getenv("CATALOG_NAME", "showroom_catalog")
SCHEMA_GOLD: str = os.getenv("SCHEMA_GOLD", "gold")


def _fqn(schema: str, table: str) -> str:
    """Return a fully-qualified three-level Unity Catalog table name."""
    return f"{CATALOG_NAME}.{schema}.{table}"


# Tables owned by the portal API; read-only from this service
TABLE_PROMOTIONS: str = _fqn(SCHEMA_GOLD, os.getenv("TABLE_PROMOTIONS", "promotions"))
TABLE_SELECTIONS: str = _fqn(SCHEMA_GOLD, os.getenv("TABLE_SELECTIONS", "selections"))

# ---------------------------------------------------------------------------
# SQL Warehouse
# ---------------------------------------------------------------------------
WAREHOUSE_ID: str = os.getenv("DATABRICKS_WAREHOUSE_ID", "your-warehouse-id")

# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------
CACHE_TTL: int = int(os.getenv("CACHE_TTL", "60"))  # seconds

# ---------------------------------------------------------------------------
# Databricks connection (local dev fallback)
# ---------------------------------------------------------------------------
DATABRICKS_HOST: str = os.getenv("DATABRICKS_HOST", "")
DATABRICKS_TOKEN: str = os.getenv("DATABRICKS_TOKEN", "")

# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------
# Backup rate used when a tier is unlocked but no inventory incentive is set
DEFAULT_BACKUP_DISCOUNT_PERCENT: float = float(
    os.getenv("DEFAULT_BACKUP_DISCOUNT_PERCENT", "15")
)

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_TITLE: str = "Showroom Promotions"
APP_VERSION: str = "1.0.0"
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
