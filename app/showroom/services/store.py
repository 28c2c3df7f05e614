"""
Portal store queries.

Reads promotions and working selections from the portal's Unity Catalog
tables.  The portal API owns these tables and all writes to them; this module
only maps rows to models.  Nested structures (tiers, incentives, selection
items) are stored as JSON strings.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

from showroom.models import Promotion, SelectionRecord
from showroom.services.promotion_rules import select_active_promotion
from showroom.utils.config import TABLE_PROMOTIONS, TABLE_SELECTIONS
from showroom.utils.databricks_client import execute_sql

logger = logging.getLogger(__name__)

_PROMOTION_JSON_COLUMNS = (
    "sku_tiers",
    "dollar_tiers",
    "inventory_incentive",
    "portable_incentive",
    "summary_bullets",
)
_SELECTION_JSON_COLUMNS = ("items", "metadata")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _decode_json_columns(row: dict[str, Any], columns: tuple[str, ...]) -> dict[str, Any]:
    """Return a copy of *row* with the given JSON string columns decoded."""
    decoded = dict(row)
    for column in columns:
        value = decoded.get(column)
        if isinstance(value, str):
            decoded[column] = json.loads(value) if value.strip() else None
    return decoded


def _row_to_promotion(row: dict[str, Any]) -> Promotion:
    return Promotion.model_validate(_decode_json_columns(row, _PROMOTION_JSON_COLUMNS))


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------
def get_promotions(vendor: str | None = None) -> list[Promotion]:
    """Return promotions, optionally limited to one vendor.

    Rows are returned in creation order so the first live promotion for a
    vendor is deterministic.
    """
    where_sql = "WHERE vendor = :vendor OR vendor IS NULL OR vendor = ''" if vendor else ""
    query = f"""
        SELECT *
        FROM {TABLE_PROMOTIONS}
        {where_sql}
        ORDER BY created_at ASC
    """
    rows = execute_sql(
        query,
        parameters={"vendor": vendor} if vendor else None,
        cache_key=f"promotions:{vendor}",
    )

    promotions: list[Promotion] = []
    for row in rows:
        try:
            promotions.append(_row_to_promotion(row))
        except ValueError:
            logger.exception("Skipping unreadable promotion row %s", row.get("id"))
    return promotions


def get_active_promotion(
    vendor: str | None = None,
    today: date | None = None,
) -> Promotion | None:
    """Return the promotion live for *vendor* today, or None."""
    return select_active_promotion(get_promotions(vendor), vendor=vendor, today=today)


# ---------------------------------------------------------------------------
# Selections
# ---------------------------------------------------------------------------
def get_selection(selection_id: str) -> SelectionRecord | None:
    """Look up a single selection by its identifier."""
    query = f"""
        SELECT *
        FROM {TABLE_SELECTIONS}
        WHERE id = :selection_id
        LIMIT 1
    """
    rows = execute_sql(query, parameters={"selection_id": selection_id})
    if not rows:
        return None
    return SelectionRecord.model_validate(
        _decode_json_columns(rows[0], _SELECTION_JSON_COLUMNS)
    )
