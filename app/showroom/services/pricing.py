"""
Selection pricing orchestration.

Runs the calculator for a selection and a promotion, reports clamped input,
and assembles the summary or export rows the routes return.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from showroom.models import (
    LineItem,
    Promotion,
    PromotionCalculation,
    PromotionSummary,
    SelectionRecord,
)
from showroom.services.calculator import calculate_promotion, line_items_from_selection
from showroom.services.export import build_selection_rows
from showroom.services.messaging import build_promotion_summary

logger = logging.getLogger(__name__)

# Prices a selection at list when no promotion is live
_LIST_PRICE = Promotion(id="list-price", name="List price")


def _report_clamped(calculation: PromotionCalculation | None, context: str) -> None:
    if calculation is not None and calculation.clamped_skus:
        logger.warning(
            "Negative quantity or price treated as zero for %s: %s",
            context,
            ", ".join(calculation.clamped_skus),
        )


def price_line_items(
    promotion: Promotion | None,
    line_items: Sequence[LineItem],
    *,
    context: str = "ad-hoc selection",
) -> PromotionSummary:
    """Calculate *line_items* under *promotion* and build the status summary."""
    calculation = calculate_promotion(promotion, line_items)
    _report_clamped(calculation, context)
    return build_promotion_summary(promotion, calculation)


def price_selection(
    selection: SelectionRecord, promotion: Promotion | None
) -> PromotionSummary:
    """Summary for a stored selection under its vendor's live promotion."""
    return price_line_items(
        promotion,
        line_items_from_selection(selection),
        context=f"selection {selection.id}",
    )


def export_rows(
    selection: SelectionRecord, promotion: Promotion | None
) -> list[dict[str, Any]]:
    """Export rows for a stored selection; list price when no promotion is live."""
    calculation = calculate_promotion(
        promotion or _LIST_PRICE, line_items_from_selection(selection)
    )
    if calculation is None:
        return []
    _report_clamped(calculation, f"selection {selection.id}")
    return build_selection_rows(calculation)
