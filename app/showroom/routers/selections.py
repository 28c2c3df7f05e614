"""
Selections router.

Prices a customer's stored working selection under the live promotion for its
vendor, and exports the priced selection as CSV.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from showroom.models import PromotionSummary, SelectionRecord
from showroom.services.export import rows_to_csv
from showroom.services.pricing import export_rows, price_selection
from showroom.services.store import get_active_promotion, get_selection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/selections", tags=["selections"])


def _load_selection(selection_id: str) -> SelectionRecord:
    selection = get_selection(selection_id)
    if selection is None:
        raise HTTPException(
            status_code=404,
            detail=f"Selection '{selection_id}' not found",
        )
    return selection


# ---------------------------------------------------------------------------
# GET /{selection_id}/promotion
# ---------------------------------------------------------------------------
@router.get(
    "/{selection_id}/promotion",
    response_model=PromotionSummary,
    summary="Promotion status for a stored selection",
)
async def api_selection_promotion(
    selection_id: str,
    vendor: str | None = Query(None, description="Override the selection's vendor"),
) -> PromotionSummary:
    """Tier status, savings and next-tier guidance for a selection."""
    try:
        selection = _load_selection(selection_id)
        promotion = get_active_promotion(vendor or selection.vendor)
        return price_selection(selection, promotion)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to price selection %s", selection_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /{selection_id}/export
# ---------------------------------------------------------------------------
@router.get(
    "/{selection_id}/export",
    summary="Export a priced selection as CSV",
)
async def api_export_selection(
    selection_id: str,
    vendor: str | None = Query(None, description="Override the selection's vendor"),
) -> StreamingResponse:
    """Stream a CSV of display and backup rows with net pricing."""
    try:
        selection = _load_selection(selection_id)
        promotion = get_active_promotion(vendor or selection.vendor)
        content = rows_to_csv(export_rows(selection, promotion))

        return StreamingResponse(
            iter([content]),
            media_type="text/csv",
            headers={
                "Content-Disposition": f"attachment; filename=selection_{selection_id}.csv"
            },
        )
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to export selection %s", selection_id)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
