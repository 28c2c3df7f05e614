"""
Promotions router.

Validation of promotion configurations from the authoring form, ad-hoc
pricing of a selection under a promotion, and lookup of the promotion that is
live for a vendor.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from showroom.models import (
    CalculateRequest,
    Promotion,
    PromotionSummary,
    ValidationResult,
)
from showroom.services.pricing import price_line_items
from showroom.services.promotion_rules import validate_promotion
from showroom.services.store import get_active_promotion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/promotions", tags=["promotions"])


# ---------------------------------------------------------------------------
# POST /validate
# ---------------------------------------------------------------------------
@router.post(
    "/validate",
    response_model=ValidationResult,
    summary="Check a promotion configuration for errors",
)
async def api_validate_promotion(promotion: Promotion) -> ValidationResult:
    """Return every configuration problem found; never fails on a bad config."""
    return validate_promotion(promotion)


# ---------------------------------------------------------------------------
# POST /calculate
# ---------------------------------------------------------------------------
@router.post(
    "/calculate",
    response_model=PromotionSummary,
    summary="Price a selection under a promotion",
)
async def api_calculate_promotion(request: CalculateRequest) -> PromotionSummary:
    """Run the promotion calculator and build the status-strip summary.

    A missing promotion or empty item list is not an error: the summary is
    returned with a null ``calculation``.
    """
    try:
        return price_line_items(request.promotion, request.items)
    except Exception as exc:
        logger.exception("Promotion calculation failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# GET /active
# ---------------------------------------------------------------------------
@router.get(
    "/active",
    summary="Return the promotion live for a vendor today",
)
async def api_get_active_promotion(
    vendor: str | None = Query(None, description="Vendor identifier"),
) -> dict[str, Any]:
    """Return ``{"promotion": ...}``; the promotion is null when none is live."""
    try:
        promotion = get_active_promotion(vendor)
        return {
            "vendor": vendor,
            "promotion": promotion.model_dump(mode="json", by_alias=True)
            if promotion
            else None,
        }
    except Exception as exc:
        logger.exception("Failed to fetch active promotion for %s", vendor)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
