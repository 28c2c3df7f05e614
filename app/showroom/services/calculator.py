"""
Promotion calculation engine.

Prices a working selection under a promotion:

1. **Partition** -- portable SKUs (by prefix) are priced with a flat discount
   on their whole quantity and never count toward tier thresholds.
2. **Display metrics** -- every other SKU contributes one display unit, on
   the first line it appears; the rest of its quantity, on that line and any
   later ones, is backup inventory.
3. **Tier selection** -- SKU tiers are matched against the unique display SKU
   count, or, when the promotion has no SKU tiers, dollar tiers against the
   display subtotal.  The highest threshold met governs.
4. **Line pricing** -- display units get the tier discount, backup units the
   inventory-incentive discount.  The two are never stacked.

This is the single place tier and discount math is done; the status strip,
the line-item table and the export all read from its result.  The functions
here are pure and safe to call concurrently.
"""

from __future__ import annotations

import logging
import math
from typing import NamedTuple, Sequence

from showroom.models import (
    LineItem,
    LineItemPricing,
    NextDollarTier,
    NextSkuTier,
    Promotion,
    PromotionCalculation,
    PromotionTier,
    SelectionRecord,
)
from showroom.services.promotion_rules import (
    governing_tiers,
    is_portable_sku,
    reachable_tiers,
)
from showroom.utils.config import DEFAULT_BACKUP_DISCOUNT_PERCENT

logger = logging.getLogger(__name__)


class _Slices(NamedTuple):
    """A line item after clamping and the display/backup split."""

    item: LineItem
    portable: bool
    unit_list: float
    display_qty: int
    backup_qty: int
    clamped: bool


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------
def _clamp_percent(percent: float) -> float:
    """Limit a configured percentage to [0, 100]."""
    return min(max(percent, 0.0), 100.0)


def _split(item: LineItem, portable: bool, display_taken: bool = False) -> _Slices:
    clamped = item.unit_list < 0 or item.display_qty < 0 or item.backup_qty < 0
    unit_list = max(item.unit_list, 0.0)
    display_qty = max(item.display_qty, 0)
    backup_qty = max(item.backup_qty, 0)

    if portable:
        # Portables are a single pool, carried in the display slice
        return _Slices(item, True, unit_list, display_qty + backup_qty, 0, clamped)

    # One display unit per SKU; anything beyond it is backup stock
    capped = 0 if display_taken else min(display_qty, 1)
    return _Slices(
        item, False, unit_list, capped, backup_qty + display_qty - capped, clamped
    )


def find_achieved_tier(value: float, tiers: Sequence[PromotionTier]) -> PromotionTier | None:
    """Return the highest-threshold reachable tier whose threshold *value* meets.

    Tiers are walked in ascending threshold order and every met tier replaces
    the previous one, so a higher threshold wins even if it offers a smaller
    discount than a lower one.
    """
    achieved: PromotionTier | None = None
    for tier in reachable_tiers(tiers):
        if value >= tier.threshold:
            achieved = tier
    return achieved


def find_next_tier(value: float, tiers: Sequence[PromotionTier]) -> PromotionTier | None:
    """Return the lowest reachable tier not yet met, or None at the top tier."""
    for tier in reachable_tiers(tiers):
        if value < tier.threshold:
            return tier
    return None


def backup_discount_for(
    promotion: Promotion,
    best_tier_discount: float,
    default_backup_discount_percent: float = DEFAULT_BACKUP_DISCOUNT_PERCENT,
) -> float:
    """Return the discount applied to backup units.

    An enabled inventory incentive always sets the backup rate.  Without one,
    backup units get the default rate only once a tier discount is unlocked.
    """
    if promotion.inventory_incentive.enabled:
        return promotion.inventory_incentive.backup_discount_percent
    if best_tier_discount > 0:
        return default_backup_discount_percent
    return 0.0


def _price(slices: _Slices, display_percent: float, backup_percent: float) -> LineItemPricing:
    """Price one line item; portables pass their flat rate as *display_percent*."""
    item = slices.item
    display_percent = _clamp_percent(display_percent)
    backup_percent = 0.0 if slices.portable else _clamp_percent(backup_percent)
    display_rate = display_percent / 100
    backup_rate = backup_percent / 100

    display_net_unit = slices.unit_list * (1 - display_rate)
    backup_net_unit = slices.unit_list * (1 - backup_rate)
    display_extended = display_net_unit * slices.display_qty
    backup_extended = backup_net_unit * slices.backup_qty
    display_savings = slices.unit_list * slices.display_qty * display_rate
    backup_savings = slices.unit_list * slices.backup_qty * backup_rate

    return LineItemPricing(
        sku=item.sku,
        name=item.name,
        collection=item.collection,
        year=item.year,
        is_portable=slices.portable,
        unit_list=slices.unit_list,
        display_qty=slices.display_qty,
        backup_qty=slices.backup_qty,
        display_discount_percent=display_percent,
        display_net_unit=display_net_unit,
        display_extended=display_extended,
        backup_discount_percent=backup_percent,
        backup_net_unit=backup_net_unit,
        backup_extended=backup_extended,
        display_savings=display_savings,
        backup_savings=backup_savings,
        savings=display_savings + backup_savings,
        line_total=display_extended + backup_extended,
        clamped=slices.clamped,
        notes=item.notes,
    )


def _inventory_qualified(
    promotion: Promotion, total_display_qty: int, display_subtotal: float
) -> bool:
    """Any configured threshold qualifies; with none configured, enabled is enough."""
    inventory = promotion.inventory_incentive
    if not inventory.enabled:
        return False
    checks: list[bool] = []
    if inventory.display_qty_threshold is not None:
        checks.append(total_display_qty >= inventory.display_qty_threshold)
    if inventory.dollar_threshold is not None:
        checks.append(display_subtotal >= inventory.dollar_threshold)
    return any(checks) if checks else True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def calculate_promotion(
    promotion: Promotion | None,
    line_items: Sequence[LineItem],
    *,
    default_backup_discount_percent: float = DEFAULT_BACKUP_DISCOUNT_PERCENT,
) -> PromotionCalculation | None:
    """Price *line_items* under *promotion*.

    Returns None when there is no promotion or nothing is selected; neither is
    an error.  Negative quantities and prices are treated as zero and the
    affected SKUs are listed in ``clamped_skus`` for the caller to report.
    Amounts are returned unrounded.
    """
    if promotion is None or not line_items:
        return None

    portable_incentive = promotion.portable_incentive

    # 1. Partition; only the first line of a SKU carries its display unit
    split: list[_Slices] = []
    displayed: set[str] = set()
    for item in line_items:
        slices = _split(
            item,
            is_portable_sku(item.sku, portable_incentive),
            display_taken=item.sku in displayed,
        )
        if not slices.portable and slices.display_qty > 0:
            displayed.add(item.sku)
        split.append(slices)
    regular = [s for s in split if not s.portable]

    # 2. Display metrics (regular items only)
    unique_display_skus = len({s.item.sku for s in regular if s.display_qty > 0})
    total_display_qty = sum(s.display_qty for s in regular)
    display_subtotal = sum(s.unit_list * s.display_qty for s in regular)
    backup_subtotal = sum(s.unit_list * s.backup_qty for s in regular)

    # 3. Tier selection and 4. next-tier projection
    tier_family, tiers = governing_tiers(promotion)
    best_tier: PromotionTier | None = None
    next_sku_tier: NextSkuTier | None = None
    next_dollar_tier: NextDollarTier | None = None

    if tier_family == "sku":
        best_tier = find_achieved_tier(unique_display_skus, tiers)
        upcoming = find_next_tier(unique_display_skus, tiers)
        if upcoming is not None:
            next_sku_tier = NextSkuTier(
                tier=upcoming,
                skus_needed=math.ceil(max(upcoming.threshold - unique_display_skus, 0)),
            )
    elif tier_family == "dollar":
        best_tier = find_achieved_tier(display_subtotal, tiers)
        upcoming = find_next_tier(display_subtotal, tiers)
        if upcoming is not None:
            next_dollar_tier = NextDollarTier(
                tier=upcoming,
                amount_needed=max(upcoming.threshold - display_subtotal, 0.0),
            )

    best_tier_discount = best_tier.discount_percent if best_tier else 0.0
    backup_percent = backup_discount_for(
        promotion, best_tier_discount, default_backup_discount_percent
    )
    portable_percent = (
        portable_incentive.discount_percent if portable_incentive.enabled else 0.0
    )

    # 5. Per-item pricing, in input order
    items = [
        _price(s, portable_percent if s.portable else best_tier_discount, backup_percent)
        for s in split
    ]
    regular_pricing = [p for p in items if not p.is_portable]
    portable_pricing = [p for p in items if p.is_portable]

    # 6. Inventory incentive qualification
    inventory_qualified = _inventory_qualified(
        promotion, total_display_qty, display_subtotal
    )

    # 7. Aggregate
    display_total = sum(p.display_extended for p in regular_pricing)
    backup_total = sum(p.backup_extended for p in regular_pricing)
    portable_total = sum(p.line_total for p in portable_pricing)
    total_savings = sum(p.savings for p in items)

    clamped_skus = [s.item.sku for s in split if s.clamped]

    logger.debug(
        "Promotion %s: family=%s skus=%d subtotal=%.2f tier=%s%% savings=%.2f",
        promotion.id,
        tier_family,
        unique_display_skus,
        display_subtotal,
        best_tier_discount,
        total_savings,
    )

    return PromotionCalculation(
        promotion_id=promotion.id,
        promotion_name=promotion.name,
        tier_family=tier_family,
        unique_display_skus=unique_display_skus,
        total_display_qty=total_display_qty,
        display_subtotal=display_subtotal,
        display_total=display_total,
        backup_subtotal=backup_subtotal,
        backup_total=backup_total,
        portable_item_count=len(portable_pricing),
        portable_subtotal=sum(p.unit_list * p.display_qty for p in portable_pricing),
        portable_total=portable_total,
        portable_discount_percent=_clamp_percent(portable_percent),
        best_tier=best_tier,
        best_tier_discount=best_tier_discount,
        backup_discount_percent=_clamp_percent(backup_percent),
        next_sku_tier=next_sku_tier,
        next_dollar_tier=next_dollar_tier,
        inventory_incentive_qualified=inventory_qualified,
        tier_savings=sum(p.display_savings for p in regular_pricing),
        backup_savings=sum(p.backup_savings for p in regular_pricing),
        portable_savings=sum(p.savings for p in portable_pricing),
        total_savings=total_savings,
        grand_total=display_total + backup_total + portable_total,
        items=items,
        clamped_skus=clamped_skus,
    )


# ---------------------------------------------------------------------------
# Selection adapter
# ---------------------------------------------------------------------------
def line_items_from_selection(selection: SelectionRecord) -> list[LineItem]:
    """Build calculator input from a stored selection.

    Items that only carry a raw ``qty`` are split into one display unit plus
    backup; items with an explicit split keep it.
    """
    line_items: list[LineItem] = []
    for entry in selection.items:
        if entry.display_qty is None and entry.backup_qty is None:
            display_qty = min(entry.qty, 1)
            backup_qty = max(entry.qty - 1, 0)
        else:
            display_qty = entry.display_qty if entry.display_qty is not None else entry.qty
            backup_qty = entry.backup_qty or 0
        line_items.append(
            LineItem(
                sku=entry.sku,
                name=entry.name,
                collection=entry.collection or "",
                year=entry.year,
                display_qty=display_qty,
                backup_qty=backup_qty,
                unit_list=entry.unit_list,
                notes=entry.notes,
            )
        )
    return line_items
