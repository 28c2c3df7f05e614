"""
Promotion progress messaging.

Turns a ``PromotionCalculation`` into what the status strip, tier table and
planning calculator show: progress toward the next tier, the projected savings
of reaching it, partnership-style copy, and the customer-facing tier rules.
All functions are pure; currency is formatted here and nowhere else.
"""

from __future__ import annotations

import math

from showroom.models import (
    NextTierInfo,
    ProgramSummary,
    Promotion,
    PromotionCalculation,
    PromotionProgress,
    PromotionSummary,
    PromotionTier,
    TierRule,
    WhatIfProjection,
)
from showroom.services.promotion_rules import governing_tiers, reachable_tiers


_DEFAULT_BULLETS_INVENTORY = "Enhanced savings on both display and backup inventory"
_DEFAULT_BULLETS_TIERED = "Tiered savings structure rewards larger commitments"


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------
def format_currency(amount: float) -> str:
    """Format *amount* as US dollars, e.g. ``$1,234.50`` or ``-$12.00``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_percent(percent: float) -> str:
    return f"{percent:g}%"


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def _sku_gap(count: int) -> str:
    return f"{count} {'SKU' if count == 1 else 'SKUs'}"


# ---------------------------------------------------------------------------
# Next tier
# ---------------------------------------------------------------------------
def next_tier_info(calculation: PromotionCalculation) -> NextTierInfo | None:
    """Describe the next tier of the governing family, or None at the top.

    ``projected_savings`` estimates the extra savings from reaching it: the
    value still to be added, at the next tier's discount, plus the discount
    uplift on what is already on display.  For SKU tiers the missing value is
    estimated from the average display value per SKU.
    """
    current_rate = calculation.best_tier_discount / 100

    if calculation.next_sku_tier is not None:
        upcoming = calculation.next_sku_tier
        next_rate = upcoming.tier.discount_percent / 100
        avg_item_value = calculation.display_subtotal / max(calculation.unique_display_skus, 1)
        additional_value = avg_item_value * upcoming.skus_needed
        projected = additional_value * next_rate + calculation.display_subtotal * (
            next_rate - current_rate
        )
        return NextTierInfo(
            metric="sku",
            tier=upcoming.tier,
            skus_needed=upcoming.skus_needed,
            projected_savings=max(projected, 0.0),
        )

    if calculation.next_dollar_tier is not None:
        upcoming = calculation.next_dollar_tier
        next_rate = upcoming.tier.discount_percent / 100
        projected = upcoming.amount_needed * next_rate + calculation.display_subtotal * (
            next_rate - current_rate
        )
        return NextTierInfo(
            metric="dollar",
            tier=upcoming.tier,
            amount_needed=upcoming.amount_needed,
            projected_savings=max(projected, 0.0),
        )

    return None


def promotion_progress(calculation: PromotionCalculation) -> PromotionProgress | None:
    """Progress bar values for the governing tier family."""
    if calculation.tier_family == "sku":
        current = float(calculation.unique_display_skus)
        upcoming = calculation.next_sku_tier
        label = "SKU"
    elif calculation.tier_family == "dollar":
        current = calculation.display_subtotal
        upcoming = calculation.next_dollar_tier
        label = "Dollar"
    else:
        return None

    if upcoming is None:
        return PromotionProgress(
            metric_label=label, current_value=current, target_value=current, progress_pct=100.0
        )

    target = upcoming.tier.threshold
    return PromotionProgress(
        metric_label=label,
        current_value=current,
        target_value=target,
        progress_pct=min(current / target * 100, 100.0),
    )


# ---------------------------------------------------------------------------
# Copy
# ---------------------------------------------------------------------------
def _gap_description(next_tier: NextTierInfo, more: bool = False) -> str:
    if next_tier.metric == "sku":
        count = next_tier.skus_needed or 0
        return f"{count} more {'SKU' if count == 1 else 'SKUs'}" if more else _sku_gap(count)
    amount = format_currency(next_tier.amount_needed or 0.0)
    return f"{amount} more" if more else amount


def dynamic_promotion_message(
    calculation: PromotionCalculation, next_tier: NextTierInfo | None
) -> str:
    """Financial progress message, leading with what has been secured."""
    current_savings = calculation.total_savings
    has_discount = current_savings > 0

    if next_tier is None:
        if has_discount:
            return (
                "Maximum partnership status achieved! You have secured "
                f"{format_currency(current_savings)} in margin advantage "
                f"({format_percent(calculation.best_tier_discount)} program status)"
            )
        return "You have achieved maximum program status!"

    gap = _gap_description(next_tier)
    tier_percent = format_percent(next_tier.tier.discount_percent)
    projected = format_currency(next_tier.projected_savings)

    if has_discount:
        return (
            f"You have secured {format_currency(current_savings)} in margin! "
            f"Add {gap} to achieve {tier_percent} partnership status and secure "
            f"an additional {projected} in margin advantage"
        )
    return (
        f"Add {gap} to achieve {tier_percent} partnership status and secure "
        f"{projected} in margin advantage on your current selection"
    )


def next_tier_cta(next_tier: NextTierInfo | None) -> str:
    if next_tier is None:
        return "Maximize your program benefits"
    return (
        f"Add {_gap_description(next_tier, more=True)} to achieve "
        f"{format_percent(next_tier.tier.discount_percent)} partnership status"
    )


def motivational_headline(
    calculation: PromotionCalculation, next_tier: NextTierInfo | None
) -> str:
    has_discount = calculation.total_savings > 0
    if next_tier is None:
        return (
            "Maximizing your margin advantage" if has_discount else "Build your partnership status"
        )
    if has_discount:
        return "Achieve enhanced partnership status"
    return "Build your partnership status"


# ---------------------------------------------------------------------------
# What-if planning
# ---------------------------------------------------------------------------
def projected_savings_at_tier(current_total: float, tier_discount_percent: float) -> float:
    """Savings the current display value would earn at a given tier discount."""
    return current_total * (tier_discount_percent / 100)


def what_if_comparison_message(
    current_savings: float, projected_savings: float, items_to_add: int
) -> str:
    additional = projected_savings - current_savings
    if additional <= 0:
        return "You have achieved this partnership status"
    return (
        f"Expanding by {_sku_gap(items_to_add)} would secure "
        f"{format_currency(additional)} in additional margin"
    )


def what_if_projections(
    promotion: Promotion, calculation: PromotionCalculation
) -> list[WhatIfProjection]:
    """Projections for unmet tiers offering more than the current discount.

    Tiers already passed are skipped even when they offer more: the highest
    threshold met governs, so they can no longer be reached.
    """
    family, tiers = governing_tiers(promotion)
    if family == "none":
        return []

    current_value = (
        float(calculation.unique_display_skus)
        if family == "sku"
        else calculation.display_subtotal
    )
    projections: list[WhatIfProjection] = []
    for tier in reachable_tiers(tiers):
        if tier.threshold <= current_value:
            continue
        if tier.discount_percent <= calculation.best_tier_discount:
            continue
        projected = projected_savings_at_tier(calculation.display_subtotal, tier.discount_percent)
        additional = projected - calculation.total_savings
        gap = max(tier.threshold - current_value, 0.0)
        if family == "sku":
            items_to_add = math.ceil(gap)
            gap_label = _sku_gap(items_to_add)
            message = what_if_comparison_message(
                calculation.total_savings, projected, items_to_add
            )
        else:
            gap_label = format_currency(gap)
            message = (
                "You have achieved this partnership status"
                if additional <= 0
                else f"Adding {gap_label} would secure "
                f"{format_currency(additional)} in additional margin"
            )
        projections.append(
            WhatIfProjection(
                tier=tier,
                gap=gap,
                gap_label=gap_label,
                projected_savings=projected,
                additional_savings=additional,
                message=message,
            )
        )
    return projections


# ---------------------------------------------------------------------------
# Tier table and program summary
# ---------------------------------------------------------------------------
def tier_rules(promotion: Promotion) -> list[TierRule]:
    """Customer-facing tier table for the governing family, in configured order."""
    family, tiers = governing_tiers(promotion)
    inventory = promotion.inventory_incentive
    backup = inventory.backup_discount_percent if inventory.enabled else None

    rules: list[TierRule] = []
    for level, tier in enumerate(tiers, start=1):
        if family == "sku":
            threshold = _format_number(tier.threshold)
            label = f"{threshold}+ Items"
            range_text = f"{threshold}+ New Items"
            min_skus: float | None = tier.threshold
        else:
            amount = _format_number(tier.threshold)
            label = f"${amount}+"
            range_text = f"${amount}+ Order Value"
            min_skus = None
        rules.append(
            TierRule(
                id=tier.id,
                tier_level=level,
                label=label,
                sku_range_text=range_text,
                min_sku_count=min_skus,
                display_discount_percent=tier.discount_percent,
                backup_discount_percent=backup,
            )
        )
    return rules


def current_tier_level(promotion: Promotion, calculation: PromotionCalculation) -> int | None:
    """1-based position of the governing tier in the configured list."""
    if calculation.best_tier is None:
        return None
    _, tiers = governing_tiers(promotion)
    for level, tier in enumerate(tiers, start=1):
        if tier == calculation.best_tier:
            return level
    return None


def _top_tier(tiers: list[PromotionTier]) -> PromotionTier | None:
    usable = reachable_tiers(tiers)
    return usable[-1] if usable else None


def headline_benefit(promotion: Promotion) -> str | None:
    """The configured headline, or one generated from the top tier."""
    if promotion.headline_benefit:
        return promotion.headline_benefit

    family, tiers = governing_tiers(promotion)
    top = _top_tier(tiers)
    if top is None:
        return None

    headline = f"Up to {format_percent(top.discount_percent)} OFF"
    if family == "sku":
        headline += " Displays"
    inventory = promotion.inventory_incentive
    if inventory.enabled:
        headline += (
            f" + {format_percent(inventory.backup_discount_percent)} OFF Back Up & Stock Items"
        )
    return headline


def program_summary(promotion: Promotion) -> ProgramSummary:
    bullets = promotion.summary_bullets or [
        "Exclusive market program for qualifying orders",
        _DEFAULT_BULLETS_INVENTORY
        if promotion.inventory_incentive.enabled
        else _DEFAULT_BULLETS_TIERED,
        "Contact your rep for complete program details",
    ]
    return ProgramSummary(
        title=promotion.summary_title or f"{promotion.name} - Market Savings Program",
        body=promotion.summary_body,
        headline_benefit=headline_benefit(promotion),
        bullets=bullets,
        terms_and_conditions=promotion.terms_and_conditions,
        pdf_url=promotion.pdf_url,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def build_promotion_summary(
    promotion: Promotion | None, calculation: PromotionCalculation | None
) -> PromotionSummary:
    """Assemble everything the status strip renders.

    With no promotion the summary is empty; with a promotion but no
    calculation (empty selection) only the static program details are set.
    """
    if promotion is None:
        return PromotionSummary()

    summary = PromotionSummary(
        promotion_id=promotion.id,
        tier_rules=tier_rules(promotion),
        program=program_summary(promotion),
    )
    if calculation is None:
        return summary

    upcoming = next_tier_info(calculation)
    summary.calculation = calculation
    summary.next_tier = upcoming
    summary.progress = promotion_progress(calculation)
    summary.message = dynamic_promotion_message(calculation, upcoming)
    summary.headline = motivational_headline(calculation, upcoming)
    summary.cta = next_tier_cta(upcoming)
    summary.current_tier_level = current_tier_level(promotion, calculation)
    summary.what_if = what_if_projections(promotion, calculation)
    return summary
