"""
Promotion configuration rules.

Validation of promotion records at authoring time, the portable-SKU
predicate, tier reachability, and selection of the promotion that is live for
a vendor on a given day.  Nothing here performs I/O.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from showroom.models import (
    PortableIncentive,
    Promotion,
    PromotionTier,
    ValidationIssue,
    ValidationResult,
)

logger = logging.getLogger(__name__)

_MIN_PERCENT = 0.0
_MAX_PERCENT = 100.0


class PromotionValidationError(ValueError):
    """Raised by ``ensure_valid_promotion`` for a malformed promotion."""

    def __init__(self, result: ValidationResult) -> None:
        self.result = result
        details = "; ".join(f"{e.field}: {e.message}" for e in result.errors)
        super().__init__(f"Invalid promotion configuration: {details}")


# ---------------------------------------------------------------------------
# Portable SKUs
# ---------------------------------------------------------------------------
def is_portable_sku(sku: str, portable_incentive: PortableIncentive | None) -> bool:
    """Return True if *sku* starts with one of the incentive's prefixes.

    Matching is case-sensitive and exact; an empty prefix never matches.
    Disabled or missing incentives classify nothing as portable.
    """
    if portable_incentive is None or not portable_incentive.enabled:
        return False
    return any(
        prefix and sku.startswith(prefix) for prefix in portable_incentive.sku_prefixes
    )


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------
def is_reachable_tier(tier: PromotionTier) -> bool:
    """A tier with a non-positive threshold or out-of-range discount never applies."""
    return tier.threshold > 0 and _MIN_PERCENT <= tier.discount_percent <= _MAX_PERCENT


def reachable_tiers(tiers: Iterable[PromotionTier]) -> list[PromotionTier]:
    """Return the usable tiers in ascending threshold order (stable on ties)."""
    return sorted(
        (t for t in tiers if is_reachable_tier(t)), key=lambda t: t.threshold
    )


def governing_tiers(promotion: Promotion) -> tuple[str, list[PromotionTier]]:
    """Return the tier family evaluated for *promotion* and its tiers.

    SKU tiers take precedence whenever they are configured; dollar tiers are
    only consulted when there are no SKU tiers at all.
    """
    if promotion.sku_tiers:
        return "sku", promotion.sku_tiers
    if promotion.dollar_tiers:
        return "dollar", promotion.dollar_tiers
    return "none", []


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def _percent_in_range(value: float) -> bool:
    return _MIN_PERCENT <= value <= _MAX_PERCENT


def _validate_tiers(family: str, tiers: list[PromotionTier]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen: set[float] = set()
    for index, tier in enumerate(tiers):
        field = f"{family}[{index}]"
        if tier.threshold <= 0:
            issues.append(
                ValidationIssue(
                    field=f"{field}.threshold",
                    code="threshold_not_positive",
                    message=f"Tier threshold must be greater than 0 (got {tier.threshold:g})",
                )
            )
        if not _percent_in_range(tier.discount_percent):
            issues.append(
                ValidationIssue(
                    field=f"{field}.discountPercent",
                    code="discount_out_of_range",
                    message=(
                        "Tier discount must be between 0 and 100 "
                        f"(got {tier.discount_percent:g})"
                    ),
                )
            )
        if tier.threshold in seen:
            issues.append(
                ValidationIssue(
                    field=f"{field}.threshold",
                    code="duplicate_threshold",
                    message=f"Threshold {tier.threshold:g} is used by more than one tier",
                )
            )
        seen.add(tier.threshold)
    return issues


def validate_promotion(promotion: Promotion) -> ValidationResult:
    """Check a promotion for configuration errors.

    Never raises; the returned result lists every problem found so an
    authoring form can show them all at once.
    """
    issues: list[ValidationIssue] = []

    if not promotion.name.strip():
        issues.append(
            ValidationIssue(field="name", code="required", message="Promotion name is required")
        )

    if (
        promotion.start_date is not None
        and promotion.end_date is not None
        and promotion.end_date < promotion.start_date
    ):
        issues.append(
            ValidationIssue(
                field="endDate",
                code="window_inverted",
                message="End date must not be before start date",
            )
        )

    issues.extend(_validate_tiers("skuTiers", promotion.sku_tiers))
    issues.extend(_validate_tiers("dollarTiers", promotion.dollar_tiers))

    inventory = promotion.inventory_incentive
    if not _percent_in_range(inventory.backup_discount_percent):
        issues.append(
            ValidationIssue(
                field="inventoryIncentive.backupDiscountPercent",
                code="discount_out_of_range",
                message="Backup discount must be between 0 and 100",
            )
        )

    portable = promotion.portable_incentive
    if not _percent_in_range(portable.discount_percent):
        issues.append(
            ValidationIssue(
                field="portableIncentive.discountPercent",
                code="discount_out_of_range",
                message="Portable discount must be between 0 and 100",
            )
        )
    if portable.enabled and not any(p for p in portable.sku_prefixes):
        issues.append(
            ValidationIssue(
                field="portableIncentive.skuPrefixes",
                code="prefixes_required",
                message="Portable incentive is enabled but no SKU prefixes are configured",
            )
        )

    return ValidationResult(valid=not issues, errors=issues)


def ensure_valid_promotion(promotion: Promotion) -> Promotion:
    """Return *promotion* unchanged, or raise ``PromotionValidationError``."""
    result = validate_promotion(promotion)
    if not result.valid:
        raise PromotionValidationError(result)
    return promotion


# ---------------------------------------------------------------------------
# Active promotion lookup
# ---------------------------------------------------------------------------
def is_live(promotion: Promotion, today: date) -> bool:
    """True if the promotion is active and *today* falls inside its window."""
    if not promotion.active:
        return False
    if promotion.start_date is not None and promotion.start_date > today:
        return False
    if promotion.end_date is not None and promotion.end_date < today:
        return False
    return True


def select_active_promotion(
    promotions: Iterable[Promotion],
    vendor: str | None = None,
    today: date | None = None,
) -> Promotion | None:
    """Return the first live promotion for *vendor*, or None.

    Promotions without a vendor apply to every vendor.
    """
    day = today or date.today()
    for promotion in promotions:
        if vendor and promotion.vendor and promotion.vendor != vendor:
            continue
        if is_live(promotion, day):
            return promotion
    logger.debug("No live promotion for vendor=%s on %s", vendor, day)
    return None
