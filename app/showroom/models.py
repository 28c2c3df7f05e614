"""
Pydantic data models for the Showroom Promotions API.

All request / response schemas are defined here so they can be shared across
routers, services, and tests.  Records coming from the portal store use
camelCase keys (``skuTiers``, ``discountPercent``); every model accepts those
as well as the snake_case field names, and serialises to camelCase.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _PortalModel(BaseModel):
    """Base model matching the portal's camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenPortalModel(_PortalModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ---------------------------------------------------------------------------
# Promotion configuration
# ---------------------------------------------------------------------------
class PromotionTier(_PortalModel):
    """A threshold / discount pair.

    ``threshold`` is a unique-SKU count for SKU tiers and a dollar amount for
    dollar tiers.  Values are not checked here; see
    ``promotion_rules.validate_promotion``.
    """

    id: str = ""
    threshold: float
    discount_percent: float


class InventoryIncentive(_PortalModel):
    """Discount on backup (non-display) quantities."""

    enabled: bool = False
    display_qty_threshold: float | None = None
    dollar_threshold: float | None = None
    backup_discount_percent: float = 0.0


class PortableIncentive(_PortalModel):
    """Flat discount on portable products identified by SKU prefix."""

    enabled: bool = False
    discount_percent: float = 0.0
    sku_prefixes: list[str] = Field(default_factory=list)


class Promotion(_PortalModel):
    """A named, vendor-scoped discount program."""

    id: str = ""
    name: str
    vendor: str = ""
    description: str | None = None
    active: bool = False
    start_date: date | None = None
    end_date: date | None = None

    sku_tiers: list[PromotionTier] = Field(default_factory=list)
    dollar_tiers: list[PromotionTier] = Field(default_factory=list)
    inventory_incentive: InventoryIncentive = Field(default_factory=InventoryIncentive)
    portable_incentive: PortableIncentive = Field(default_factory=PortableIncentive)

    # Customer-facing program summary
    summary_title: str | None = None
    summary_body: str | None = None
    headline_benefit: str | None = None
    summary_bullets: list[str] = Field(default_factory=list)
    pdf_url: str | None = None
    terms_and_conditions: str | None = None

    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("vendor", mode="before")
    @classmethod
    def _null_vendor(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        # The store writes full ISO timestamps; only the calendar day matters.
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
            return value.split("T", 1)[0].split(" ", 1)[0]
        return value

    @field_validator(
        "sku_tiers",
        "dollar_tiers",
        "summary_bullets",
        mode="before",
    )
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("inventory_incentive", "portable_incentive", mode="before")
    @classmethod
    def _null_incentive(cls, value: Any) -> Any:
        return {} if value is None else value


# ---------------------------------------------------------------------------
# Selection input
# ---------------------------------------------------------------------------
class LineItem(_PortalModel):
    """One SKU of a working selection, as fed to the calculator.

    Callers that only have a raw ``qty`` may pass it instead of the split
    quantities: the first unit becomes the display unit and the rest backup.
    """

    sku: str
    name: str = ""
    collection: str = ""
    year: int | None = None
    display_qty: int = 0
    backup_qty: int = 0
    unit_list: float = 0.0
    notes: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _split_raw_qty(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        split_keys = ("display_qty", "displayQty", "backup_qty", "backupQty")
        has_split = any(data.get(key) is not None for key in split_keys)
        qty = data.get("qty")
        if has_split or qty is None:
            return data
        if not isinstance(qty, int):
            try:
                qty = int(qty)
            except (TypeError, ValueError) as exc:
                raise ValueError("qty must be an integer") from exc
        data = dict(data)
        data["display_qty"] = min(qty, 1)
        data["backup_qty"] = max(qty - 1, 0)
        return data


class SelectionItem(_PortalModel):
    """An item of a stored selection record."""

    sku: str
    name: str = ""
    collection: str | None = None
    year: int | None = None
    qty: int = 0
    display_qty: int | None = None
    backup_qty: int | None = None
    unit_list: float = 0.0
    notes: str | None = None


class SelectionRecord(_PortalModel):
    """A customer's working selection as exposed by the portal store."""

    id: str
    customer_id: str | None = None
    name: str | None = None
    vendor: str | None = None
    items: list[SelectionItem] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None

    @field_validator("items", mode="before")
    @classmethod
    def _null_items(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class ValidationIssue(_PortalModel):
    """A single problem found in a promotion configuration."""

    field: str
    code: str
    message: str


class ValidationResult(_PortalModel):
    """Outcome of ``validate_promotion``."""

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Calculation output
# ---------------------------------------------------------------------------
TierFamily = Literal["sku", "dollar", "none"]


class LineItemPricing(_FrozenPortalModel):
    """Net pricing for one line item.

    Portable items carry their full quantity in the display slice and report
    the portable discount as ``display_discount_percent``.
    """

    sku: str
    name: str
    collection: str
    year: int | None
    is_portable: bool
    unit_list: float
    display_qty: int
    backup_qty: int
    display_discount_percent: float
    display_net_unit: float
    display_extended: float
    backup_discount_percent: float
    backup_net_unit: float
    backup_extended: float
    display_savings: float
    backup_savings: float
    savings: float
    line_total: float
    clamped: bool = False
    notes: str | None = None


class NextSkuTier(_FrozenPortalModel):
    tier: PromotionTier
    skus_needed: int


class NextDollarTier(_FrozenPortalModel):
    tier: PromotionTier
    amount_needed: float


class PromotionCalculation(_FrozenPortalModel):
    """Pricing of a selection under one promotion.

    Recomputed on every call and never persisted.
    """

    promotion_id: str
    promotion_name: str
    tier_family: TierFamily

    unique_display_skus: int
    total_display_qty: int
    display_subtotal: float
    display_total: float
    backup_subtotal: float
    backup_total: float

    portable_item_count: int
    portable_subtotal: float
    portable_total: float
    portable_discount_percent: float

    best_tier: PromotionTier | None = None
    best_tier_discount: float
    backup_discount_percent: float
    next_sku_tier: NextSkuTier | None = None
    next_dollar_tier: NextDollarTier | None = None

    inventory_incentive_qualified: bool

    tier_savings: float
    backup_savings: float
    portable_savings: float
    total_savings: float
    grand_total: float

    items: list[LineItemPricing] = Field(default_factory=list)
    clamped_skus: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Messaging / presentation
# ---------------------------------------------------------------------------
class NextTierInfo(_PortalModel):
    """The next tier in the governing family and what reaching it is worth."""

    metric: Literal["sku", "dollar"]
    tier: PromotionTier
    skus_needed: int | None = None
    amount_needed: float | None = None
    projected_savings: float


class PromotionProgress(_PortalModel):
    """Progress toward the next tier, for the status strip."""

    metric_label: Literal["SKU", "Dollar"]
    current_value: float
    target_value: float
    progress_pct: float


class TierRule(_PortalModel):
    """Customer-facing row of the tier table."""

    id: str
    tier_level: int
    label: str
    sku_range_text: str
    min_sku_count: float | None = None
    display_discount_percent: float
    backup_discount_percent: float | None = None


class WhatIfProjection(_PortalModel):
    """Savings projected for a tier above the current one."""

    tier: PromotionTier
    gap: float
    gap_label: str
    projected_savings: float
    additional_savings: float
    message: str


class ProgramSummary(_PortalModel):
    """Program summary card with auto-generated fallbacks resolved."""

    title: str
    body: str | None = None
    headline_benefit: str | None = None
    bullets: list[str] = Field(default_factory=list)
    terms_and_conditions: str | None = None
    pdf_url: str | None = None


class PromotionSummary(_PortalModel):
    """Everything the status strip and savings ledger render."""

    promotion_id: str | None = None
    calculation: PromotionCalculation | None = None
    message: str | None = None
    headline: str | None = None
    cta: str | None = None
    progress: PromotionProgress | None = None
    next_tier: NextTierInfo | None = None
    current_tier_level: int | None = None
    tier_rules: list[TierRule] = Field(default_factory=list)
    what_if: list[WhatIfProjection] = Field(default_factory=list)
    program: ProgramSummary | None = None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class CalculateRequest(_PortalModel):
    """Price an ad-hoc selection under an optional promotion."""

    promotion: Promotion | None = None
    items: list[LineItem] = Field(default_factory=list)
