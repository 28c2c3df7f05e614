"""
Tests for the promotion calculation engine.

Covers the documented pricing scenarios, input edge cases, and randomised
property checks (seeded numpy generator) for the invariants every calculation
must hold: repeatable results, savings conservation, no compounding of the
tier and backup discounts, and portable items staying out of tier metrics.
"""

from __future__ import annotations

import os
import sys

import numpy as np
import pytest

# Ensure the app package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "app"))

from showroom.models import LineItem, Promotion, PromotionTier, SelectionRecord  # noqa: E402
from showroom.services.calculator import (  # noqa: E402
    backup_discount_for,
    calculate_promotion,
    find_achieved_tier,
    find_next_tier,
    line_items_from_selection,
)


# ---------------------------------------------------------------------------
# Fixtures / helpers
# ---------------------------------------------------------------------------
def _tier(threshold: float, discount: float, tier_id: str = "") -> PromotionTier:
    return PromotionTier(id=tier_id, threshold=threshold, discount_percent=discount)


def _items(count: int, qty: int = 1, unit_list: float = 100.0, prefix: str = "10") -> list[LineItem]:
    return [
        LineItem(sku=f"{prefix}-{i:03d}", name=f"Fixture {i}", qty=qty, unit_list=unit_list)
        for i in range(count)
    ]


@pytest.fixture()
def sku_promotion() -> Promotion:
    """Two SKU tiers, no incentives."""
    return Promotion(
        id="promo-sku",
        name="Spring Market",
        sku_tiers=[_tier(5, 20, "t1"), _tier(10, 30, "t2")],
    )


@pytest.fixture()
def portable_promotion() -> Promotion:
    return Promotion(
        id="promo-portable",
        name="Portables",
        sku_tiers=[_tier(5, 20, "t1"), _tier(10, 30, "t2")],
        portable_incentive={"enabled": True, "discountPercent": 15, "skuPrefixes": ["24", "27"]},
    )


# ---------------------------------------------------------------------------
# Documented scenarios
# ---------------------------------------------------------------------------
class TestScenarios:
    """Reference selections with known outcomes."""

    def test_seven_skus_hit_first_tier(self, sku_promotion):
        calc = calculate_promotion(sku_promotion, _items(7))

        assert calc is not None
        assert calc.tier_family == "sku"
        assert calc.unique_display_skus == 7
        assert calc.best_tier_discount == 20
        assert calc.best_tier.id == "t1"
        assert calc.next_sku_tier is not None
        assert calc.next_sku_tier.skus_needed == 3
        assert calc.next_sku_tier.tier.id == "t2"
        assert calc.next_dollar_tier is None

    def test_display_and_backup_priced_separately(self, sku_promotion):
        promotion = sku_promotion.model_copy(
            update={
                "inventory_incentive": sku_promotion.inventory_incentive.model_copy(
                    update={"enabled": True, "backup_discount_percent": 15}
                )
            }
        )
        calc = calculate_promotion(promotion, _items(10, qty=3, unit_list=200.0))

        assert calc.best_tier_discount == 30
        assert calc.backup_discount_percent == 15
        for item in calc.items:
            assert item.display_qty == 1
            assert item.backup_qty == 2
            assert item.display_net_unit == pytest.approx(140.0)
            assert item.backup_net_unit == pytest.approx(170.0)
            assert item.backup_extended == pytest.approx(340.0)
            assert item.line_total == pytest.approx(480.0)

        assert calc.display_total == pytest.approx(1400.0)
        assert calc.backup_total == pytest.approx(3400.0)
        assert calc.tier_savings == pytest.approx(600.0)
        assert calc.backup_savings == pytest.approx(600.0)
        assert calc.total_savings == pytest.approx(1200.0)
        assert calc.grand_total == pytest.approx(4800.0)

    def test_portable_item_flat_discount(self, portable_promotion):
        calc = calculate_promotion(
            portable_promotion, [LineItem(sku="24-100", qty=5, unit_list=100.0)]
        )

        item = calc.items[0]
        assert item.is_portable
        assert item.display_qty == 5
        assert item.backup_qty == 0
        assert item.display_net_unit == pytest.approx(85.0)
        assert item.line_total == pytest.approx(425.0)
        assert calc.unique_display_skus == 0
        assert calc.portable_item_count == 1
        assert calc.portable_total == pytest.approx(425.0)
        assert calc.portable_savings == pytest.approx(75.0)
        assert calc.best_tier is None

    def test_no_promotion(self):
        assert calculate_promotion(None, _items(3)) is None

    def test_highest_threshold_wins_over_larger_discount(self):
        promotion = Promotion(name="Odd tiers", sku_tiers=[_tier(3, 30), _tier(10, 20)])
        calc = calculate_promotion(promotion, _items(10))

        assert calc.best_tier_discount == 20
        assert calc.next_sku_tier is None


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------
class TestEdgeCases:
    """Degenerate or malformed input."""

    def test_empty_selection(self, sku_promotion):
        assert calculate_promotion(sku_promotion, []) is None

    def test_zero_unit_list(self, sku_promotion):
        calc = calculate_promotion(sku_promotion, _items(6, qty=2, unit_list=0.0))

        assert calc.unique_display_skus == 6
        assert calc.best_tier_discount == 20
        assert calc.total_savings == 0
        assert calc.grand_total == 0

    def test_zero_quantity_does_not_count(self, sku_promotion):
        items = _items(4) + [LineItem(sku="10-999", display_qty=0, backup_qty=0, unit_list=50)]
        calc = calculate_promotion(sku_promotion, items)

        assert calc.unique_display_skus == 4
        assert calc.best_tier is None
        assert calc.items[-1].line_total == 0

    def test_negative_values_clamped(self, sku_promotion):
        items = [
            LineItem(sku="10-001", display_qty=-2, backup_qty=3, unit_list=100),
            LineItem(sku="10-002", display_qty=1, unit_list=-50),
            LineItem(sku="10-003", display_qty=1, unit_list=10),
        ]
        calc = calculate_promotion(sku_promotion, items)

        assert calc.clamped_skus == ["10-001", "10-002"]
        first, second, third = calc.items
        assert first.display_qty == 0
        assert first.backup_qty == 3
        assert first.clamped
        assert second.unit_list == 0
        assert second.line_total == 0
        assert not third.clamped
        assert calc.unique_display_skus == 2

    def test_display_quantity_capped_at_one(self, sku_promotion):
        calc = calculate_promotion(
            sku_promotion, [LineItem(sku="10-001", display_qty=3, backup_qty=1, unit_list=10)]
        )
        item = calc.items[0]
        assert item.display_qty == 1
        assert item.backup_qty == 3
        assert calc.total_display_qty == 1

    def test_duplicate_skus_share_one_display_unit(self, sku_promotion):
        items = [LineItem(sku="10-001", qty=1, unit_list=10) for _ in range(5)]
        calc = calculate_promotion(sku_promotion, items)

        assert calc.unique_display_skus == 1
        assert calc.total_display_qty == 1
        assert calc.display_subtotal == pytest.approx(10.0)
        assert calc.backup_subtotal == pytest.approx(40.0)
        assert len(calc.items) == 5
        assert [(p.display_qty, p.backup_qty) for p in calc.items] == [(1, 0)] + [(0, 1)] * 4

    def test_line_split_does_not_change_dollar_tier(self):
        promotion = Promotion(name="Dollars", dollar_tiers=[_tier(3000, 25)])
        split_lines = [
            LineItem(sku="10-001", display_qty=1, unit_list=1000) for _ in range(5)
        ]
        single_line = [LineItem(sku="10-001", qty=5, unit_list=1000)]

        split_calc = calculate_promotion(promotion, split_lines)
        single_calc = calculate_promotion(promotion, single_line)

        for calc in (split_calc, single_calc):
            assert calc.unique_display_skus == 1
            assert calc.total_display_qty == 1
            assert calc.display_subtotal == pytest.approx(1000.0)
            assert calc.best_tier is None
        assert split_calc.grand_total == pytest.approx(single_calc.grand_total)

    def test_display_unit_goes_to_first_line_that_has_one(self, sku_promotion):
        items = [
            LineItem(sku="10-001", display_qty=0, backup_qty=2, unit_list=10),
            LineItem(sku="10-001", display_qty=1, unit_list=10),
        ]
        calc = calculate_promotion(sku_promotion, items)
        assert [(p.display_qty, p.backup_qty) for p in calc.items] == [(0, 2), (1, 0)]

    def test_invalid_tiers_are_unreachable(self):
        promotion = Promotion(
            name="Broken",
            sku_tiers=[_tier(0, 50), _tier(2, 150), _tier(3, 10)],
        )
        calc = calculate_promotion(promotion, _items(4))
        assert calc.best_tier_discount == 10

        calc = calculate_promotion(promotion, _items(1))
        assert calc.best_tier is None
        assert calc.next_sku_tier.tier.threshold == 3

    def test_sku_tiers_take_precedence_over_dollar_tiers(self):
        promotion = Promotion(
            name="Both",
            sku_tiers=[_tier(5, 20)],
            dollar_tiers=[_tier(100, 40)],
        )
        calc = calculate_promotion(promotion, _items(3, unit_list=1000.0))

        assert calc.tier_family == "sku"
        assert calc.best_tier is None
        assert calc.best_tier_discount == 0
        assert calc.next_dollar_tier is None

    def test_dollar_tiers(self):
        promotion = Promotion(
            name="Dollars",
            dollar_tiers=[_tier(1000, 10), _tier(5000, 20)],
        )
        calc = calculate_promotion(promotion, _items(3, qty=4, unit_list=500.0))

        assert calc.tier_family == "dollar"
        assert calc.display_subtotal == pytest.approx(1500.0)
        assert calc.best_tier_discount == 10
        assert calc.next_dollar_tier.amount_needed == pytest.approx(3500.0)
        assert calc.next_sku_tier is None

    def test_no_tiers(self):
        calc = calculate_promotion(Promotion(name="Plain"), _items(3, qty=2))
        assert calc.tier_family == "none"
        assert calc.total_savings == 0
        assert calc.backup_discount_percent == 0

    def test_percent_reported_without_float_noise(self, sku_promotion):
        calc = calculate_promotion(sku_promotion, _items(6, qty=2))
        assert calc.backup_discount_percent == 15.0
        assert calc.items[0].backup_discount_percent == 15.0
        assert calc.items[0].display_discount_percent == 20.0


# ---------------------------------------------------------------------------
# Tier search and backup rate
# ---------------------------------------------------------------------------
class TestTierHelpers:
    """Threshold search and the backup discount rule."""

    tiers = [_tier(10, 30, "b"), _tier(5, 20, "a")]

    @pytest.mark.parametrize(
        "value,expected",
        [(0, None), (4.99, None), (5, "a"), (9, "a"), (10, "b"), (50, "b")],
    )
    def test_find_achieved_tier(self, value, expected):
        tier = find_achieved_tier(value, self.tiers)
        assert (tier.id if tier else None) == expected

    def test_find_next_tier(self):
        assert find_next_tier(0, self.tiers).id == "a"
        assert find_next_tier(5, self.tiers).id == "b"
        assert find_next_tier(10, self.tiers) is None

    def test_backup_from_enabled_incentive(self):
        promotion = Promotion(
            name="P", inventory_incentive={"enabled": True, "backupDiscountPercent": 12}
        )
        assert backup_discount_for(promotion, 0) == 12
        assert backup_discount_for(promotion, 30) == 12

    def test_backup_default_requires_tier_discount(self):
        promotion = Promotion(name="P")
        assert backup_discount_for(promotion, 0) == 0
        assert backup_discount_for(promotion, 20) == 15
        assert backup_discount_for(promotion, 20, default_backup_discount_percent=10) == 10

    def test_portable_items_get_no_backup_discount(self, portable_promotion):
        items = _items(5) + [LineItem(sku="27-001", display_qty=1, backup_qty=4, unit_list=10)]
        calc = calculate_promotion(portable_promotion, items)
        portable = calc.items[-1]
        assert portable.backup_discount_percent == 0
        assert portable.display_discount_percent == 15


# ---------------------------------------------------------------------------
# Inventory incentive qualification
# ---------------------------------------------------------------------------
class TestInventoryQualification:
    """Qualification flag for the inventory incentive."""

    def _promotion(self, **incentive) -> Promotion:
        return Promotion(
            name="Inventory",
            sku_tiers=[_tier(5, 20)],
            inventory_incentive={"enabled": True, "backupDiscountPercent": 15, **incentive},
        )

    def test_display_qty_threshold(self):
        promotion = self._promotion(displayQtyThreshold=5)
        assert not calculate_promotion(promotion, _items(4)).inventory_incentive_qualified
        assert calculate_promotion(promotion, _items(5)).inventory_incentive_qualified

    def test_dollar_threshold(self):
        promotion = self._promotion(dollarThreshold=1000)
        assert not calculate_promotion(promotion, _items(9)).inventory_incentive_qualified
        assert calculate_promotion(promotion, _items(10)).inventory_incentive_qualified

    def test_either_threshold_qualifies(self):
        promotion = self._promotion(displayQtyThreshold=50, dollarThreshold=300)
        assert calculate_promotion(promotion, _items(3)).inventory_incentive_qualified

    def test_no_thresholds_means_enabled_is_enough(self):
        assert calculate_promotion(self._promotion(), _items(1)).inventory_incentive_qualified

    def test_disabled(self):
        promotion = Promotion(name="P", sku_tiers=[_tier(5, 20)])
        assert not calculate_promotion(promotion, _items(6)).inventory_incentive_qualified


# ---------------------------------------------------------------------------
# Selection adapter
# ---------------------------------------------------------------------------
class TestSelectionAdapter:
    """Building calculator input from stored selections."""

    def test_raw_qty_split(self):
        selection = SelectionRecord.model_validate(
            {
                "id": "sel-1",
                "items": [
                    {"sku": "10-001", "name": "Sconce", "qty": 3, "unitList": 120},
                    {"sku": "10-002", "qty": 0, "unitList": 80},
                    {"sku": "10-003", "qty": 4, "displayQty": 2, "backupQty": 1, "unitList": 50},
                ],
            }
        )
        items = line_items_from_selection(selection)

        assert [(i.display_qty, i.backup_qty) for i in items] == [(1, 2), (0, 0), (2, 1)]
        assert items[0].unit_list == 120
        assert items[1].collection == ""

    def test_line_item_accepts_raw_qty(self):
        item = LineItem.model_validate({"sku": "10-001", "qty": 4, "unitList": 10})
        assert (item.display_qty, item.backup_qty) == (1, 3)

        explicit = LineItem.model_validate({"sku": "10-001", "qty": 4, "displayQty": 1})
        assert (explicit.display_qty, explicit.backup_qty) == (1, 0)


# ---------------------------------------------------------------------------
# Randomised invariants
# ---------------------------------------------------------------------------
def _random_promotion(rng: np.random.Generator) -> Promotion:
    thresholds = sorted({int(t) for t in rng.integers(1, 15, size=3)})
    discounts = sorted(float(d) for d in rng.integers(5, 40, size=len(thresholds)))
    return Promotion(
        id="random",
        name="Random",
        sku_tiers=[_tier(t, d, f"t{i}") for i, (t, d) in enumerate(zip(thresholds, discounts))],
        inventory_incentive={
            "enabled": bool(rng.integers(0, 2)),
            "backupDiscountPercent": float(rng.integers(0, 25)),
        },
        portable_incentive={
            "enabled": True,
            "discountPercent": float(rng.integers(0, 30)),
            "skuPrefixes": ["24"],
        },
    )


def _random_items(rng: np.random.Generator, count: int) -> list[LineItem]:
    items = []
    for _ in range(count):
        prefix = "24" if rng.random() < 0.2 else "10"
        items.append(
            LineItem(
                sku=f"{prefix}-{int(rng.integers(0, 20)):03d}",
                display_qty=int(rng.integers(0, 3)),
                backup_qty=int(rng.integers(0, 5)),
                unit_list=round(float(rng.uniform(0, 900)), 2),
            )
        )
    return items


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(20250315)


class TestInvariants:
    """Properties that hold for any promotion and selection."""

    def test_repeatable(self, rng):
        for _ in range(25):
            promotion = _random_promotion(rng)
            items = _random_items(rng, int(rng.integers(1, 20)))
            assert calculate_promotion(promotion, items) == calculate_promotion(promotion, items)

    def test_savings_conservation(self, rng):
        for _ in range(50):
            promotion = _random_promotion(rng)
            items = _random_items(rng, int(rng.integers(1, 20)))
            calc = calculate_promotion(promotion, items)

            expected = sum(
                (p.unit_list - p.display_net_unit) * p.display_qty
                + (p.unit_list - p.backup_net_unit) * p.backup_qty
                for p in calc.items
            )
            list_value = sum(p.unit_list * (p.display_qty + p.backup_qty) for p in calc.items)
            assert calc.total_savings == pytest.approx(expected)
            assert calc.grand_total + calc.total_savings == pytest.approx(list_value)
            assert calc.total_savings == pytest.approx(
                calc.tier_savings + calc.backup_savings + calc.portable_savings
            )

    def test_no_compounding(self, rng):
        for _ in range(50):
            promotion = _random_promotion(rng)
            calc = calculate_promotion(promotion, _random_items(rng, 15))

            for p in calc.items:
                if p.is_portable:
                    assert p.display_discount_percent == calc.portable_discount_percent
                    continue
                assert p.display_discount_percent == calc.best_tier_discount
                assert p.backup_discount_percent == calc.backup_discount_percent
                assert p.display_net_unit == pytest.approx(
                    p.unit_list * (1 - calc.best_tier_discount / 100)
                )
                assert p.backup_net_unit == pytest.approx(
                    p.unit_list * (1 - calc.backup_discount_percent / 100)
                )

    def test_portables_excluded_from_tier_metrics(self, rng):
        for _ in range(50):
            promotion = _random_promotion(rng)
            items = _random_items(rng, 15)
            calc = calculate_promotion(promotion, items)

            regular_skus = {
                i.sku for i in items if not i.sku.startswith("24") and max(i.display_qty, 0) > 0
            }
            assert calc.unique_display_skus == len(regular_skus)

            without_portables = [i for i in items if not i.sku.startswith("24")]
            if without_portables:
                baseline = calculate_promotion(promotion, without_portables)
                assert baseline.best_tier_discount == calc.best_tier_discount
                assert baseline.display_subtotal == pytest.approx(calc.display_subtotal)

    def test_adding_skus_never_lowers_monotonic_tier(self, rng):
        for _ in range(25):
            promotion = _random_promotion(rng)
            items: list[LineItem] = []
            previous = 0.0
            for i in range(20):
                items.append(LineItem(sku=f"10-{i:03d}", display_qty=1, unit_list=100))
                calc = calculate_promotion(promotion, items)
                assert calc.best_tier_discount >= previous
                previous = calc.best_tier_discount
