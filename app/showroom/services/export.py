"""
Selection export rows.

Flattens a ``PromotionCalculation`` into the rows used by the CSV / PDF / XLSX
exports: one row per display slice and a second row for backup stock when a
SKU has any.  Net prices come straight from the calculator so exports always
agree with the on-screen ledger.
"""

from __future__ import annotations

import csv
import io
from typing import Any

from showroom.models import PromotionCalculation

EXPORT_COLUMNS = [
    "SKU",
    "Name",
    "Type",
    "Qty",
    "Unit List",
    "Discount %",
    "Net Unit",
    "Extended Net",
    "Notes",
]


def build_selection_rows(calculation: PromotionCalculation) -> list[dict[str, Any]]:
    """Return export rows for every priced line item, in selection order."""
    rows: list[dict[str, Any]] = []
    for item in calculation.items:
        rows.append(
            {
                "SKU": item.sku,
                "Name": item.name,
                "Type": "Portable" if item.is_portable else "Display",
                "Qty": item.display_qty,
                "Unit List": item.unit_list,
                "Discount %": item.display_discount_percent,
                "Net Unit": item.display_net_unit,
                "Extended Net": item.display_extended,
                "Notes": item.notes or "",
            }
        )
        if item.backup_qty > 0:
            rows.append(
                {
                    "SKU": item.sku,
                    "Name": item.name,
                    "Type": "Backup",
                    "Qty": item.backup_qty,
                    "Unit List": item.unit_list,
                    "Discount %": item.backup_discount_percent,
                    "Net Unit": item.backup_net_unit,
                    "Extended Net": item.backup_extended,
                    "Notes": "",
                }
            )
    return rows


def build_selection_summary(calculation: PromotionCalculation) -> dict[str, float]:
    """Totals block printed under the export table."""
    subtotal = (
        calculation.display_subtotal
        + calculation.backup_subtotal
        + calculation.portable_subtotal
    )
    return {
        "Subtotal": subtotal,
        "Total Discount": calculation.total_savings,
        "Net Total": calculation.grand_total,
    }


def rows_to_csv(rows: list[dict[str, Any]]) -> str:
    """Serialise export rows to CSV text with a fixed header."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue()
