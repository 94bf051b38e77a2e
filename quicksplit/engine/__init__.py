"""Tax and split calculation engine."""

from quicksplit.engine.tax import (
    effective_items,
    effective_tax_percent,
    grand_total,
    subtotal,
    tax_amount,
    tax_multiplier,
)
from quicksplit.engine.split import (
    EPSILON,
    all_item_split_info,
    assigned_total,
    bill_status,
    calculate_split,
    get_item_split_info,
    is_fully_assigned,
    item_share_preview,
    participant_item_contribution,
    participant_item_contribution_by_id,
    participant_total,
    participant_totals,
)

__all__ = [
    # Tax engine
    "effective_items",
    "effective_tax_percent",
    "grand_total",
    "subtotal",
    "tax_amount",
    "tax_multiplier",
    # Split engine
    "EPSILON",
    "all_item_split_info",
    "assigned_total",
    "bill_status",
    "calculate_split",
    "get_item_split_info",
    "is_fully_assigned",
    "item_share_preview",
    "participant_item_contribution",
    "participant_item_contribution_by_id",
    "participant_total",
    "participant_totals",
]
