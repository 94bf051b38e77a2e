"""
Plain-text bill summary, for pasting into a chat or a note.

    Dinner at Luigi's
    Total: $54.44

    Alice: $27.22
      - Pizza: $16.33
      - Wine: $10.89

    Bob: $27.22
      ...

Amounts are rounded to cents here and only here; the engine keeps full
precision.
"""

from decimal import ROUND_HALF_UP, Decimal

from quicksplit.engine import (
    effective_items,
    grand_total,
    participant_item_contribution,
    participant_totals,
)
from quicksplit.models.bill import Bill


CENTS = Decimal("0.01")


def round_to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
    return f"${round_to_cents(amount)}"


def format_summary(bill: Bill) -> str:
    items = effective_items(bill)
    totals = {t.id: t.total for t in participant_totals(bill)}

    lines = [bill.name, f"Total: {format_money(grand_total(bill))}", ""]

    for participant in bill.participants:
        lines.append(f"{participant.name}: {format_money(totals[participant.id])}")
        for selection in participant.selected_items:
            if not 0 <= selection.item_index < len(items):
                continue
            item = items[selection.item_index]
            contribution = participant_item_contribution(
                participant, selection.item_index, item, bill.participants
            )
            lines.append(f"  - {item.name}: {format_money(contribution)}")
        lines.append("")

    return "\n".join(lines).strip()
