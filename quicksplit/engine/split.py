"""
Split Engine

Works out how each item's 100% is divided among the participants who
claim it, and from that what every participant owes.

Two kinds of claim exist on an item:
- fixed: an explicit percentage (e.g. "I had 30% of the pizza")
- remainder: an equal share of whatever the fixed claims leave over

IMPORTANT: The engine never normalizes. If claims add up to 120%, the
participants are charged 120% of the item and the item is flagged as
over-assigned for the user to fix. Flags are data, not exceptions.

Everything here is a pure function of its inputs.
"""

from decimal import Decimal
from typing import Optional, Sequence

from quicksplit.engine.tax import (
    effective_items,
    effective_tax_percent,
    grand_total,
    subtotal,
)
from quicksplit.models.bill import (
    HUNDRED,
    Bill,
    BillItem,
    BillStatus,
    Participant,
)
from quicksplit.models.split import ItemSplitInfo, ParticipantTotal, SplitSummary


# Tolerance for percentage comparisons
EPSILON = Decimal("0.01")

ZERO = Decimal(0)


# =============================================================================
# PER-ITEM
# =============================================================================

def get_item_split_info(
    item_index: int,
    participants: Sequence[Participant],
) -> ItemSplitInfo:
    """
    Allocation model for one item.

    NOTE: is_over_assigned looks at fixed_percentage_total alone. When
    fixed claims pass 100% and remainder claimants also exist, the
    remainder floors at 0, so total_assigned_percentage equals the fixed
    total and the remainder claimants are charged nothing.
    """
    fixed_percentage_total = ZERO
    remainder_participant_count = 0

    for participant in participants:
        selection = participant.selection_for(item_index)
        if selection is None:
            continue
        if selection.percentage is not None:
            fixed_percentage_total += selection.percentage
        else:
            remainder_participant_count += 1

    remainder_percentage = max(ZERO, HUNDRED - fixed_percentage_total)
    total_assigned_percentage = fixed_percentage_total + (
        remainder_percentage if remainder_participant_count > 0 else ZERO
    )

    is_over_assigned = fixed_percentage_total > HUNDRED + EPSILON
    is_fully_assigned = (
        abs(total_assigned_percentage - HUNDRED) < EPSILON
        and not is_over_assigned
    )

    return ItemSplitInfo(
        item_index=item_index,
        fixed_percentage_total=fixed_percentage_total,
        remainder_participant_count=remainder_participant_count,
        remainder_percentage=remainder_percentage,
        total_assigned_percentage=total_assigned_percentage,
        is_fully_assigned=is_fully_assigned,
        is_over_assigned=is_over_assigned,
        is_unassigned=total_assigned_percentage < EPSILON,
    )


def participant_item_contribution(
    participant: Participant,
    item_index: int,
    effective_item: BillItem,
    participants: Sequence[Participant],
) -> Decimal:
    """
    What a participant pays towards one item (at its effective price).

    Returns 0 when the participant has no claim on the item.
    """
    selection = participant.selection_for(item_index)
    if selection is None:
        return ZERO

    if selection.percentage is not None:
        return effective_item.price * selection.percentage / HUNDRED

    info = get_item_split_info(item_index, participants)
    if info.remainder_participant_count == 0:
        return ZERO

    per_person = info.remainder_percentage / info.remainder_participant_count
    return effective_item.price * per_person / HUNDRED


def _effective_item(items: Sequence[BillItem], item_index: int) -> Optional[BillItem]:
    if 0 <= item_index < len(items):
        return items[item_index]
    return None


def all_item_split_info(bill: Bill) -> list[ItemSplitInfo]:
    return [
        get_item_split_info(index, bill.participants)
        for index in range(len(bill.items))
    ]


def item_share_preview(bill: Bill, item_index: int) -> Decimal:
    """
    Per-person amount for an item's remainder share, for display.

    If nobody is splitting the remainder, the whole effective price is
    returned (what a new claimant would pick up). Invalid indices give 0.
    """
    item = _effective_item(effective_items(bill), item_index)
    if item is None:
        return ZERO

    info = get_item_split_info(item_index, bill.participants)
    if info.remainder_participant_count == 0:
        return item.price
    return item.price * info.remainder_percentage / HUNDRED / info.remainder_participant_count


# =============================================================================
# PER-PARTICIPANT
# =============================================================================

def _participant_total(
    participant: Participant,
    items: Sequence[BillItem],
    participants: Sequence[Participant],
) -> Decimal:
    total = ZERO
    for selection in participant.selected_items:
        item = _effective_item(items, selection.item_index)
        if item is None:
            continue
        total += participant_item_contribution(
            participant, selection.item_index, item, participants
        )
    return total


def participant_item_contribution_by_id(
    bill: Bill,
    participant_id: str,
    item_index: int,
) -> Decimal:
    """Contribution looked up by participant id; 0 for unknown ids or indices."""
    participant = bill.get_participant(participant_id)
    if participant is None:
        return ZERO
    item = _effective_item(effective_items(bill), item_index)
    if item is None:
        return ZERO
    return participant_item_contribution(participant, item_index, item, bill.participants)


def participant_total(bill: Bill, participant_id: str) -> Decimal:
    participant = bill.get_participant(participant_id)
    if participant is None:
        return ZERO
    return _participant_total(participant, effective_items(bill), bill.participants)


def participant_totals(bill: Bill) -> list[ParticipantTotal]:
    """Totals for every participant, in participant order."""
    items = effective_items(bill)
    return [
        ParticipantTotal(
            id=p.id,
            name=p.name,
            total=_participant_total(p, items, bill.participants),
        )
        for p in bill.participants
    ]


# =============================================================================
# BILL-LEVEL
# =============================================================================

def assigned_total(bill: Bill) -> Decimal:
    """Sum of participant totals. May differ from grand_total."""
    return sum((t.total for t in participant_totals(bill)), ZERO)


def is_fully_assigned(bill: Bill) -> bool:
    """
    True when every item is at exactly 100%.

    CRITICAL: A bill without items, or without participants, is never
    fully assigned. This gates finalizing the split.
    """
    if not bill.items or not bill.participants:
        return False
    return all(info.is_fully_assigned for info in all_item_split_info(bill))


def bill_status(bill: Bill) -> BillStatus:
    if not bill.items or not bill.participants:
        return BillStatus.DRAFT
    if is_fully_assigned(bill):
        return BillStatus.COMPLETED
    return BillStatus.SPLITTING


def calculate_split(bill: Bill) -> SplitSummary:
    """Compute every derived quantity of a bill in one pass."""
    totals = participant_totals(bill)
    item_info = all_item_split_info(bill)
    raw_total = subtotal(bill)
    total = grand_total(bill)
    fully_assigned = (
        bool(bill.items)
        and bool(bill.participants)
        and all(info.is_fully_assigned for info in item_info)
    )

    return SplitSummary(
        subtotal=raw_total,
        tax_percent=effective_tax_percent(bill),
        tax_amount=total - raw_total,
        grand_total=total,
        assigned_total=sum((t.total for t in totals), ZERO),
        participant_totals=totals,
        items=item_info,
        is_fully_assigned=fully_assigned,
        status=bill_status(bill),
    )
