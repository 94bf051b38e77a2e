"""
Split Result Models

These are DERIVED values produced by quicksplit.engine. They are handed to
the presentation layer and are never persisted; reloading a bill
recomputes them from its raw fields.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from quicksplit.models.bill import BillStatus


class ItemSplitInfo(BaseModel):
    """
    How one item's 100% is divided among its claimants.

    The over-assignment flag compares fixed_percentage_total against 100
    directly. The remainder floors at 0, so once fixed claims pass 100%
    total_assigned_percentage equals the fixed total (e.g. 120) and any
    remainder claimants are charged nothing.
    """
    model_config = ConfigDict(frozen=True)

    item_index: int
    fixed_percentage_total: Decimal = Field(
        ...,
        description="Sum of explicit percentage claims"
    )
    remainder_participant_count: int = Field(
        ...,
        ge=0,
        description="Claimants splitting the remainder equally"
    )
    remainder_percentage: Decimal = Field(
        ...,
        description="max(0, 100 - fixed_percentage_total)"
    )
    total_assigned_percentage: Decimal
    is_fully_assigned: bool
    is_over_assigned: bool
    is_unassigned: bool


class ParticipantTotal(BaseModel):
    """What one participant owes, at full precision."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    total: Decimal


class SplitSummary(BaseModel):
    """Everything the presentation layer needs about a bill in one value."""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    assigned_total: Decimal
    participant_totals: list[ParticipantTotal] = Field(default_factory=list)
    items: list[ItemSplitInfo] = Field(default_factory=list)
    is_fully_assigned: bool
    status: BillStatus

    @property
    def unassigned_total(self) -> Decimal:
        """Grand total minus what participants cover (negative when over-assigned)."""
        return self.grand_total - self.assigned_total

    @property
    def over_assigned_items(self) -> list[int]:
        return [info.item_index for info in self.items if info.is_over_assigned]

    @property
    def unassigned_items(self) -> list[int]:
        return [info.item_index for info in self.items if info.is_unassigned]
