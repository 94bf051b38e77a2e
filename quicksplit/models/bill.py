"""
Core Data Models for QuickSplit

These models define the raw state of a bill: the items as printed on the
receipt, the tax/service percentages, and who claims what.

DESIGN DECISION: Every model is a frozen Pydantic v2 model and every
sequence is a tuple. A Bill is a value snapshot; the mutation methods on it
return a NEW Bill and never touch the original. The owning application
replaces its "current" snapshot wholesale.

Nothing derived (effective prices, totals, status) lives here. Those are
pure computations in quicksplit.engine and are never persisted.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


HUNDRED = Decimal("100")

MAX_BILL_NAME_LENGTH = 200
MAX_ITEM_NAME_LENGTH = 200
MAX_TAX_LABEL_LENGTH = 50
MAX_PARTICIPANT_NAME_LENGTH = 100

Number = Union[Decimal, int, float, str]


# =============================================================================
# HELPERS
# =============================================================================

def new_id() -> str:
    """Generate a fresh unique identifier."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to Decimal without float artefacts.

    Floats go through str() so 4.75 becomes Decimal("4.75"), not
    Decimal("4.75000000000000017763568394002504646778106689453125").
    """
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def clamp_percentage(value: Number) -> Decimal:
    """
    Clamp a percentage to [0, 100].

    This is applied on the write path only. The engine never re-clamps,
    so data loaded from storage is taken as-is.
    """
    percentage = to_decimal(value)
    if not percentage.is_finite():
        raise ValueError(f"Percentage must be a finite number, got {value!r}")
    return min(max(percentage, Decimal(0)), HUNDRED)


def generate_bill_name(timestamp: Optional[datetime] = None) -> str:
    """Default bill name, e.g. 'Bill - Oct 17, 2026'."""
    when = timestamp or utcnow()
    return f"Bill - {when:%b} {when.day}, {when.year}"


# =============================================================================
# ENUMS
# =============================================================================

class BillStatus(str, Enum):
    """
    Bill lifecycle status.

    Always recomputed from current data, never stored:
    - DRAFT: no items, or items but nobody to split with
    - SPLITTING: items and participants, but not every item is at 100%
    - COMPLETED: every item is exactly 100% assigned
    """
    DRAFT = "draft"
    SPLITTING = "splitting"
    COMPLETED = "completed"


# =============================================================================
# VALUE TYPES
# =============================================================================

class _Snapshot(BaseModel):
    """Shared configuration: immutable, camelCase on the wire."""
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def _with(self, **changes):
        """Like model_copy(update=...), but the result is validated again."""
        return self.model_validate({**dict(self), **changes})


class BillItem(_Snapshot):
    """
    A single priced line on the bill.

    Items have no identity of their own; they are addressed by their
    position in Bill.items.
    """
    name: str = Field(
        ...,
        max_length=MAX_ITEM_NAME_LENGTH,
        description="Item name as shown on the receipt"
    )
    price: Decimal = Field(
        ...,
        allow_inf_nan=False,
        description="Price before tax"
    )


class TaxEntry(_Snapshot):
    """One tax, service charge or fee, expressed as a percentage."""
    id: str = Field(default_factory=new_id)
    label: str = Field(
        default="Other",
        max_length=MAX_TAX_LABEL_LENGTH,
    )
    percent: Decimal = Field(
        ...,
        allow_inf_nan=False,
        description="Percentage added on top of every item price"
    )


class ItemSelection(_Snapshot):
    """
    A participant's claim on one item.

    percentage=None means "an equal share of whatever the fixed-percentage
    claimants left over".
    """
    item_index: int = Field(
        ...,
        description="Position of the claimed item in Bill.items"
    )
    percentage: Optional[Decimal] = Field(
        default=None,
        allow_inf_nan=False,
        description="Explicit share of the item, or None for a remainder share"
    )

    @property
    def is_remainder_share(self) -> bool:
        return self.percentage is None


class Participant(_Snapshot):
    """Someone the bill is split between."""
    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_PARTICIPANT_NAME_LENGTH,
    )
    selected_items: tuple[ItemSelection, ...] = Field(default_factory=tuple)

    def selection_for(self, item_index: int) -> Optional[ItemSelection]:
        """Return this participant's selection on an item, if any."""
        for selection in self.selected_items:
            if selection.item_index == item_index:
                return selection
        return None

    def with_selection(self, selection: ItemSelection) -> "Participant":
        """Add or replace the selection for selection.item_index."""
        selections = list(self.selected_items)
        for position, existing in enumerate(selections):
            if existing.item_index == selection.item_index:
                selections[position] = selection
                break
        else:
            selections.append(selection)
        return self._with(selected_items=tuple(selections))

    def without_selection(self, item_index: int) -> "Participant":
        return self._with(selected_items=tuple(
            s for s in self.selected_items if s.item_index != item_index
        ))


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

class Bill(_Snapshot):
    """
    The bill aggregate.

    CRITICAL: Items are referenced by index. Removing an item renumbers
    every selection that points past it (see remove_item).

    Every mutation method returns a new Bill. Requests that reference an
    unknown participant, tax or item index produce an unchanged snapshot.
    The new Bill is validated like a freshly built one: a change that
    breaks a field constraint raises ValidationError.
    """
    id: str = Field(default_factory=new_id)
    name: str = Field(
        default_factory=generate_bill_name,
        max_length=MAX_BILL_NAME_LENGTH,
    )
    created_at: datetime = Field(default_factory=utcnow)
    items: tuple[BillItem, ...] = Field(
        default_factory=tuple,
        description="Raw (pre-tax) items"
    )
    taxes: tuple[TaxEntry, ...] = Field(default_factory=tuple)
    participants: tuple[Participant, ...] = Field(default_factory=tuple)

    @classmethod
    def create(cls, name: Optional[str] = None) -> "Bill":
        """Start an empty bill, named after today's date unless given a name."""
        now = utcnow()
        return cls(
            id=new_id(),
            name=name or generate_bill_name(now),
            created_at=now,
        )

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_data(self) -> dict:
        """Raw fields as a JSON-compatible dict (decimals as strings)."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_data(cls, data: dict) -> "Bill":
        return cls.model_validate(data)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def has_item(self, index: int) -> bool:
        return 0 <= index < len(self.items)

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    # -------------------------------------------------------------------------
    # Mutations (each returns a new Bill)
    # -------------------------------------------------------------------------

    def _replace(self, **changes) -> "Bill":
        return self._with(**changes)

    def _map_participant(self, participant_id: str, change) -> "Bill":
        return self._replace(participants=tuple(
            change(p) if p.id == participant_id else p
            for p in self.participants
        ))

    def rename(self, name: str) -> "Bill":
        return self._replace(name=name.strip() or self.name)

    def add_item(self, item: BillItem) -> "Bill":
        return self._replace(items=self.items + (item,))

    def add_items(self, items: Iterable[BillItem]) -> "Bill":
        return self._replace(items=self.items + tuple(items))

    def update_item(self, index: int, item: BillItem) -> "Bill":
        if not self.has_item(index):
            return self._replace()
        items = list(self.items)
        items[index] = item
        return self._replace(items=tuple(items))

    def remove_item(self, index: int) -> "Bill":
        """
        Remove the item at index.

        Selections on the removed item are dropped; selections on later
        items shift down by one so they keep pointing at the same item.
        """
        if not self.has_item(index):
            return self._replace()

        def renumber(participant: Participant) -> Participant:
            selections = []
            for selection in participant.selected_items:
                if selection.item_index == index:
                    continue
                if selection.item_index > index:
                    selection = selection._with(item_index=selection.item_index - 1)
                selections.append(selection)
            return participant._with(selected_items=tuple(selections))

        return self._replace(
            items=self.items[:index] + self.items[index + 1:],
            participants=tuple(renumber(p) for p in self.participants),
        )

    def set_taxes(self, taxes: Iterable[TaxEntry]) -> "Bill":
        return self._replace(taxes=tuple(taxes))

    def add_tax(self, label: str, percent: Number) -> "Bill":
        tax = TaxEntry(id=new_id(), label=label, percent=to_decimal(percent))
        return self._replace(taxes=self.taxes + (tax,))

    def update_tax(
        self,
        tax_id: str,
        label: Optional[str] = None,
        percent: Optional[Number] = None,
    ) -> "Bill":
        changes = {}
        if label is not None:
            changes["label"] = label
        if percent is not None:
            changes["percent"] = to_decimal(percent)
        return self._replace(taxes=tuple(
            t._with(**changes) if t.id == tax_id else t
            for t in self.taxes
        ))

    def remove_tax(self, tax_id: str) -> "Bill":
        return self._replace(taxes=tuple(t for t in self.taxes if t.id != tax_id))

    def add_participant(self, name: str, participant_id: Optional[str] = None) -> "Bill":
        participant = Participant(id=participant_id or new_id(), name=name)
        return self._replace(participants=self.participants + (participant,))

    def remove_participant(self, participant_id: str) -> "Bill":
        return self._replace(participants=tuple(
            p for p in self.participants if p.id != participant_id
        ))

    def set_participant_item_selection(
        self,
        participant_id: str,
        item_index: int,
        selected: bool,
        percentage: Optional[Number] = None,
    ) -> "Bill":
        """
        Claim or release an item for a participant.

        selected=True adds the selection (or replaces an existing one on
        the same item); selected=False removes it. The percentage is
        clamped to [0, 100]; None means a remainder share.
        """
        if not selected:
            return self._map_participant(
                participant_id, lambda p: p.without_selection(item_index)
            )
        if not self.has_item(item_index):
            return self._replace()

        selection = ItemSelection(
            item_index=item_index,
            percentage=None if percentage is None else clamp_percentage(percentage),
        )
        return self._map_participant(
            participant_id, lambda p: p.with_selection(selection)
        )

    def set_participant_item_percentage(
        self,
        participant_id: str,
        item_index: int,
        percentage: Optional[Number],
    ) -> "Bill":
        """Change the percentage of an existing selection (None = remainder share)."""
        value = None if percentage is None else clamp_percentage(percentage)

        def change(participant: Participant) -> Participant:
            return participant._with(selected_items=tuple(
                s._with(percentage=value) if s.item_index == item_index else s
                for s in participant.selected_items
            ))

        return self._map_participant(participant_id, change)


# =============================================================================
# RECEIPT SCAN RESULT
# =============================================================================

class ScannedReceipt(BaseModel):
    """
    Result of scanning a receipt image.

    CRITICAL: These items are a best-effort guess. They are added to the
    bill as ordinary items the user can edit or remove.
    """
    raw_text: str = Field(
        default="",
        description="Text the items were parsed from"
    )
    items: list[BillItem] = Field(default_factory=list)
    merchant_name: Optional[str] = None
    scanned_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'negative', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of checking one piece of write-path input."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
