"""
Input Boundary Validation

The engine trusts its input: it neither validates nor clamps. Anything
typed by a user or read off a receipt is checked HERE, before it becomes
part of a Bill snapshot.

Checks return a ValidationResult instead of raising, so callers can show
every problem at once. Severity decides what happens next:
- error: the input is refused
- warning: accepted, but worth showing (e.g. a suspiciously large price)
- info: accepted, nothing to fix (e.g. a 0% tax that will be dropped)

IMPORTANT: Validation never silently fixes a value except where the
contract says so: percentages are clamped to [0, 100].
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional, Sequence

from quicksplit.config import AppSettings, get_settings
from quicksplit.models.bill import (
    HUNDRED,
    MAX_BILL_NAME_LENGTH,
    MAX_ITEM_NAME_LENGTH,
    MAX_PARTICIPANT_NAME_LENGTH,
    MAX_TAX_LABEL_LENGTH,
    Participant,
    TaxEntry,
    ValidationIssue,
    ValidationResult,
)


class InvalidInputError(ValueError):
    """User input failed validation."""

    def __init__(self, field: str, result: ValidationResult):
        self.field = field
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Invalid {field}: {messages}")


def _as_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def drop_empty_taxes(taxes: Iterable[TaxEntry]) -> list[TaxEntry]:
    """Remove 0% (or negative) entries; they never change the multiplier."""
    return [tax for tax in taxes if tax.percent > 0]


class BillInputValidator:
    """Checks write-path input for items, taxes, participants and percentages."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def _number_issues(
        self,
        field: str,
        value,
        label: str,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        number = _as_decimal(value)
        if number is None:
            return None, [ValidationIssue(
                field=field,
                issue_type="not_a_number",
                message=f"{label} must be a number",
                severity="error",
            )]
        if not number.is_finite():
            return None, [ValidationIssue(
                field=field,
                issue_type="not_finite",
                message=f"{label} must be a finite number",
                severity="error",
            )]
        if number < 0:
            return number, [ValidationIssue(
                field=field,
                issue_type="negative",
                message=f"{label} cannot be negative",
                severity="error",
            )]
        return number, []

    @staticmethod
    def _length_issues(
        field: str,
        value: Optional[str],
        limit: int,
        label: str,
    ) -> list[ValidationIssue]:
        length = len((value or "").strip())
        if length <= limit:
            return []
        return [ValidationIssue(
            field=field,
            issue_type="too_long",
            message=f"{label} is {length} characters long; the limit is {limit}",
            severity="error",
        )]

    def validate_bill_name(self, name: str) -> ValidationResult:
        return ValidationResult(
            issues=self._length_issues("name", name, MAX_BILL_NAME_LENGTH, "Bill name")
        )

    def validate_tax_label(self, label: Optional[str]) -> ValidationResult:
        return ValidationResult(
            issues=self._length_issues("label", label, MAX_TAX_LABEL_LENGTH, "Tax label")
        )

    def validate_item(self, name: str, price) -> ValidationResult:
        issues = []

        if not (name or "").strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Item name is required",
                severity="error",
            ))
        issues.extend(self._length_issues("name", name, MAX_ITEM_NAME_LENGTH, "Item name"))

        number, price_issues = self._number_issues("price", price, "Price")
        issues.extend(price_issues)

        if not price_issues and number > Decimal(str(self._settings.max_item_price)):
            issues.append(ValidationIssue(
                field="price",
                issue_type="suspicious_value",
                message=f"Price {number} is unusually large; please double-check it",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_tax(self, label: str, percent) -> ValidationResult:
        number, issues = self._number_issues("percent", percent, "Tax percentage")
        issues = self.validate_tax_label(label).issues + issues

        if not issues and number == 0:
            issues.append(ValidationIssue(
                field="percent",
                issue_type="no_effect",
                message=f"{label or 'Tax'} at 0% has no effect and will be ignored",
                severity="info",
            ))

        return ValidationResult(issues=issues)

    def validate_participant(
        self,
        name: str,
        existing: Sequence[Participant] = (),
    ) -> ValidationResult:
        issues = []
        cleaned = (name or "").strip()

        if not cleaned:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Participant name is required",
                severity="error",
            ))
        elif len(cleaned) > MAX_PARTICIPANT_NAME_LENGTH:
            issues.extend(self._length_issues(
                "name", cleaned, MAX_PARTICIPANT_NAME_LENGTH, "Participant name"
            ))
        elif any(p.name.casefold() == cleaned.casefold() for p in existing):
            issues.append(ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f"There is already a participant called {cleaned}",
                severity="warning",
            ))

        return ValidationResult(issues=issues)

    def validate_percentage(self, percentage) -> ValidationResult:
        """
        Check a claim percentage. None (a remainder share) is always valid.

        Out-of-range values are a warning: they are clamped, not refused.
        """
        if percentage is None:
            return ValidationResult()

        number = _as_decimal(percentage)
        if number is None or not number.is_finite():
            return ValidationResult(issues=[ValidationIssue(
                field="percentage",
                issue_type="not_finite",
                message="Percentage must be a finite number",
                severity="error",
            )])

        if number < 0 or number > HUNDRED:
            return ValidationResult(issues=[ValidationIssue(
                field="percentage",
                issue_type="out_of_range",
                message=f"Percentage {number} is outside 0-100 and will be clamped",
                severity="warning",
            )])

        return ValidationResult()
