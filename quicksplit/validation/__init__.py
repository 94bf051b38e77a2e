"""Input validation package."""

from quicksplit.validation.validator import (
    BillInputValidator,
    InvalidInputError,
    drop_empty_taxes,
)

__all__ = ["BillInputValidator", "InvalidInputError", "drop_empty_taxes"]
