"""
Tax Engine

Turns raw (pre-tax) item prices into effective prices. All tax, service
and fee entries are summed into one percentage and applied uniformly to
every item; there are no per-item rates.

Pure functions of a Bill snapshot. No logging, no errors.
"""

from decimal import Decimal

from quicksplit.models.bill import HUNDRED, Bill, BillItem


def effective_tax_percent(bill: Bill) -> Decimal:
    """
    Sum of all tax entries.

    Negative entries contribute nothing; zero entries are a no-op.
    """
    return sum((tax.percent for tax in bill.taxes if tax.percent > 0), Decimal(0))


def tax_multiplier(bill: Bill) -> Decimal:
    return 1 + effective_tax_percent(bill) / HUNDRED


def effective_items(bill: Bill) -> list[BillItem]:
    """Raw items with tax applied to each price. Names are unchanged."""
    multiplier = tax_multiplier(bill)
    return [
        BillItem(name=item.name, price=item.price * multiplier)
        for item in bill.items
    ]


def subtotal(bill: Bill) -> Decimal:
    """Sum of raw item prices."""
    return sum((item.price for item in bill.items), Decimal(0))


def grand_total(bill: Bill) -> Decimal:
    """Sum of effective item prices."""
    return sum((item.price for item in effective_items(bill)), Decimal(0))


def tax_amount(bill: Bill) -> Decimal:
    return grand_total(bill) - subtotal(bill)
