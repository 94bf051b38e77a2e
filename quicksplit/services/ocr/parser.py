"""
Receipt Text Parser

Turns raw receipt text into bill items with one heuristic: a line that
ends in a price is an item, everything before the price is its name.

    "Chicken Burger 12.99"   -> BillItem("Chicken Burger", 12.99)
    "Fries $4.50"            -> BillItem("Fries", 4.50)
    "THANK YOU"              -> skipped

Best effort by nature. It never raises; text without any price lines
yields an empty list and the user adds items by hand.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from quicksplit.models.bill import MAX_ITEM_NAME_LENGTH, BillItem


# "<name> <optional $><digits>[.<digits>]" at end of line
PRICE_LINE_PATTERN = re.compile(r"^(.+?)\s+\$?(\d+\.?\d*)\s*$")


def parse_line(line: str) -> Optional[BillItem]:
    """Parse a single line, or return None if it is not an item line."""
    trimmed = line.strip()
    if not trimmed:
        return None

    match = PRICE_LINE_PATTERN.match(trimmed)
    if not match:
        return None

    name = match.group(1).strip()
    try:
        price = Decimal(match.group(2))
    except InvalidOperation:
        return None

    if not name:
        return None
    return BillItem(name=name[:MAX_ITEM_NAME_LENGTH], price=price)


def parse_items_from_text(text: str) -> list[BillItem]:
    """Parse every item line in text, in order."""
    items = []
    for line in (text or "").splitlines():
        item = parse_line(line)
        if item is not None:
            items.append(item)
    return items
