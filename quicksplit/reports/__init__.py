"""Export formatting package."""

from quicksplit.reports.summary import format_money, format_summary, round_to_cents

__all__ = ["format_money", "format_summary", "round_to_cents"]
