"""
QuickSplit - Source Package

A bill-splitting calculator: priced items, cumulative tax/service
percentages, and per-participant item claims, turned into what each
person owes.

DESIGN PRINCIPLES:
1. Bills are immutable snapshots; every edit produces a new one
2. Derived totals are always recomputed, never stored
3. Assignment problems are reported as flags, not raised as errors
4. Storage and OCR are swappable collaborators
"""

__version__ = "1.0.0"
__author__ = "QuickSplit Team"
