"""
fintrack - Source Package

A personal-finance tracking backend: transactions are logged, imported
from third-party exports and receipt photos, and rolled up into
dashboard summaries and month-over-month trends.

DESIGN PRINCIPLES:
1. Aggregation is pure and deterministic
2. Fail early, fail visibly
3. No silent corrections
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"
