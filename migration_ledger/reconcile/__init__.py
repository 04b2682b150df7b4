"""
Reconciliation of primitive records into combined records.
"""

from .builder import (
    CombinedRecordBuilder,
    ReconciliationResult,
    SourceSnapshot,
    first_wins_index,
)
from .redirects import RedirectIssue, RedirectMap, RedirectPolicy

__all__ = [
    "CombinedRecordBuilder",
    "first_wins_index",
    "ReconciliationResult",
    "RedirectIssue",
    "RedirectMap",
    "RedirectPolicy",
    "SourceSnapshot",
]
