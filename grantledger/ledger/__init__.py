"""
Ledger Package

The budget hierarchy engine: aggregation, posting, merging, editing,
backup and reporting.
"""

from grantledger.ledger.backup import (
    BackupManager,
    DiagnosticFeedback,
    build_diagnostic_report,
)
from grantledger.ledger.calculator import (
    CategoryStats,
    DeliverableStats,
    GrantBreakdown,
    GrantStats,
    SubRecipientStats,
    category_remaining,
    category_stats,
    deliverable_stats,
    find_orphaned_expenditures,
    grant_breakdown,
    grant_stats,
    sub_recipient_stats,
    to_cents,
)
from grantledger.ledger.grants import GrantManager, TemplateManager
from grantledger.ledger.poster import (
    ExpenditurePoster,
    PostingOptions,
    PostingResult,
    indirect_cost_amount,
)
from grantledger.ledger.reconciler import KindMergeReport, MergeResult, merge
from grantledger.ledger.reporting import (
    budget_vs_actuals,
    expenditure_ledger_csv,
    expenditure_ledger_rows,
    format_usd,
)

__all__ = [
    # Backup
    "BackupManager",
    "DiagnosticFeedback",
    "build_diagnostic_report",
    # Calculator
    "CategoryStats",
    "DeliverableStats",
    "GrantBreakdown",
    "GrantStats",
    "SubRecipientStats",
    "category_remaining",
    "category_stats",
    "deliverable_stats",
    "find_orphaned_expenditures",
    "grant_breakdown",
    "grant_stats",
    "sub_recipient_stats",
    "to_cents",
    # Editing
    "GrantManager",
    "TemplateManager",
    # Posting
    "ExpenditurePoster",
    "PostingOptions",
    "PostingResult",
    "indirect_cost_amount",
    # Merge
    "KindMergeReport",
    "MergeResult",
    "merge",
    # Reporting
    "budget_vs_actuals",
    "expenditure_ledger_csv",
    "expenditure_ledger_rows",
    "format_usd",
]
