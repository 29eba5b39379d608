"""
Data Models Package

This package contains all Pydantic models used in Grant Ledger.
Everything stored, imported or exported must conform to these schemas.
"""

from grantledger.models.grant import (
    INTERNAL_TRANSFER_VENDOR,
    SYSTEM_PURCHASER,
    BudgetCategory,
    ComplianceReport,
    Deliverable,
    DeliverableStatus,
    EmailTemplate,
    EntryKind,
    Expenditure,
    ExpenditureDraft,
    ExpenditureStatus,
    FundingSource,
    Grant,
    GrantAuditEntry,
    GrantStatus,
    ReportStatus,
    ReportType,
    SubRecipient,
    new_id,
)
from grantledger.models.snapshot import (
    ENTITY_MODELS,
    EntityKind,
    LedgerSnapshot,
    default_templates,
)
from grantledger.models.validation import ValidationIssue, ValidationResult
from grantledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "INTERNAL_TRANSFER_VENDOR",
    "SYSTEM_PURCHASER",
    "BudgetCategory",
    "ComplianceReport",
    "Deliverable",
    "DeliverableStatus",
    "EmailTemplate",
    "EntryKind",
    "Expenditure",
    "ExpenditureDraft",
    "ExpenditureStatus",
    "FundingSource",
    "Grant",
    "GrantAuditEntry",
    "GrantStatus",
    "ReportStatus",
    "ReportType",
    "SubRecipient",
    "new_id",
    # Snapshot
    "ENTITY_MODELS",
    "EntityKind",
    "LedgerSnapshot",
    "default_templates",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
