"""
Audit Models for Grant Ledger

Every change to the ledger is logged for audit purposes.
This provides:
1. Complete traceability of spend against each grant
2. Debugging information when a save fails
3. Accountability to funders

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


DESCRIPTION_LIMIT = 500


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenditures
    EXPENDITURE_POSTED = "expenditure_posted"
    EXPENDITURE_REJECTED = "expenditure_rejected"
    EXPENDITURE_UPDATED = "expenditure_updated"
    EXPENDITURE_DELETED = "expenditure_deleted"
    INDIRECT_COST_POSTED = "indirect_cost_posted"
    INDIRECT_COST_FAILED = "indirect_cost_failed"

    # Grants and budgets
    GRANT_SAVED = "grant_saved"
    GRANT_DELETED = "grant_deleted"
    BUDGET_AMENDED = "budget_amended"

    # Templates
    TEMPLATE_SAVED = "template_saved"
    TEMPLATE_DELETED = "template_deleted"

    # Backup and import
    BACKUP_EXPORTED = "backup_exported"
    IMPORT_MERGED = "import_merged"
    IMPORT_KIND_FAILED = "import_kind_failed"

    # Receipt intake
    RECEIPT_SCANNED = "receipt_scanned"
    RECEIPT_NEEDS_MANUAL_REVIEW = "receipt_needs_manual_review"

    # System events
    PERSISTENCE_FAILED = "persistence_failed"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every ledger mutation creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'grant', 'expenditure', 'template')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., an expenditure and its IDC entry)"
    )

    description: str = Field(
        ...,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    @field_validator("description")
    @classmethod
    def truncate_description(cls, v: str) -> str:
        """Long caller text (paths, reasons) is cut, never rejected."""
        if len(v) > DESCRIPTION_LIMIT:
            return v[:DESCRIPTION_LIMIT - 3] + "..."
        return v

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expenditure_posted(expenditure, correlation_id)
        event = AuditEventBuilder.persistence_failed("save grant", "disk full")
    """

    @staticmethod
    def expenditure_posted(
        expenditure_id: str,
        grant_id: str,
        vendor: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENDITURE_POSTED,
            entity_type="expenditure",
            entity_id=expenditure_id,
            correlation_id=correlation_id,
            description=f"Expenditure posted: {vendor} - ${amount}",
            details={
                "grant_id": grant_id,
                "vendor": vendor,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def expenditure_rejected(
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENDITURE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expenditure",
            correlation_id=correlation_id,
            description=f"Expenditure rejected: {len(fields)} required field(s) missing",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def indirect_cost_posted(
        expenditure_id: str,
        source_expenditure_id: str,
        amount: str,
        rate: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INDIRECT_COST_POSTED,
            entity_type="expenditure",
            entity_id=expenditure_id,
            correlation_id=correlation_id,
            description=f"Indirect cost recovery posted: ${amount} at {rate}%",
            details={
                "source_expenditure_id": source_expenditure_id,
                "amount": amount,
                "rate": rate,
            },
        )

    @staticmethod
    def indirect_cost_failed(
        source_expenditure_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INDIRECT_COST_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expenditure",
            entity_id=source_expenditure_id,
            correlation_id=correlation_id,
            description="Indirect cost recovery could not be saved; primary expenditure kept",
            error_message=error_message,
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Saved/updated/deleted events that only differ by type and wording."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def import_merged(
        inserted: dict[str, int],
        skipped: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_MERGED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=(
                f"Import merged: {sum(inserted.values())} inserted, "
                f"{sum(skipped.values())} skipped"
            ),
            details={"inserted": inserted, "skipped": skipped},
            is_user_action=True,
        )

    @staticmethod
    def import_kind_failed(
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_KIND_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Import of {kind} rejected; other collections unaffected",
            details={"kind": kind},
            error_message=error_message,
        )

    @staticmethod
    def receipt_scanned(
        item_id: str,
        parsed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        if parsed:
            return AuditEvent(
                event_type=AuditEventType.RECEIPT_SCANNED,
                entity_type="receipt",
                entity_id=item_id,
                correlation_id=correlation_id,
                description="Receipt scanned; awaiting review",
            )
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_NEEDS_MANUAL_REVIEW,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            entity_id=item_id,
            correlation_id=correlation_id,
            description="Receipt could not be read; routed to manual entry",
        )

    @staticmethod
    def persistence_failed(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"Save failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
