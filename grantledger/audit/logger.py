"""
Audit Logger

DESIGN DECISION: Every change to the ledger is logged.
This provides:
1. Complete traceability of spend against each grant
2. Debugging capability when a save fails
3. A history the grant manager can show a funder

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a broken audit store never blocks a posting)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from grantledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from grantledger.models.grant import Expenditure
from grantledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("grantledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expenditure_posted(
        self,
        expenditure: Expenditure,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expenditure_posted(
            expenditure_id=expenditure.id,
            grant_id=expenditure.grant_id,
            vendor=expenditure.vendor,
            amount=str(expenditure.amount),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expenditure_rejected(
        self,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expenditure_rejected(fields, correlation_id))

    async def log_indirect_cost_posted(
        self,
        expenditure: Expenditure,
        rate: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.indirect_cost_posted(
            expenditure_id=expenditure.id,
            source_expenditure_id=expenditure.source_expenditure_id or "",
            amount=str(expenditure.amount),
            rate=rate,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_indirect_cost_failed(
        self,
        source_expenditure_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.indirect_cost_failed(
            source_expenditure_id=source_expenditure_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.entity_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_import_merged(
        self,
        inserted: dict[str, int],
        skipped: dict[str, int],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.import_merged(inserted, skipped, correlation_id))

    async def log_import_kind_failed(
        self,
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.import_kind_failed(kind, error_message, correlation_id))

    async def log_receipt_scanned(
        self,
        item_id: str,
        parsed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.receipt_scanned(item_id, parsed, correlation_id))

    async def log_persistence_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed durable write."""
        event = AuditEventBuilder.persistence_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., posting an
    expenditure with its indirect cost). Pass it through all
    subsequent operations.
    """
    return uuid4()
