"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the poster, reconciler and grant editor ignorant of where data lives
2. Use in-memory storage for testing
3. Swap the JSON data file for something else later

The interface is intentionally small - get, list, put, delete by id.
Updates are always whole-entity replacements; there is no partial update.
"""

from abc import ABC, abstractmethod
from typing import Union
from uuid import UUID

from grantledger.models.audit import AuditEvent
from grantledger.models.grant import EmailTemplate, Expenditure, Grant
from grantledger.models.snapshot import EntityKind, LedgerSnapshot


Entity = Union[Grant, Expenditure, EmailTemplate]


class LedgerStoreInterface(ABC):
    """
    Abstract interface for the ledger store.

    Every mutation is durable before it returns: if the write fails,
    PersistenceError is raised and the store still holds the previous state.
    """

    @abstractmethod
    async def get(self, kind: EntityKind, entity_id: str) -> Entity:
        """
        Retrieve an entity by id.

        Raises:
            NotFoundError: If no entity of that kind has the id
        """
        pass

    @abstractmethod
    async def list(self, kind: EntityKind) -> list[Entity]:
        """List every entity of a kind, in stored order."""
        pass

    @abstractmethod
    async def put(self, kind: EntityKind, entity: Entity) -> None:
        """
        Upsert by id: replace the entity if the id exists, else append.

        Raises:
            PersistenceError: If the durable write fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """
        Remove an entity if present. Dependents are never touched.

        Returns:
            True if something was removed, False if the id was absent

        Raises:
            PersistenceError: If the durable write fails
        """
        pass

    @abstractmethod
    async def snapshot(self) -> LedgerSnapshot:
        """Copy of the whole ledger."""
        pass

    @abstractmethod
    async def restore(self, snapshot: LedgerSnapshot) -> None:
        """
        Replace the whole ledger with one durable write.

        Raises:
            PersistenceError: If the durable write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for one user action, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass
