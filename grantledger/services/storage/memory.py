"""
In-Memory Storage Implementation

InMemoryLedgerStore holds the ledger as a LedgerSnapshot and implements
every operation of the interface. Subclasses only decide how a new
snapshot is made durable by overriding _write().

DESIGN DECISION: A mutation builds the NEW snapshot first, writes it,
and only then swaps it in. A failed write therefore leaves memory
exactly where it was, so memory and disk never silently diverge.
"""

import asyncio
from typing import Optional
from uuid import UUID

from grantledger.errors import NotFoundError, PersistenceError
from grantledger.models.audit import AuditEvent
from grantledger.models.snapshot import ENTITY_MODELS, EntityKind, LedgerSnapshot
from grantledger.services.storage.interface import (
    AuditStorageInterface,
    Entity,
    LedgerStoreInterface,
)


def _label(kind: EntityKind) -> str:
    return kind.value.rstrip("s")


class InMemoryLedgerStore(LedgerStoreInterface):
    """
    Ledger store whose durable write is a no-op.

    Used directly in tests, and as the base for file-backed stores.
    """

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self._state = (snapshot or LedgerSnapshot()).model_copy(deep=True)
        # Serializes read-modify-write so two awaited puts cannot lose an update
        self._lock = asyncio.Lock()

    async def _write(self, state: LedgerSnapshot) -> None:
        """Make a new state durable. Raise OSError or PersistenceError on failure."""
        pass

    async def _commit(self, operation: str, build) -> None:
        async with self._lock:
            new_state = build(self._state)
            if new_state is None:
                return
            try:
                await self._write(new_state)
            except PersistenceError:
                raise
            except OSError as e:
                raise PersistenceError(operation, str(e)) from e
            self._state = new_state

    async def _apply(self, operation: str, build) -> None:
        # A write that has started runs to completion even if the caller
        # stops waiting for it.
        await asyncio.shield(self._commit(operation, build))

    async def get(self, kind: EntityKind, entity_id: str) -> Entity:
        for entity in self._state.collection(kind):
            if entity.id == entity_id:
                return entity.model_copy(deep=True)
        raise NotFoundError(_label(kind), entity_id)

    async def list(self, kind: EntityKind) -> list[Entity]:
        return [entity.model_copy(deep=True) for entity in self._state.collection(kind)]

    async def put(self, kind: EntityKind, entity: Entity) -> None:
        model = ENTITY_MODELS[kind]
        if not isinstance(entity, model):
            raise TypeError(f"Expected {model.__name__} for {kind.value}, got {type(entity).__name__}")
        stored = entity.model_copy(deep=True)

        def build(state: LedgerSnapshot) -> LedgerSnapshot:
            items = list(state.collection(kind))
            for index, existing in enumerate(items):
                if existing.id == stored.id:
                    items[index] = stored
                    break
            else:
                items.append(stored)
            return state.with_collection(kind, items)

        await self._apply(f"save {_label(kind)} {entity.id}", build)

    async def delete(self, kind: EntityKind, entity_id: str) -> bool:
        removed = False

        def build(state: LedgerSnapshot) -> Optional[LedgerSnapshot]:
            nonlocal removed
            items = [e for e in state.collection(kind) if e.id != entity_id]
            if len(items) == len(state.collection(kind)):
                return None
            removed = True
            return state.with_collection(kind, items)

        await self._apply(f"delete {_label(kind)} {entity_id}", build)
        return removed

    async def snapshot(self) -> LedgerSnapshot:
        return self._state.model_copy(deep=True)

    async def restore(self, snapshot: LedgerSnapshot) -> None:
        replacement = snapshot.model_copy(deep=True)
        await self._apply("restore ledger", lambda state: replacement)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
