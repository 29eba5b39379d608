"""
Merge/Import Reconciler

Combines an externally supplied ledger (a backup, a diagnostic report or
a legacy data file) with the current ledger.

RULES:
- The unit of dedup is the whole top-level entity, identified by id
- An incoming record whose id already exists is skipped: current wins
- New ids are appended in incoming order
- No id remapping, no deep merge of sub-fields
- Each kind is all-or-nothing: if any incoming record of a kind is
  invalid, that kind is left exactly as it was and the failure is
  reported. Other kinds still merge.

merge() is pure. Applying the result is the caller's job
(see ledger.backup), so a merge can be previewed before it is saved.
"""

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from grantledger.errors import ValidationError
from grantledger.ledger.migration import (
    LegacyMigration,
    attach_legacy_deliverable,
    migrate_transactions,
)
from grantledger.models.snapshot import ENTITY_MODELS, EntityKind, LedgerSnapshot


DIAGNOSTIC_WRAPPER_KEY = "appState"
LEGACY_TRANSACTIONS_KEY = "transactions"

_ADAPTERS = {kind: TypeAdapter(list[model]) for kind, model in ENTITY_MODELS.items()}


class KindMergeReport(BaseModel):
    """Outcome of merging one collection."""

    model_config = ConfigDict(frozen=True)

    kind: EntityKind
    inserted: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MergeResult(BaseModel):
    """The merged ledger plus what happened to each kind."""

    snapshot: LedgerSnapshot
    reports: dict[EntityKind, KindMergeReport] = Field(default_factory=dict)
    migrated_transactions: int = 0
    skipped_transactions: int = 0

    @property
    def inserted(self) -> dict[str, int]:
        return {kind.value: r.inserted for kind, r in self.reports.items()}

    @property
    def skipped(self) -> dict[str, int]:
        return {kind.value: r.skipped for kind, r in self.reports.items()}

    @property
    def failed_kinds(self) -> list[EntityKind]:
        return [kind for kind, r in self.reports.items() if not r.ok]

    @property
    def changed(self) -> bool:
        return any(r.inserted for r in self.reports.values())


def _describe(e: PydanticValidationError) -> str:
    first = e.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{e.error_count()} invalid value(s); first at {location}: {first['msg']}"


def _unwrap(incoming: Any) -> Mapping:
    if isinstance(incoming, LedgerSnapshot):
        return incoming.model_dump(by_alias=True)
    if not isinstance(incoming, Mapping):
        raise ValidationError(["file"], "Import data must be a JSON object")
    wrapped = incoming.get(DIAGNOSTIC_WRAPPER_KEY)
    if isinstance(wrapped, Mapping):
        return wrapped
    return incoming


def _merge_items(existing: list, additions: list) -> tuple[list, int, int]:
    merged = list(existing)
    seen = {item.id for item in existing}
    inserted = skipped = 0
    for item in additions:
        if item.id in seen:
            skipped += 1
            continue
        seen.add(item.id)
        merged.append(item)
        inserted += 1
    return merged, inserted, skipped


def merge(current: LedgerSnapshot, incoming: Any) -> MergeResult:
    """
    Merge incoming data into a copy of current.

    Args:
        current: The ledger as it is now
        incoming: Decoded JSON (a backup, a diagnostic report with an
                 appState wrapper, or a legacy file with transactions),
                 or a LedgerSnapshot

    Raises:
        ValidationError: If incoming is not an object at all
    """
    data = _unwrap(incoming)
    merged = current.model_copy(deep=True)
    reports: dict[EntityKind, KindMergeReport] = {}

    migration: Optional[LegacyMigration] = None
    migration_error: Optional[str] = None
    legacy_rows = data.get(LEGACY_TRANSACTIONS_KEY)
    if legacy_rows:
        try:
            if not isinstance(legacy_rows, list):
                raise TypeError("transactions must be a list")
            migration = migrate_transactions(legacy_rows)
        except PydanticValidationError as e:
            migration_error = f"legacy transactions: {_describe(e)}"
        except TypeError as e:
            migration_error = str(e)

    for kind in EntityKind:
        raw = data.get(kind.value)
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            reports[kind] = KindMergeReport(kind=kind, error=f"{kind.value} must be a list")
            continue

        try:
            additions = _ADAPTERS[kind].validate_python(raw)
        except PydanticValidationError as e:
            reports[kind] = KindMergeReport(kind=kind, error=_describe(e))
            continue

        if kind == EntityKind.EXPENDITURES:
            if migration_error:
                reports[kind] = KindMergeReport(kind=kind, error=migration_error)
                continue
            if migration is not None:
                additions = additions + migration.expenditures

        items, inserted, skipped = _merge_items(merged.collection(kind), additions)
        merged = merged.with_collection(kind, items)
        reports[kind] = KindMergeReport(kind=kind, inserted=inserted, skipped=skipped)

    if migration is not None and reports[EntityKind.EXPENDITURES].ok:
        # Migrated expenditures need their budget lines on whichever
        # grant won the merge
        grants = [
            attach_legacy_deliverable(g, migration.deliverables[g.id])
            if g.id in migration.deliverables else g
            for g in merged.grants
        ]
        merged = merged.with_collection(EntityKind.GRANTS, grants)

    return MergeResult(
        snapshot=merged,
        reports=reports,
        migrated_transactions=len(migration.expenditures) if migration else 0,
        skipped_transactions=migration.skipped if migration else 0,
    )
