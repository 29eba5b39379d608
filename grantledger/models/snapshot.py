"""
Whole-Ledger Snapshot

The data file, every backup and every import share this one shape:

    { "grants": [...], "expenditures": [...], "templates": [...], "timestamp": ... }

Field order is insignificant. The snapshot is also what the in-memory
store holds, so "what is in memory" and "what is on disk" are always the
same kind of object.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import Field

from grantledger.models.grant import (
    EmailTemplate,
    Expenditure,
    Grant,
    LedgerModel,
)


class EntityKind(str, Enum):
    """The top-level collections of the ledger."""
    GRANTS = "grants"
    EXPENDITURES = "expenditures"
    TEMPLATES = "templates"


ENTITY_MODELS = {
    EntityKind.GRANTS: Grant,
    EntityKind.EXPENDITURES: Expenditure,
    EntityKind.TEMPLATES: EmailTemplate,
}


def default_templates() -> list[EmailTemplate]:
    """Templates every new data file starts with."""
    return [
        EmailTemplate(
            id="t-1",
            title="Grant Kickoff",
            subject="Kickoff: {{GrantName}}",
            body=(
                "Hello team,\n\nWe are excited to begin work on {{GrantName}}. "
                "Please review the budget and deliverables before {{Date}}.\n"
            ),
        ),
        EmailTemplate(
            id="t-2",
            title="Receipt Issue",
            subject="Receipt Issue: {{Vendor}}",
            body=(
                "Hello,\n\nThe receipt submitted for {{Vendor}} under "
                "{{GrantName}} could not be processed. Please send a "
                "corrected copy.\n"
            ),
        ),
    ]


class LedgerSnapshot(LedgerModel):
    """The complete ledger at one point in time."""

    grants: list[Grant] = Field(default_factory=list)
    expenditures: list[Expenditure] = Field(default_factory=list)
    templates: list[EmailTemplate] = Field(default_factory=list)
    timestamp: Optional[dt.datetime] = None

    @classmethod
    def empty(cls) -> "LedgerSnapshot":
        """A brand new ledger, seeded with the default templates."""
        return cls(templates=default_templates())

    def collection(self, kind: EntityKind) -> list:
        return getattr(self, kind.value)

    def with_collection(self, kind: EntityKind, items: list) -> "LedgerSnapshot":
        """Copy of this snapshot with one collection replaced."""
        return self.model_copy(update={kind.value: list(items)})

    def to_json(self) -> str:
        """Serialize as indented, human-diffable UTF-8 JSON."""
        return self.model_dump_json(by_alias=True, indent=2)
