"""
Legacy Transaction Migration

The first release of the app stored a flat list of "transactions" with a
free-text category and no deliverable. Backups from that release still
turn up in imports.

DESIGN DECISION: Legacy spend is never dropped. Each affected grant gets
a zero-allocation "Legacy Transactions" deliverable with one
zero-allocation category per legacy category name, and every
transaction becomes an ordinary expenditure posted against it. The
migrated spend then shows up as overspend, which is exactly the signal
the grant manager needs to re-budget it.

Ids are derived from the grant id and category name so importing the
same legacy file twice lands on the same deliverable and categories.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from grantledger.models.grant import (
    BudgetCategory,
    Deliverable,
    DeliverableStatus,
    Expenditure,
    ExpenditureStatus,
    Grant,
    LedgerModel,
    OptionalAmount,
    OptionalDate,
    new_id,
)


LEGACY_DELIVERABLE_NAME = "Legacy Transactions"
UNCATEGORIZED = "Uncategorized"


class LegacyTransaction(LedgerModel):
    """A row from the original flat transactions list."""

    id: Optional[str] = None
    grant_id: str = ""
    date: OptionalDate = None
    vendor: str = ""
    amount: OptionalAmount = None
    category: str = ""
    receipt_url: Optional[str] = None
    status: ExpenditureStatus = ExpenditureStatus.APPROVED
    purchaser: str = ""
    notes: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        if v == "Rejected":
            return ExpenditureStatus.FLAGGED
        return v or ExpenditureStatus.APPROVED


class LegacyMigration(BaseModel):
    """Expenditures built from legacy rows and the budget lines they need."""

    expenditures: list[Expenditure] = Field(default_factory=list)
    deliverables: dict[str, Deliverable] = Field(
        default_factory=dict,
        description="Legacy deliverable per grant id"
    )
    skipped: int = 0


def legacy_deliverable_id(grant_id: str) -> str:
    return f"legacy-{grant_id}"


def legacy_category_id(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"legacy-{slug or 'uncategorized'}"


_TRANSACTIONS = TypeAdapter(list[LegacyTransaction])


def migrate_transactions(raw: Iterable[Any]) -> LegacyMigration:
    """
    Convert raw legacy transaction dicts into expenditures.

    Rows without a grant id, a vendor or a positive amount cannot be
    posted and are counted as skipped.

    Raises:
        pydantic.ValidationError: If a row is not a transaction at all
    """
    transactions = _TRANSACTIONS.validate_python(list(raw))
    result = LegacyMigration()

    for tx in transactions:
        if not tx.grant_id or not tx.vendor or tx.amount is None or tx.amount <= 0:
            result.skipped += 1
            continue

        deliverable = result.deliverables.get(tx.grant_id)
        if deliverable is None:
            deliverable = Deliverable(
                id=legacy_deliverable_id(tx.grant_id),
                section_reference="Legacy",
                description=LEGACY_DELIVERABLE_NAME,
                allocated_value=Decimal("0"),
                status=DeliverableStatus.IN_PROGRESS,
            )
            result.deliverables[tx.grant_id] = deliverable

        category_name = tx.category or UNCATEGORIZED
        category_id = legacy_category_id(category_name)
        if deliverable.find_category(category_id) is None:
            deliverable.budget_categories.append(BudgetCategory(
                id=category_id,
                name=category_name,
                allocation=Decimal("0"),
                purpose="Migrated from legacy transactions",
            ))

        result.expenditures.append(Expenditure(
            id=tx.id or new_id(),
            grant_id=tx.grant_id,
            deliverable_id=deliverable.id,
            category_id=category_id,
            date=tx.date or date.today(),
            vendor=tx.vendor,
            amount=tx.amount,
            purchaser=tx.purchaser,
            notes=tx.notes,
            justification="Migrated from legacy transaction",
            status=tx.status,
            receipt_url=tx.receipt_url,
        ))

    return result


def attach_legacy_deliverable(grant: Grant, legacy: Deliverable) -> Grant:
    """
    Copy of the grant with the legacy deliverable present.

    If an earlier import already added it, only the missing categories
    are appended.
    """
    grant = grant.model_copy(deep=True)
    for existing in grant.deliverables:
        if existing.id == legacy.id:
            for category in legacy.budget_categories:
                if existing.find_category(category.id) is None:
                    existing.budget_categories.append(category.model_copy())
            return grant
    grant.deliverables.append(legacy.model_copy(deep=True))
    return grant
