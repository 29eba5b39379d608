"""
Expenditure Poster

Applies new and edited expenditures to the ledger.

FLOW for post_expenditure:
1. Stage 1 validation: required fields (nothing is written on failure)
2. Resolve grant -> deliverable -> category in the store
3. Build the expenditure (fresh id, default status and date)
4. Stage 2 validation: warnings only
5. Persist the primary expenditure
6. Optionally persist the indirect-cost-recovery (IDC) entry
7. Return the posted entries with the recomputed grant figures

DESIGN DECISION: There is no multi-entity transaction. The primary is
durably saved BEFORE the IDC entry is attempted, so a partial failure
only ever loses the derived entry. When that happens the caller gets a
PartialPostingError carrying the primary that was saved.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from grantledger.audit import AuditLogger, create_correlation_id
from grantledger.errors import (
    NotFoundError,
    PartialPostingError,
    PersistenceError,
    ValidationError,
)
from grantledger.ledger.calculator import (
    GrantStats,
    category_remaining,
    grant_stats,
    to_cents,
)
from grantledger.models.audit import AuditEventType
from grantledger.models.grant import (
    INTERNAL_TRANSFER_VENDOR,
    SYSTEM_PURCHASER,
    EntryKind,
    Expenditure,
    ExpenditureDraft,
    ExpenditureStatus,
    FundingSource,
    Grant,
)
from grantledger.models.snapshot import EntityKind
from grantledger.services.storage import LedgerStoreInterface
from grantledger.validation import ExpenditureValidator


class PostingOptions(BaseModel):
    """Caller choices that are not part of the expenditure itself."""

    apply_indirect_cost: bool = Field(
        default=False,
        description="Also post the grant's indirect cost recovery for this expenditure"
    )


class PostingResult(BaseModel):
    """What one post_expenditure call wrote, and the grant's new figures."""

    expenditure: Expenditure
    indirect_cost: Optional[Expenditure] = None
    warnings: list[str] = Field(default_factory=list)
    grant_stats: GrantStats


def indirect_cost_amount(amount: Decimal, rate: Decimal) -> Decimal:
    """IDC charge for an amount at a percentage rate, rounded to cents."""
    return to_cents(amount * rate / Decimal("100"))


def _idc_applies(grant: Grant, expenditure: Expenditure, options: PostingOptions) -> bool:
    return (
        options.apply_indirect_cost
        and grant.indirect_cost_rate > 0
        and expenditure.funding_source == FundingSource.GRANT
    )


class ExpenditurePoster:
    """
    Posts, edits and deletes expenditures.

    Usage:
        poster = ExpenditurePoster(store)
        result = await poster.post_expenditure(draft, PostingOptions(apply_indirect_cost=True))
    """

    def __init__(
        self,
        store: LedgerStoreInterface,
        validator: Optional[ExpenditureValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or ExpenditureValidator()
        self._audit = audit_logger or AuditLogger()

    async def _check_required(self, draft: ExpenditureDraft, correlation_id) -> None:
        result = self._validator.validate_schema(draft)
        if result.has_errors:
            await self._audit.log_expenditure_rejected(result.error_fields, correlation_id)
            raise ValidationError(result.error_fields)

    async def _resolve(self, draft: ExpenditureDraft):
        """
        Look up the grant, the deliverable's owner and the category.

        Returns (grant, sub_recipient_id, category).
        """
        grant = await self._store.get(EntityKind.GRANTS, draft.grant_id)

        found = grant.find_deliverable(draft.deliverable_id)
        if found is None:
            raise NotFoundError("deliverable", draft.deliverable_id)
        owner, deliverable = found

        category = deliverable.find_category(draft.category_id)
        if category is None:
            raise NotFoundError("category", draft.category_id)

        if draft.sub_recipient_id:
            if owner is None or owner.id != draft.sub_recipient_id:
                raise ValidationError(
                    ["sub_recipient_id"],
                    f"Deliverable {deliverable.id} does not belong to "
                    f"sub-recipient {draft.sub_recipient_id}",
                )
        sub_recipient_id = owner.id if owner is not None else None

        return grant, sub_recipient_id, category

    async def _save(self, expenditure: Expenditure, correlation_id) -> None:
        try:
            await self._store.put(EntityKind.EXPENDITURES, expenditure)
        except PersistenceError as e:
            await self._audit.log_persistence_failed(e.operation, str(e), correlation_id)
            raise

    async def post_expenditure(
        self,
        draft: ExpenditureDraft,
        options: Optional[PostingOptions] = None,
    ) -> PostingResult:
        """
        Validate and persist a proposed expenditure.

        Raises:
            ValidationError: Required fields missing; nothing was written
            NotFoundError: Grant, deliverable or category does not exist
            PersistenceError: The primary expenditure could not be saved
            PartialPostingError: The primary was saved, the IDC entry was not
        """
        options = options or PostingOptions()
        correlation_id = create_correlation_id()

        await self._check_required(draft, correlation_id)
        grant, sub_recipient_id, category = await self._resolve(draft)

        expenditure = Expenditure(
            grant_id=draft.grant_id,
            sub_recipient_id=sub_recipient_id,
            deliverable_id=draft.deliverable_id,
            category_id=draft.category_id,
            date=draft.date or date.today(),
            vendor=draft.vendor,
            amount=draft.amount,
            purchaser=draft.purchaser,
            justification=draft.justification,
            notes=draft.notes,
            funding_source=draft.funding_source,
            status=draft.status or ExpenditureStatus.APPROVED,
            receipt_url=draft.receipt_url,
        )

        existing = await self._store.list(EntityKind.EXPENDITURES)
        checks = self._validator.validate(
            expenditure,
            existing=existing,
            category_remaining=category_remaining(category, expenditure.deliverable_id, existing),
            category_name=category.name,
        )

        await self._save(expenditure, correlation_id)
        await self._audit.log_expenditure_posted(expenditure, correlation_id)

        indirect = None
        if _idc_applies(grant, expenditure, options):
            indirect = await self._post_indirect_cost(grant, expenditure, correlation_id)

        return PostingResult(
            expenditure=expenditure,
            indirect_cost=indirect,
            warnings=checks.warnings,
            grant_stats=grant_stats(grant, await self._store.list(EntityKind.EXPENDITURES)),
        )

    async def _post_indirect_cost(
        self,
        grant: Grant,
        primary: Expenditure,
        correlation_id,
    ) -> Optional[Expenditure]:
        amount = indirect_cost_amount(primary.amount, grant.indirect_cost_rate)
        if amount <= 0:
            return None

        indirect = Expenditure(
            grant_id=primary.grant_id,
            sub_recipient_id=primary.sub_recipient_id,
            deliverable_id=primary.deliverable_id,
            category_id=primary.category_id,
            date=primary.date,
            vendor=INTERNAL_TRANSFER_VENDOR,
            amount=amount,
            purchaser=SYSTEM_PURCHASER,
            justification=(
                f"Indirect cost recovery ({grant.indirect_cost_rate}%) "
                f"for expenditure {primary.id}"
            ),
            funding_source=FundingSource.GRANT,
            status=ExpenditureStatus.APPROVED,
            entry_kind=EntryKind.INDIRECT_COST_RECOVERY,
            source_expenditure_id=primary.id,
        )

        try:
            await self._store.put(EntityKind.EXPENDITURES, indirect)
        except PersistenceError as e:
            await self._audit.log_indirect_cost_failed(primary.id, str(e), correlation_id)
            raise PartialPostingError(
                f"post indirect cost for expenditure {primary.id}",
                f"expenditure {primary.id} was saved but its indirect cost entry was not ({e})",
                primary,
            ) from e

        await self._audit.log_indirect_cost_posted(
            indirect,
            rate=str(grant.indirect_cost_rate),
            correlation_id=correlation_id,
        )
        return indirect

    async def update_expenditure(
        self,
        expenditure_id: str,
        replacement: Expenditure,
    ) -> Expenditure:
        """
        Replace a stored expenditure wholesale.

        Linked IDC entries are not recalculated.

        Raises:
            NotFoundError: No expenditure has that id
            ValidationError: The replacement has a different id or is
                            missing a required field
            PersistenceError: The write failed
        """
        correlation_id = create_correlation_id()
        await self._store.get(EntityKind.EXPENDITURES, expenditure_id)

        if replacement.id != expenditure_id:
            raise ValidationError(
                ["id"],
                f"Replacement id {replacement.id} does not match {expenditure_id}",
            )
        await self._check_required(
            ExpenditureDraft.model_validate(replacement.model_dump()),
            correlation_id,
        )

        await self._save(replacement, correlation_id)
        await self._audit.log_entity_changed(
            AuditEventType.EXPENDITURE_UPDATED,
            "expenditure",
            expenditure_id,
            f"Expenditure updated: {replacement.vendor} - ${replacement.amount}",
            correlation_id=correlation_id,
        )
        return replacement

    async def delete_expenditure(self, expenditure_id: str) -> None:
        """
        Delete an expenditure by id.

        Derived IDC entries stay in place; find them with
        indirect_entries_for() if they should go too.
        """
        if not await self._store.delete(EntityKind.EXPENDITURES, expenditure_id):
            raise NotFoundError("expenditure", expenditure_id)
        await self._audit.log_entity_changed(
            AuditEventType.EXPENDITURE_DELETED,
            "expenditure",
            expenditure_id,
            "Expenditure deleted",
        )

    async def indirect_entries_for(self, expenditure_id: str) -> list[Expenditure]:
        """IDC entries that were derived from the given expenditure."""
        return [
            e for e in await self._store.list(EntityKind.EXPENDITURES)
            if e.entry_kind == EntryKind.INDIRECT_COST_RECOVERY
            and e.source_expenditure_id == expenditure_id
        ]
