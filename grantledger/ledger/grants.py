"""
Grant & Budget Editing

Creates, amends and deletes grants and email templates.

DESIGN DECISION: Deleting a grant never touches its expenditures. They
stay in the ledger as orphans (still counted under the ids they carry)
and can be listed with orphaned_expenditures(). Nothing is silently lost.

Changes to a grant's award, indirect rate or status are written into the
grant's own audit_log so the history travels with the grant in every
backup.
"""

from decimal import Decimal
from typing import Optional

from grantledger.audit import AuditLogger
from grantledger.errors import NotFoundError, ValidationError
from grantledger.ledger.calculator import find_orphaned_expenditures
from grantledger.ledger.reporting import format_usd
from grantledger.models.audit import AuditEventType
from grantledger.models.grant import (
    BudgetCategory,
    Deliverable,
    EmailTemplate,
    Expenditure,
    Grant,
    GrantAuditEntry,
    GrantStatus,
    SubRecipient,
)
from grantledger.models.snapshot import EntityKind
from grantledger.services.storage import LedgerStoreInterface


def _amendments(before: Grant, after: Grant, user: str) -> list[GrantAuditEntry]:
    entries = []
    if before.total_award != after.total_award:
        entries.append(GrantAuditEntry(
            user=user,
            action="Budget Amended",
            details=(
                f"Changed total award from {format_usd(before.total_award)} "
                f"to {format_usd(after.total_award)}"
            ),
        ))
    if before.indirect_cost_rate != after.indirect_cost_rate:
        entries.append(GrantAuditEntry(
            user=user,
            action="Indirect Rate Changed",
            details=(
                f"Changed indirect cost rate from {before.indirect_cost_rate}% "
                f"to {after.indirect_cost_rate}%"
            ),
        ))
    if before.status != after.status:
        entries.append(GrantAuditEntry(
            user=user,
            action="Status Changed",
            details=f"Changed status from {before.status.value} to {after.status.value}",
        ))
    return entries


class GrantManager:
    """Grant lifecycle on top of the ledger store."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    # -------------------------------------------------------------------------
    # Factories. Nothing is saved until save_grant().
    # -------------------------------------------------------------------------

    @staticmethod
    def new_grant(
        name: str = "",
        funder: str = "",
        total_award: Decimal = Decimal("0"),
        indirect_cost_rate: Decimal = Decimal("0"),
        **fields,
    ) -> Grant:
        fields.setdefault("status", GrantStatus.ACTIVE)
        return Grant(
            name=name,
            funder=funder,
            total_award=total_award,
            indirect_cost_rate=indirect_cost_rate,
            **fields,
        )

    @staticmethod
    def new_deliverable(
        section_reference: str = "",
        description: str = "",
        allocated_value: Decimal = Decimal("0"),
    ) -> Deliverable:
        return Deliverable(
            section_reference=section_reference,
            description=description,
            allocated_value=allocated_value,
        )

    @staticmethod
    def new_category(
        name: str = "",
        allocation: Decimal = Decimal("0"),
        purpose: str = "",
    ) -> BudgetCategory:
        return BudgetCategory(name=name, allocation=allocation, purpose=purpose)

    @staticmethod
    def new_sub_recipient(
        name: str = "",
        allocated_amount: Decimal = Decimal("0"),
    ) -> SubRecipient:
        return SubRecipient(name=name, allocated_amount=allocated_amount)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    async def get_grant(self, grant_id: str) -> Grant:
        return await self._store.get(EntityKind.GRANTS, grant_id)

    async def list_grants(self) -> list[Grant]:
        return await self._store.list(EntityKind.GRANTS)

    async def save_grant(self, grant: Grant, user: str = "User") -> Grant:
        """
        Create or wholly replace a grant.

        Returns the grant as saved, including any audit_log rows added
        for award, rate or status changes.

        Raises:
            ValidationError: If the grant has no name
            PersistenceError: If the write fails
        """
        if not grant.name:
            raise ValidationError(["name"], "Please fill in at least the Grant Name")

        try:
            before = await self._store.get(EntityKind.GRANTS, grant.id)
        except NotFoundError:
            before = None

        grant = grant.model_copy(deep=True)
        amendments = _amendments(before, grant, user) if before else []
        grant.audit_log.extend(amendments)

        await self._store.put(EntityKind.GRANTS, grant)

        await self._audit.log_entity_changed(
            AuditEventType.GRANT_SAVED,
            "grant",
            grant.id,
            f"Grant saved: {grant.name}",
        )
        for entry in amendments:
            if entry.action == "Budget Amended":
                await self._audit.log_entity_changed(
                    AuditEventType.BUDGET_AMENDED,
                    "grant",
                    grant.id,
                    entry.details,
                )
        return grant

    async def delete_grant(self, grant_id: str) -> list[Expenditure]:
        """
        Delete a grant. Its expenditures are kept.

        Returns the expenditures orphaned by the deletion.

        Raises:
            NotFoundError: If no grant has that id
        """
        if not await self._store.delete(EntityKind.GRANTS, grant_id):
            raise NotFoundError("grant", grant_id)

        orphaned = [
            e for e in await self._store.list(EntityKind.EXPENDITURES)
            if e.grant_id == grant_id
        ]
        await self._audit.log_entity_changed(
            AuditEventType.GRANT_DELETED,
            "grant",
            grant_id,
            "Grant deleted",
            details={"orphaned_expenditures": len(orphaned)},
        )
        return orphaned

    async def orphaned_expenditures(self) -> list[Expenditure]:
        """Expenditures whose grant, deliverable or category is gone."""
        snapshot = await self._store.snapshot()
        return find_orphaned_expenditures(snapshot.grants, snapshot.expenditures)


class TemplateManager:
    """Saves and deletes email templates."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    async def list_templates(self) -> list[EmailTemplate]:
        return await self._store.list(EntityKind.TEMPLATES)

    async def save_template(self, template: EmailTemplate) -> EmailTemplate:
        if not template.title:
            raise ValidationError(["title"])
        await self._store.put(EntityKind.TEMPLATES, template)
        await self._audit.log_entity_changed(
            AuditEventType.TEMPLATE_SAVED,
            "template",
            template.id,
            f"Template saved: {template.title}",
        )
        return template

    async def delete_template(self, template_id: str) -> None:
        if not await self._store.delete(EntityKind.TEMPLATES, template_id):
            raise NotFoundError("template", template_id)
        await self._audit.log_entity_changed(
            AuditEventType.TEMPLATE_DELETED,
            "template",
            template_id,
            "Template deleted",
        )
