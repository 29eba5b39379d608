"""
Core Data Models for Grant Ledger

These models define the schemas for everything the ledger stores:
grants and their budget hierarchy, expenditures, and email templates.

They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the same camelCase JSON the desktop app has always written,
   so old backups load without conversion
4. Keep money in Decimal, never float

DESIGN DECISION: Amounts are stored exactly as entered. Rounding to cents
happens only where totals are produced (see ledger.calculator).
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Iterator, Optional
from uuid import uuid4

from pydantic import (
    BeforeValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


INTERNAL_TRANSFER_VENDOR = "Internal Transfer"
SYSTEM_PURCHASER = "System"


def new_id() -> str:
    """Generate a fresh opaque entity id."""
    return str(uuid4())


class LedgerModel(BaseModel):
    """
    Base for every stored entity.

    Python code uses snake_case; the data file uses camelCase.
    Unknown keys from older app versions are ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


# Form fields and older data files use "" for "not set"
OptionalDate = Annotated[Optional[dt.date], BeforeValidator(_blank_to_none)]
OptionalId = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
OptionalAmount = Annotated[Optional[Decimal], BeforeValidator(_blank_to_none)]


# =============================================================================
# ENUMS
# =============================================================================

class GrantStatus(str, Enum):
    """Lifecycle of a grant award."""
    DRAFT = "Draft"
    PENDING = "Pending"
    ACTIVE = "Active"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class DeliverableStatus(str, Enum):
    """Progress of a deliverable."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DEFERRED = "Deferred"


class FundingSource(str, Enum):
    """Where the money for an expenditure came from."""
    GRANT = "Grant"
    MATCH = "Match"
    THIRD_PARTY = "Third-Party"


class ExpenditureStatus(str, Enum):
    """Review status of an expenditure."""
    PENDING = "Pending"
    APPROVED = "Approved"
    FLAGGED = "Flagged"


class EntryKind(str, Enum):
    """
    How an expenditure came to exist.

    INDIRECT_COST_RECOVERY entries are derived from another expenditure
    and always carry source_expenditure_id.
    """
    MANUAL = "Manual"
    INDIRECT_COST_RECOVERY = "IndirectCostRecovery"


class ReportType(str, Enum):
    FINANCIAL = "Financial"
    PROGRAMMATIC = "Programmatic"
    AUDIT = "Audit"
    OTHER = "Other"


class ReportStatus(str, Enum):
    PENDING = "Pending"
    SUBMITTED = "Submitted"
    OVERDUE = "Overdue"
    ACCEPTED = "Accepted"


# =============================================================================
# BUDGET HIERARCHY
# =============================================================================

class BudgetCategory(LedgerModel):
    """Line-item bucket within a deliverable. Expenditures post here."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    allocation: Decimal = Field(default=Decimal("0"), ge=0)
    purpose: str = ""


class Deliverable(LedgerModel):
    """
    A budgeted work item under a grant (primary activity) or under a
    sub-recipient (community activity).
    """

    id: str = Field(default_factory=new_id)
    section_reference: str = ""
    description: str = ""
    allocated_value: Decimal = Field(default=Decimal("0"), ge=0)
    due_date: OptionalDate = None
    status: DeliverableStatus = DeliverableStatus.PENDING
    budget_categories: list[BudgetCategory] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        """Older data files used "Delayed" for what is now "Deferred"."""
        if v == "Delayed":
            return DeliverableStatus.DEFERRED
        return v

    def find_category(self, category_id: str) -> Optional[BudgetCategory]:
        for category in self.budget_categories:
            if category.id == category_id:
                return category
        return None


class SubRecipient(LedgerModel):
    """A community partner receiving a carved-out share of a grant."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    allocated_amount: Decimal = Field(default=Decimal("0"), ge=0)
    deliverables: list[Deliverable] = Field(default_factory=list)


class ComplianceReport(LedgerModel):
    """A reporting obligation owed to the funder."""

    id: str = Field(default_factory=new_id)
    title: str = ""
    due_date: OptionalDate = None
    submitted_date: OptionalDate = None
    report_type: ReportType = Field(default=ReportType.OTHER, alias="type")
    status: ReportStatus = ReportStatus.PENDING
    comments: Optional[str] = None
    attachment_path: Optional[str] = None


class GrantAuditEntry(LedgerModel):
    """One line of a grant's human-readable change history."""

    date: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))
    user: str = Field(default="System")
    action: str
    details: str = ""


class Grant(LedgerModel):
    """
    A funding award.

    Owns its deliverables and sub-recipients exclusively.
    """

    id: str = Field(default_factory=new_id)
    name: str = ""
    funder: str = ""
    purpose: str = ""
    total_award: Decimal = Field(default=Decimal("0"), ge=0)
    indirect_cost_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Percentage, e.g. 10 for 10%"
    )
    required_match_amount: Decimal = Field(default=Decimal("0"), ge=0)
    start_date: OptionalDate = None
    end_date: OptionalDate = None
    status: GrantStatus = GrantStatus.DRAFT
    deliverables: list[Deliverable] = Field(default_factory=list)
    sub_recipients: list[SubRecipient] = Field(default_factory=list)
    reports: list[ComplianceReport] = Field(default_factory=list)
    attachments: list[str] = Field(default_factory=list)
    audit_log: list[GrantAuditEntry] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_dates(self) -> 'Grant':
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("Grant end date cannot be before start date")
        return self

    def iter_deliverables(self) -> Iterator[tuple[Optional[SubRecipient], Deliverable]]:
        """Yield (owning sub-recipient or None, deliverable) for every deliverable."""
        for deliverable in self.deliverables:
            yield None, deliverable
        for sub in self.sub_recipients:
            for deliverable in sub.deliverables:
                yield sub, deliverable

    def find_deliverable(
        self,
        deliverable_id: str,
    ) -> Optional[tuple[Optional[SubRecipient], Deliverable]]:
        for owner, deliverable in self.iter_deliverables():
            if deliverable.id == deliverable_id:
                return owner, deliverable
        return None

    def find_sub_recipient(self, sub_recipient_id: str) -> Optional[SubRecipient]:
        for sub in self.sub_recipients:
            if sub.id == sub_recipient_id:
                return sub
        return None


# =============================================================================
# EXPENDITURES
# =============================================================================

class Expenditure(LedgerModel):
    """
    A single recorded spend event.

    References its grant, sub-recipient, deliverable and category by id
    only. Deleting any of those does not delete the expenditure.
    """

    id: str = Field(default_factory=new_id)
    grant_id: str = Field(..., min_length=1)
    sub_recipient_id: OptionalId = None
    deliverable_id: str = Field(..., min_length=1)
    category_id: str = Field(..., min_length=1)
    date: dt.date = Field(default_factory=dt.date.today)
    vendor: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    purchaser: str = ""
    justification: str = ""
    notes: str = ""
    funding_source: FundingSource = FundingSource.GRANT
    status: ExpenditureStatus = ExpenditureStatus.APPROVED
    receipt_url: Optional[str] = None
    entry_kind: EntryKind = EntryKind.MANUAL
    source_expenditure_id: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        """The first release recorded rejected receipts as "Rejected"."""
        if v == "Rejected":
            return ExpenditureStatus.FLAGGED
        return v

    @model_validator(mode="before")
    @classmethod
    def map_legacy_indirect_flag(cls, data):
        """Older files marked overhead charges with a bare isIndirectCost flag."""
        if isinstance(data, dict) and data.get("isIndirectCost") and not (
            data.get("entryKind") or data.get("entry_kind")
        ):
            data = {**data, "entryKind": EntryKind.INDIRECT_COST_RECOVERY.value}
        return data

    @property
    def is_indirect_cost(self) -> bool:
        """
        True for indirect-cost-recovery entries.

        Entries written before EntryKind existed are recognised by the
        "Internal Transfer" vendor convention.
        """
        return (
            self.entry_kind == EntryKind.INDIRECT_COST_RECOVERY
            or self.vendor == INTERNAL_TRANSFER_VENDOR
        )


class ExpenditureDraft(LedgerModel):
    """
    A PROPOSED expenditure, as collected from a form or a receipt scan.

    CRITICAL: Nothing here is trusted. Every field may be blank so the
    poster can report exactly which required fields are missing.
    """

    grant_id: str = ""
    sub_recipient_id: OptionalId = None
    deliverable_id: str = ""
    category_id: str = ""
    date: OptionalDate = None
    vendor: str = ""
    amount: OptionalAmount = None
    purchaser: str = ""
    justification: str = ""
    notes: str = ""
    funding_source: FundingSource = FundingSource.GRANT
    status: Optional[ExpenditureStatus] = None
    receipt_url: OptionalId = None

    def missing_fields(self) -> list[str]:
        """Required fields that are blank or invalid, in form order."""
        missing = []
        for name in ("grant_id", "deliverable_id", "category_id", "vendor"):
            if not getattr(self, name):
                missing.append(name)
        if self.amount is None or self.amount <= 0:
            missing.append("amount")
        return missing


# =============================================================================
# COMMUNICATION
# =============================================================================

class EmailTemplate(LedgerModel):
    """
    Reusable email with {{GrantName}}, {{Vendor}} and {{Date}} placeholders.
    """

    id: str = Field(default_factory=new_id)
    title: str = ""
    subject: str = ""
    body: str = ""

    def render(
        self,
        grant_name: Optional[str] = None,
        vendor: Optional[str] = None,
        on: Optional[dt.date] = None,
    ) -> tuple[str, str]:
        """Return (subject, body) with placeholders filled in."""
        values = {
            "{{GrantName}}": grant_name or "[GRANT NAME]",
            "{{Vendor}}": vendor or "[VENDOR NAME]",
            "{{Date}}": (on or dt.date.today()).strftime("%m/%d/%Y"),
        }
        subject, body = self.subject, self.body
        for placeholder, value in values.items():
            subject = subject.replace(placeholder, value)
            body = body.replace(placeholder, value)
        return subject, body
