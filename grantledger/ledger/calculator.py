"""
Allocation Calculator

Pure functions that derive spent, remaining and unassigned balances for
each level of the budget hierarchy:

    Grant -> SubRecipient -> Deliverable -> BudgetCategory

DESIGN DECISION: Nothing here is cached or stored. Every figure is
recomputed from the full expenditure list, so an expenditure counts
toward exactly the grant, sub-recipient, deliverable and category its
ids point at, and nowhere else.

Sums are exact Decimal sums; rounding to cents happens once, on the
way out. Negative unassigned/remaining values are a valid
over-allocation or overspend signal and are never clamped.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

from grantledger.models.grant import (
    BudgetCategory,
    Deliverable,
    Expenditure,
    Grant,
    SubRecipient,
)


CENT = Decimal("0.01")


def to_cents(value: Decimal) -> Decimal:
    """Round to two decimal places, half up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0"))


class _Stats(BaseModel):
    model_config = ConfigDict(frozen=True)


class GrantStats(_Stats):
    spent: Decimal
    primary_allocated: Decimal
    subs_allocated: Decimal
    unassigned: Decimal = Field(description="Award not yet given to a deliverable or sub-recipient")
    remaining: Decimal = Field(description="Award not yet spent")


class SubRecipientStats(_Stats):
    spent: Decimal
    allocated_to_deliverables: Decimal
    unassigned: Decimal
    remaining: Decimal


class DeliverableStats(_Stats):
    spent: Decimal
    allocated_to_categories: Decimal
    remaining: Decimal
    unassigned: Decimal


class CategoryStats(_Stats):
    spent: Decimal


def grant_stats(grant: Grant, expenditures: Iterable[Expenditure]) -> GrantStats:
    spent = _sum(e.amount for e in expenditures if e.grant_id == grant.id)
    primary_allocated = _sum(d.allocated_value for d in grant.deliverables)
    subs_allocated = _sum(s.allocated_amount for s in grant.sub_recipients)
    return GrantStats(
        spent=to_cents(spent),
        primary_allocated=to_cents(primary_allocated),
        subs_allocated=to_cents(subs_allocated),
        unassigned=to_cents(grant.total_award - primary_allocated - subs_allocated),
        remaining=to_cents(grant.total_award - spent),
    )


def sub_recipient_stats(
    sub: SubRecipient,
    grant_id: str,
    expenditures: Iterable[Expenditure],
) -> SubRecipientStats:
    """Sub-recipient ids are only unique within a grant, hence grant_id."""
    spent = _sum(
        e.amount for e in expenditures
        if e.grant_id == grant_id and e.sub_recipient_id == sub.id
    )
    allocated = _sum(d.allocated_value for d in sub.deliverables)
    return SubRecipientStats(
        spent=to_cents(spent),
        allocated_to_deliverables=to_cents(allocated),
        unassigned=to_cents(sub.allocated_amount - allocated),
        remaining=to_cents(sub.allocated_amount - spent),
    )


def deliverable_stats(
    deliverable: Deliverable,
    expenditures: Iterable[Expenditure],
) -> DeliverableStats:
    spent = _sum(e.amount for e in expenditures if e.deliverable_id == deliverable.id)
    allocated = _sum(c.allocation for c in deliverable.budget_categories)
    return DeliverableStats(
        spent=to_cents(spent),
        allocated_to_categories=to_cents(allocated),
        remaining=to_cents(deliverable.allocated_value - spent),
        unassigned=to_cents(deliverable.allocated_value - allocated),
    )


def category_stats(
    category_id: str,
    deliverable_id: str,
    expenditures: Iterable[Expenditure],
) -> CategoryStats:
    """
    Spend against one category of one deliverable.

    Both ids are needed: category ids are not unique across deliverables.
    """
    spent = _sum(
        e.amount for e in expenditures
        if e.category_id == category_id and e.deliverable_id == deliverable_id
    )
    return CategoryStats(spent=to_cents(spent))


def category_remaining(
    category: BudgetCategory,
    deliverable_id: str,
    expenditures: Iterable[Expenditure],
) -> Decimal:
    spent = category_stats(category.id, deliverable_id, expenditures).spent
    return to_cents(category.allocation - spent)


# =============================================================================
# DISPLAY TREE
# =============================================================================

class CategoryBreakdown(_Stats):
    category: BudgetCategory
    spent: Decimal
    remaining: Decimal


class DeliverableBreakdown(_Stats):
    deliverable: Deliverable
    stats: DeliverableStats
    categories: list[CategoryBreakdown]


class SubRecipientBreakdown(_Stats):
    sub_recipient: SubRecipient
    stats: SubRecipientStats
    deliverables: list[DeliverableBreakdown]


class GrantBreakdown(_Stats):
    grant: Grant
    stats: GrantStats
    deliverables: list[DeliverableBreakdown]
    sub_recipients: list[SubRecipientBreakdown]


def _deliverable_breakdown(
    deliverable: Deliverable,
    expenditures: list[Expenditure],
) -> DeliverableBreakdown:
    categories = []
    for category in deliverable.budget_categories:
        spent = category_stats(category.id, deliverable.id, expenditures).spent
        categories.append(CategoryBreakdown(
            category=category,
            spent=spent,
            remaining=to_cents(category.allocation - spent),
        ))
    return DeliverableBreakdown(
        deliverable=deliverable,
        stats=deliverable_stats(deliverable, expenditures),
        categories=categories,
    )


def grant_breakdown(grant: Grant, expenditures: Iterable[Expenditure]) -> GrantBreakdown:
    """Every figure for one grant, nested the way a dashboard shows it."""
    # Only this grant's spend can land anywhere in its tree
    own = [e for e in expenditures if e.grant_id == grant.id]
    return GrantBreakdown(
        grant=grant,
        stats=grant_stats(grant, own),
        deliverables=[_deliverable_breakdown(d, own) for d in grant.deliverables],
        sub_recipients=[
            SubRecipientBreakdown(
                sub_recipient=sub,
                stats=sub_recipient_stats(sub, grant.id, own),
                deliverables=[_deliverable_breakdown(d, own) for d in sub.deliverables],
            )
            for sub in grant.sub_recipients
        ],
    )


# =============================================================================
# ORPHANS
# =============================================================================

def orphan_reason(grants: Iterable[Grant], expenditure: Expenditure) -> Optional[str]:
    """Why an expenditure no longer resolves, or None if it does."""
    grant = next((g for g in grants if g.id == expenditure.grant_id), None)
    if grant is None:
        return "grant"
    found = grant.find_deliverable(expenditure.deliverable_id)
    if found is None:
        return "deliverable"
    owner, deliverable = found
    if expenditure.sub_recipient_id and (owner is None or owner.id != expenditure.sub_recipient_id):
        return "sub_recipient"
    if deliverable.find_category(expenditure.category_id) is None:
        return "category"
    return None


def find_orphaned_expenditures(
    grants: Iterable[Grant],
    expenditures: Iterable[Expenditure],
) -> list[Expenditure]:
    """
    Expenditures whose grant, deliverable or category has been deleted.

    They still count toward whatever ids they carry; this only makes
    them discoverable.
    """
    grants = list(grants)
    return [e for e in expenditures if orphan_reason(grants, e) is not None]
