"""
Tests for the allocation calculator

All figures are recomputed from the expenditure list, so these tests
build expenditures directly and never touch a store.
"""

from decimal import Decimal

import pytest

from grantledger.ledger.calculator import (
    category_remaining,
    category_stats,
    deliverable_stats,
    find_orphaned_expenditures,
    grant_breakdown,
    grant_stats,
    orphan_reason,
    sub_recipient_stats,
    to_cents,
)
from grantledger.models import BudgetCategory, Deliverable, Expenditure


def spend(amount, deliverable_id="d1", category_id="c1", grant_id="g1", sub_recipient_id=None):
    return Expenditure(
        grant_id=grant_id,
        sub_recipient_id=sub_recipient_id,
        deliverable_id=deliverable_id,
        category_id=category_id,
        vendor="Vendor",
        amount=Decimal(amount),
    )


class TestRounding:
    """Tests for cent rounding."""

    def test_half_up(self):
        assert to_cents(Decimal("0.005")) == Decimal("0.01")
        assert to_cents(Decimal("2.675")) == Decimal("2.68")

    def test_sums_do_not_drift(self, grant):
        """Ten dimes are exactly a dollar."""
        stats = grant_stats(grant, [spend("0.10") for _ in range(10)])
        assert stats.spent == Decimal("1.00")

    def test_rounding_happens_after_summing(self, grant):
        stats = grant_stats(grant, [spend("0.004"), spend("0.004")])
        assert stats.spent == Decimal("0.01")


class TestGrantStats:
    """Tests for grant-level figures."""

    def test_no_spend(self, grant):
        stats = grant_stats(grant, [])
        assert stats.spent == Decimal("0")
        assert stats.primary_allocated == Decimal("1000")
        assert stats.subs_allocated == Decimal("2000")
        assert stats.unassigned == Decimal("7000")
        assert stats.remaining == Decimal("10000")

    def test_spend_is_additive(self, grant):
        before = grant_stats(grant, [spend("100")])
        after = grant_stats(grant, [spend("100"), spend("250.50")])
        assert after.spent - before.spent == Decimal("250.50")
        assert before.remaining - after.remaining == Decimal("250.50")

    def test_other_grants_ignored(self, grant):
        stats = grant_stats(grant, [spend("100"), spend("900", grant_id="g2")])
        assert stats.spent == Decimal("100")

    def test_sub_recipient_spend_counts_toward_grant(self, grant):
        stats = grant_stats(grant, [spend("40", "d2", "c2", sub_recipient_id="s1")])
        assert stats.spent == Decimal("40")

    def test_over_allocation_goes_negative(self, grant):
        grant.total_award = Decimal("2500")
        assert grant_stats(grant, []).unassigned == Decimal("-500")


class TestDeliverableStats:
    """Tests for deliverable-level figures."""

    def test_unassigned_tracks_category_allocations(self):
        """1000 with 700 assigned leaves 300; adding 400 more goes to -100."""
        deliverable = Deliverable(
            id="d1",
            allocated_value=Decimal("1000"),
            budget_categories=[BudgetCategory(id="c1", allocation=Decimal("700"))],
        )
        assert deliverable_stats(deliverable, []).unassigned == Decimal("300")

        deliverable.budget_categories.append(BudgetCategory(id="c2", allocation=Decimal("400")))
        stats = deliverable_stats(deliverable, [])
        assert stats.allocated_to_categories == Decimal("1100")
        assert stats.unassigned == Decimal("-100")

    def test_remaining_after_spend(self, grant):
        deliverable = grant.deliverables[0]
        stats = deliverable_stats(deliverable, [spend("150"), spend("50", category_id="other")])
        assert stats.spent == Decimal("200")
        assert stats.remaining == Decimal("800")


class TestCategoryStats:
    """Category ids are only unique within a deliverable."""

    def test_joint_key(self):
        expenditures = [
            spend("10", deliverable_id="d1", category_id="c1"),
            spend("99", deliverable_id="d9", category_id="c1"),
        ]
        assert category_stats("c1", "d1", expenditures).spent == Decimal("10")
        assert category_stats("c1", "d9", expenditures).spent == Decimal("99")

    def test_category_remaining_can_go_negative(self, grant):
        category = grant.deliverables[0].budget_categories[0]
        assert category_remaining(category, "d1", [spend("750")]) == Decimal("-50")


class TestSubRecipientStats:
    """Tests for sub-recipient figures."""

    def test_only_own_spend_counts(self, grant):
        sub = grant.sub_recipients[0]
        expenditures = [
            spend("300", "d2", "c2", sub_recipient_id="s1"),
            spend("100"),
            spend("500", "d2", "c2", grant_id="g2", sub_recipient_id="s1"),
        ]
        stats = sub_recipient_stats(sub, "g1", expenditures)
        assert stats.spent == Decimal("300")
        assert stats.allocated_to_deliverables == Decimal("1500")
        assert stats.unassigned == Decimal("500")
        assert stats.remaining == Decimal("1700")


class TestGrantBreakdown:
    """Tests for the nested dashboard view."""

    def test_breakdown_matches_individual_figures(self, grant):
        expenditures = [spend("100"), spend("40", "d2", "c2", sub_recipient_id="s1")]
        breakdown = grant_breakdown(grant, expenditures)

        assert breakdown.stats == grant_stats(grant, expenditures)
        primary = breakdown.deliverables[0]
        assert primary.categories[0].spent == Decimal("100")
        assert primary.categories[0].remaining == Decimal("600")

        sub = breakdown.sub_recipients[0]
        assert sub.stats.spent == Decimal("40")
        assert sub.deliverables[0].stats.remaining == Decimal("1460")

    def test_breakdown_is_frozen(self, grant):
        breakdown = grant_breakdown(grant, [])
        with pytest.raises(ValueError):
            breakdown.stats = None


class TestOrphans:
    """Expenditures whose budget lines have been deleted."""

    def test_resolving_expenditure(self, grant):
        assert orphan_reason([grant], spend("1")) is None
        assert orphan_reason([grant], spend("1", "d2", "c2", sub_recipient_id="s1")) is None

    @pytest.mark.parametrize("expenditure,reason", [
        (spend("1", grant_id="gone"), "grant"),
        (spend("1", deliverable_id="gone"), "deliverable"),
        (spend("1", category_id="gone"), "category"),
        (spend("1", sub_recipient_id="s1"), "sub_recipient"),
    ])
    def test_orphan_reasons(self, grant, expenditure, reason):
        assert orphan_reason([grant], expenditure) == reason

    def test_orphans_still_count(self, grant):
        """Deleting a category does not remove its spend from the deliverable."""
        expenditure = spend("75")
        grant.deliverables[0].budget_categories.clear()

        assert find_orphaned_expenditures([grant], [expenditure]) == [expenditure]
        assert deliverable_stats(grant.deliverables[0], [expenditure]).spent == Decimal("75")
