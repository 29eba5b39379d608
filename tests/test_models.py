"""
Tests for Grant Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with scripted external services)
3. No real API calls in tests
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from grantledger.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BudgetCategory,
    ComplianceReport,
    Deliverable,
    DeliverableStatus,
    EmailTemplate,
    EntryKind,
    Expenditure,
    ExpenditureDraft,
    ExpenditureStatus,
    Grant,
    LedgerSnapshot,
    ReportType,
    ValidationIssue,
    ValidationResult,
)
from grantledger.models.audit import DESCRIPTION_LIMIT


class TestGrantModels:
    """Tests for the budget hierarchy."""

    def test_grant_defaults(self):
        """A bare grant gets an id and zero money."""
        grant = Grant(name="Arts Access")
        assert grant.id
        assert grant.total_award == Decimal("0")
        assert grant.deliverables == []

    def test_grant_strips_whitespace(self):
        """Whitespace is stripped from names."""
        grant = Grant(name="  Arts Access  ")
        assert grant.name == "Arts Access"

    def test_grant_end_before_start_rejected(self):
        """End date must not precede start date."""
        with pytest.raises(ValueError, match="end date cannot be before start date"):
            Grant(name="X", start_date=date(2024, 6, 1), end_date=date(2024, 1, 1))

    def test_negative_award_rejected(self):
        """Awards cannot be negative."""
        with pytest.raises(ValueError):
            Grant(name="X", total_award=Decimal("-1"))

    def test_indirect_rate_is_a_percentage(self):
        """Rates above 100 are rejected."""
        with pytest.raises(ValueError):
            Grant(name="X", indirect_cost_rate=Decimal("150"))

    def test_blank_dates_become_none(self):
        """Older files store unset dates as empty strings."""
        grant = Grant.model_validate({"name": "X", "startDate": "", "endDate": ""})
        assert grant.start_date is None
        assert grant.end_date is None

    def test_find_deliverable_reports_owner(self, grant):
        """Sub-recipient deliverables come back with their owner."""
        owner, deliverable = grant.find_deliverable("d2")
        assert owner.id == "s1"
        assert deliverable.description == "Youth stipends"

        owner, deliverable = grant.find_deliverable("d1")
        assert owner is None
        assert grant.find_deliverable("missing") is None

    def test_iter_deliverables_covers_both_levels(self, grant):
        ids = [d.id for _, d in grant.iter_deliverables()]
        assert ids == ["d1", "d2"]

    def test_legacy_deliverable_status(self):
        """"Delayed" from older files maps to Deferred."""
        deliverable = Deliverable.model_validate({"status": "Delayed"})
        assert deliverable.status == DeliverableStatus.DEFERRED

    def test_report_type_alias(self):
        """ComplianceReport.report_type is stored as "type"."""
        report = ComplianceReport.model_validate({"title": "Q1", "type": "Financial"})
        assert report.report_type == ReportType.FINANCIAL
        assert report.model_dump(by_alias=True)["type"] == "Financial"


class TestExpenditureModels:
    """Tests for expenditures and drafts."""

    def _expenditure(self, **overrides):
        fields = {
            "grant_id": "g1",
            "deliverable_id": "d1",
            "category_id": "c1",
            "vendor": "Office Depot",
            "amount": Decimal("42.10"),
        }
        fields.update(overrides)
        return Expenditure(**fields)

    def test_defaults(self):
        """New expenditures are approved, manual and dated today."""
        expenditure = self._expenditure()
        assert expenditure.status == ExpenditureStatus.APPROVED
        assert expenditure.entry_kind == EntryKind.MANUAL
        assert expenditure.date == date.today()
        assert expenditure.is_indirect_cost is False

    def test_amount_must_be_positive(self):
        with pytest.raises(ValueError):
            self._expenditure(amount=Decimal("0"))

    def test_camel_case_round_trip(self):
        """Stored JSON uses camelCase keys and loads back."""
        expenditure = self._expenditure(sub_recipient_id="s1")
        dumped = expenditure.model_dump(by_alias=True, mode="json")
        assert dumped["grantId"] == "g1"
        assert dumped["subRecipientId"] == "s1"
        assert Expenditure.model_validate(dumped) == expenditure

    def test_legacy_rejected_status(self):
        """"Rejected" from the first release maps to Flagged."""
        expenditure = Expenditure.model_validate({
            "grantId": "g1",
            "deliverableId": "d1",
            "categoryId": "c1",
            "vendor": "Staples",
            "amount": 10,
            "status": "Rejected",
        })
        assert expenditure.status == ExpenditureStatus.FLAGGED

    def test_legacy_indirect_flag(self):
        """A bare isIndirectCost flag becomes an IDC entry."""
        expenditure = Expenditure.model_validate({
            "grantId": "g1",
            "deliverableId": "d1",
            "categoryId": "c1",
            "vendor": "Overhead",
            "amount": 5,
            "isIndirectCost": True,
        })
        assert expenditure.entry_kind == EntryKind.INDIRECT_COST_RECOVERY
        assert expenditure.is_indirect_cost is True

    def test_internal_transfer_vendor_is_indirect(self):
        """Entries from before EntryKind are recognised by vendor."""
        expenditure = self._expenditure(vendor="Internal Transfer")
        assert expenditure.is_indirect_cost is True

    def test_draft_missing_fields_in_form_order(self):
        draft = ExpenditureDraft(vendor="  ", amount="")
        assert draft.missing_fields() == [
            "grant_id", "deliverable_id", "category_id", "vendor", "amount",
        ]

    def test_draft_non_positive_amount_is_missing(self):
        draft = ExpenditureDraft(
            grant_id="g1",
            deliverable_id="d1",
            category_id="c1",
            vendor="Staples",
            amount=Decimal("-3"),
        )
        assert draft.missing_fields() == ["amount"]

    def test_complete_draft(self):
        draft = ExpenditureDraft(
            grant_id="g1",
            deliverable_id="d1",
            category_id="c1",
            vendor="Staples",
            amount=Decimal("3"),
        )
        assert draft.missing_fields() == []


class TestEmailTemplate:
    """Tests for template rendering."""

    def test_render_fills_placeholders(self):
        template = EmailTemplate(
            title="Receipt",
            subject="Receipt Issue: {{Vendor}}",
            body="{{GrantName}} on {{Date}} from {{Vendor}}",
        )
        subject, body = template.render("Arts Access", "Staples", date(2024, 3, 9))
        assert subject == "Receipt Issue: Staples"
        assert body == "Arts Access on 03/09/2024 from Staples"

    def test_render_without_values_uses_markers(self):
        template = EmailTemplate(title="T", subject="{{GrantName}}", body="{{Vendor}}")
        subject, body = template.render()
        assert subject == "[GRANT NAME]"
        assert body == "[VENDOR NAME]"


class TestLedgerSnapshot:
    """Tests for the whole-ledger shape."""

    def test_empty_ledger_has_default_templates(self):
        snapshot = LedgerSnapshot.empty()
        assert [t.id for t in snapshot.templates] == ["t-1", "t-2"]
        assert snapshot.grants == []
        assert snapshot.expenditures == []

    def test_to_json_uses_camel_case(self, grant):
        snapshot = LedgerSnapshot(grants=[grant])
        data = json.loads(snapshot.to_json())
        assert set(data) == {"grants", "expenditures", "templates", "timestamp"}
        assert "totalAward" in data["grants"][0]
        assert "subRecipients" in data["grants"][0]

    def test_json_round_trip(self, grant):
        snapshot = LedgerSnapshot(grants=[grant], templates=[EmailTemplate(title="T")])
        assert LedgerSnapshot.model_validate_json(snapshot.to_json()) == snapshot

    def test_unknown_keys_ignored(self):
        snapshot = LedgerSnapshot.model_validate({"grants": [], "theme": "dark"})
        assert snapshot.grants == []

    def test_category_allocation_cannot_be_negative(self):
        with pytest.raises(ValueError):
            BudgetCategory(name="Travel", allocation=Decimal("-5"))

    def test_long_free_text_is_kept(self):
        """Stored text fields have no length ceiling."""
        grant = Grant.model_validate({
            "id": "g1",
            "name": "N" * 300,
            "purpose": "x" * 2500,
            "deliverables": [{"id": "d1", "description": "y" * 1200}],
        })
        assert len(grant.purpose) == 2500
        assert len(grant.deliverables[0].description) == 1200

        expenditure = Expenditure(
            grant_id="g1", deliverable_id="d1", category_id="c1",
            vendor="V" * 250, amount=Decimal("1"),
        )
        assert len(expenditure.vendor) == 250


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.GRANT_SAVED,
            description="Grant saved",
        )
        assert event.event_type == AuditEventType.GRANT_SAVED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENDITURE_POSTED,
            description="Expenditure posted",
            details={"vendor": "Staples", "amount": "10"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "expenditure_posted"
        assert log_dict["details"]["vendor"] == "Staples"

    def test_builder_expenditure_posted(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.expenditure_posted(
            expenditure_id="e1",
            grant_id="g1",
            vendor="Staples",
            amount="10.00",
            correlation_id=correlation_id,
        )
        assert event.entity_id == "e1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_indirect_cost_failed_is_error(self):
        event = AuditEventBuilder.indirect_cost_failed("e1", "disk full")
        assert event.event_type == AuditEventType.INDIRECT_COST_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "disk full"

    def test_builder_receipt_scanned(self):
        assert AuditEventBuilder.receipt_scanned("r1", True).event_type == AuditEventType.RECEIPT_SCANNED
        manual = AuditEventBuilder.receipt_scanned("r1", False)
        assert manual.event_type == AuditEventType.RECEIPT_NEEDS_MANUAL_REVIEW
        assert manual.severity == AuditSeverity.WARNING

    def test_long_description_is_truncated(self):
        """Caller-supplied text never makes an event invalid."""
        event = AuditEventBuilder.entity_changed(
            AuditEventType.BACKUP_EXPORTED, "ledger", "p", "Backup exported to " + "d/" * 400,
        )
        assert len(event.description) == DESCRIPTION_LIMIT
        assert event.description.endswith("...")

    def test_timestamp_is_timezone_aware(self):
        event = AuditEvent(event_type=AuditEventType.GRANT_SAVED, description="Grant saved")
        assert event.timestamp.tzinfo is not None


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            issues=[
                ValidationIssue(
                    field="vendor",
                    issue_type="missing",
                    message="Vendor is required",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_fields == ["vendor"]
        assert result.is_valid is False

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            issues=[
                ValidationIssue(
                    field="date",
                    issue_type="future_date",
                    message="Date in future",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.warnings == ["Date in future"]

    def test_bad_severity_rejected(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
