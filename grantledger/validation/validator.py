"""
Two-Stage Expenditure Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (grant, deliverable, category, vendor)
- Amount must be greater than zero
- Any error here blocks posting and nothing is written

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Unusually large amount detection
- Category overspend
- Vendor sanity checks
- Duplicate detection
- These are warnings. The expenditure is still posted and the
  warnings travel back with it.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for human review.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from grantledger.config import get_settings
from grantledger.models.grant import Expenditure, ExpenditureDraft
from grantledger.models.validation import ValidationIssue, ValidationResult


_FIELD_LABELS = {
    "grant_id": "Grant",
    "deliverable_id": "Deliverable",
    "category_id": "Budget category",
    "vendor": "Vendor",
    "amount": "Amount",
}


class ExpenditureValidator:
    """
    Validates proposed expenditures.

    Stage 1 needs nothing but the draft. Stage 2 is given the current
    expenditures and the target category's remaining balance by the caller.
    """

    def __init__(
        self,
        future_date_tolerance_days: Optional[int] = None,
        large_expenditure_threshold: Optional[Decimal] = None,
    ):
        if future_date_tolerance_days is None or large_expenditure_threshold is None:
            app = get_settings().app
            if future_date_tolerance_days is None:
                future_date_tolerance_days = app.future_date_tolerance_days
            if large_expenditure_threshold is None:
                large_expenditure_threshold = app.large_expenditure_threshold
        self._future_days = future_date_tolerance_days
        self._large_amount = Decimal(large_expenditure_threshold)

    def validate_schema(self, draft: ExpenditureDraft) -> ValidationResult:
        """
        Stage 1: required fields.

        Returns a result whose error_fields name every missing field,
        in form order.
        """
        issues = []
        for name in draft.missing_fields():
            if name == "amount" and draft.amount is not None:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than zero",
                    severity="error",
                    suggested_fix="Check if the amount was entered correctly",
                ))
                continue
            issues.append(ValidationIssue(
                field=name,
                issue_type="missing",
                message=f"{_FIELD_LABELS[name]} is required",
                severity="error",
            ))

        schema_valid = not issues
        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=schema_valid,
            issues=issues,
        )

    def _validate_semantic(
        self,
        expenditure: Expenditure,
        existing: list[Expenditure],
        category_remaining: Optional[Decimal],
        category_name: str,
    ) -> list[ValidationIssue]:
        issues = []
        today = date.today()

        # Future date check (with tolerance)
        if expenditure.date > today + timedelta(days=self._future_days):
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expenditure date ({expenditure.date}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if expenditure.amount > self._large_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount (${expenditure.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        if category_remaining is not None and expenditure.amount > category_remaining:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="overspend",
                message=(
                    f"Amount (${expenditure.amount:,.2f}) exceeds the "
                    f"${category_remaining:,.2f} remaining in {category_name or 'this category'}"
                ),
                severity="warning",
                suggested_fix="Consider amending the budget or choosing another category",
            ))

        # Vendor name sanity (not just numbers/symbols)
        name = expenditure.vendor
        alpha_count = sum(1 for c in name if c.isalpha())
        if name and alpha_count / len(name) < 0.3:
            issues.append(ValidationIssue(
                field="vendor",
                issue_type="suspicious_value",
                message="Vendor name looks unusual (too many numbers/symbols)",
                severity="warning",
                suggested_fix="Please verify the vendor name",
            ))

        for other in existing:
            if (
                other.id != expenditure.id
                and other.grant_id == expenditure.grant_id
                and other.vendor.casefold() == expenditure.vendor.casefold()
                and other.date == expenditure.date
                and other.amount == expenditure.amount
            ):
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"An expenditure from {expenditure.vendor} for "
                        f"${expenditure.amount:,.2f} on {expenditure.date} already exists"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))
                break

        return issues

    def validate(
        self,
        expenditure: Expenditure,
        existing: Iterable[Expenditure] = (),
        category_remaining: Optional[Decimal] = None,
        category_name: str = "",
    ) -> ValidationResult:
        """
        Stage 2 for an expenditure that already passed stage 1.

        Args:
            expenditure: The fully built expenditure about to be saved
            existing: Expenditures already in the ledger
            category_remaining: Unspent allocation of the target category,
                               for the overspend check
            category_name: Used in the overspend message
        """
        issues = self._validate_semantic(
            expenditure,
            list(existing),
            category_remaining,
            category_name,
        )
        return ValidationResult(
            schema_valid=True,
            semantic_valid=not any(i.severity == "error" for i in issues),
            issues=issues,
        )
