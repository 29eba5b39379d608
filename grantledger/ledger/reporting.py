"""
Reporting

Read-only views over one grant's spend: the expenditure ledger (also
exported as CSV) and budget-vs-actuals by deliverable.
"""

import csv
import io
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from grantledger.ledger.calculator import deliverable_stats, to_cents
from grantledger.models.grant import Expenditure, Grant


UNKNOWN = "Unknown"
LEDGER_HEADERS = ["Date", "Vendor", "Deliverable", "Category", "Justification", "Amount"]


def format_usd(amount: Decimal) -> str:
    """$1,234.50 style. Negative amounts keep their sign: -$100.00."""
    amount = to_cents(amount)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


class LedgerRow(BaseModel):
    expenditure_id: str
    date: str
    vendor: str
    deliverable: str
    category: str
    justification: str
    amount: Decimal


class BudgetLine(BaseModel):
    deliverable_id: str
    section_reference: str
    spent: Decimal
    allocated: Decimal
    percent_used: Decimal


def expenditure_ledger_rows(grant: Grant, expenditures: Iterable[Expenditure]) -> list[LedgerRow]:
    """
    One row per expenditure of the grant, with names resolved.

    Deliverables and categories that no longer exist show as "Unknown".
    """
    deliverables = {d.id: d for _, d in grant.iter_deliverables()}
    rows = []
    for e in expenditures:
        if e.grant_id != grant.id:
            continue
        deliverable = deliverables.get(e.deliverable_id)
        category = deliverable.find_category(e.category_id) if deliverable else None
        rows.append(LedgerRow(
            expenditure_id=e.id,
            date=e.date.isoformat(),
            vendor=e.vendor,
            deliverable=(deliverable.description or UNKNOWN) if deliverable else UNKNOWN,
            category=(category.name or UNKNOWN) if category else UNKNOWN,
            justification=e.justification,
            amount=to_cents(e.amount),
        ))
    return rows


def expenditure_ledger_csv(grant: Grant, expenditures: Iterable[Expenditure]) -> str:
    """The expenditure ledger as CSV text, header row first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LEDGER_HEADERS)
    for row in expenditure_ledger_rows(grant, expenditures):
        writer.writerow([
            row.date,
            row.vendor,
            row.deliverable,
            row.category,
            row.justification,
            f"{row.amount:.2f}",
        ])
    return buffer.getvalue()


def ledger_csv_filename(grant: Grant) -> str:
    return f"expenditures_{grant.id}.csv"


def budget_vs_actuals(grant: Grant, expenditures: Iterable[Expenditure]) -> list[BudgetLine]:
    """
    Spent against allocated for each primary deliverable.

    percent_used is capped at 100 for display; an unbudgeted deliverable
    with any spend shows as 100.
    """
    own = [e for e in expenditures if e.grant_id == grant.id]
    lines = []
    for deliverable in grant.deliverables:
        stats = deliverable_stats(deliverable, own)
        if deliverable.allocated_value > 0:
            percent = min(Decimal("100"), stats.spent / deliverable.allocated_value * 100)
        else:
            percent = Decimal("100") if stats.spent > 0 else Decimal("0")
        lines.append(BudgetLine(
            deliverable_id=deliverable.id,
            section_reference=deliverable.section_reference,
            spent=stats.spent,
            allocated=to_cents(deliverable.allocated_value),
            percent_used=to_cents(percent),
        ))
    return lines
