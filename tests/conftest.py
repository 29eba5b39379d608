"""
Shared fixtures for Grant Ledger tests.

Test strategy:
1. Unit tests for pure pieces (models, calculator, reconciler, parsing)
2. Flow tests against the in-memory store and a scripted language model
3. No real API calls and no writes outside tmp_path
"""

from decimal import Decimal
from typing import Optional

import pytest

from grantledger.errors import ExternalServiceError
from grantledger.models import (
    BudgetCategory,
    Deliverable,
    Grant,
    GrantStatus,
    LedgerSnapshot,
    SubRecipient,
)
from grantledger.services.llm import LanguageModelInterface
from grantledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStore
from grantledger.audit import AuditLogger


class FlakyLedgerStore(InMemoryLedgerStore):
    """In-memory store whose Nth durable write fails."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None, fail_on_write: Optional[int] = None):
        super().__init__(snapshot)
        self.writes = 0
        self.fail_on_write = fail_on_write

    async def _write(self, state: LedgerSnapshot) -> None:
        self.writes += 1
        if self.fail_on_write is not None and self.writes == self.fail_on_write:
            raise OSError("disk full")


class ScriptedLanguageModel(LanguageModelInterface):
    """Returns canned responses in order and records every call."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    async def generate(self, prompt, image=None, mime_type=None):
        self.calls.append({"prompt": prompt, "image": image, "mime_type": mime_type})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def grant() -> Grant:
    """
    Award 10,000 at 10% indirect:
    - primary deliverable d1 (1,000) with category c1 Supplies (700)
    - sub-recipient s1 (2,000) with deliverable d2 (1,500) and category c2 Stipends (1,500)
    """
    return Grant(
        id="g1",
        name="Community Health Outreach",
        funder="State Health Fund",
        total_award=Decimal("10000"),
        indirect_cost_rate=Decimal("10"),
        status=GrantStatus.ACTIVE,
        deliverables=[
            Deliverable(
                id="d1",
                section_reference="1.1",
                description="Outreach events",
                allocated_value=Decimal("1000"),
                budget_categories=[
                    BudgetCategory(id="c1", name="Supplies", allocation=Decimal("700")),
                ],
            ),
        ],
        sub_recipients=[
            SubRecipient(
                id="s1",
                name="Eastside Community Center",
                allocated_amount=Decimal("2000"),
                deliverables=[
                    Deliverable(
                        id="d2",
                        section_reference="2.1",
                        description="Youth stipends",
                        allocated_value=Decimal("1500"),
                        budget_categories=[
                            BudgetCategory(id="c2", name="Stipends", allocation=Decimal("1500")),
                        ],
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def store(grant) -> InMemoryLedgerStore:
    return InMemoryLedgerStore(LedgerSnapshot(grants=[grant]))


@pytest.fixture
def flaky_store(grant):
    """Factory: flaky_store(fail_on_write=2) fails the second write."""
    def make(fail_on_write: Optional[int] = None) -> FlakyLedgerStore:
        return FlakyLedgerStore(LedgerSnapshot(grants=[grant]), fail_on_write=fail_on_write)
    return make


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def scripted_llm():
    """Factory: scripted_llm("response", ExternalServiceError(...), ...)."""
    return ScriptedLanguageModel


@pytest.fixture
def llm_failure() -> ExternalServiceError:
    return ExternalServiceError("gemini", "quota exceeded")
