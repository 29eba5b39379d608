"""
Tests for the receipt intake flow and application wiring

Flow under test:
    scan -> review -> confirm -> post
with a scripted language model and a data file under tmp_path.
"""

import json
from decimal import Decimal

import pytest

from grantledger.agents import ReviewStatus
from grantledger.errors import ValidationError
from grantledger.models import EntityKind
from grantledger.models.audit import AuditEventType
from grantledger.orchestrator import create_app_components
from grantledger.services.platform import LocalPlatform


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
ANSWER = '{"vendor": "Office Depot", "date": "2024-03-02", "amount": "200.00", "category": "Supplies"}'


@pytest.fixture
def data_file(tmp_path, grant):
    path = tmp_path / "ledger.json"
    path.write_text(
        json.dumps({"grants": [json.loads(grant.model_dump_json(by_alias=True))]}),
        encoding="utf-8",
    )
    return path


class TestCreateAppComponents:
    """Tests for the component factory."""

    @pytest.mark.asyncio
    async def test_wires_everything(self, tmp_path, data_file, scripted_llm):
        components = await create_app_components(
            platform=LocalPlatform(tmp_path),
            llm=scripted_llm(),
            data_file=data_file,
        )
        assert components.ai_available is True
        assert components.writer is not None
        assert [g.id for g in await components.grants.list_grants()] == ["g1"]

    @pytest.mark.asyncio
    async def test_runs_without_a_model(self, tmp_path):
        components = await create_app_components(
            platform=LocalPlatform(tmp_path),
            use_llm=False,
            data_file=tmp_path / "new.json",
        )
        assert components.ai_available is False
        assert components.writer is None
        assert (tmp_path / "new.json").exists()

    @pytest.mark.asyncio
    async def test_missing_gemini_key_degrades(self, tmp_path, monkeypatch):
        from grantledger.config import get_settings

        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        get_settings.cache_clear()
        try:
            components = await create_app_components(
                platform=LocalPlatform(tmp_path),
                data_file=tmp_path / "new.json",
            )
        finally:
            get_settings.cache_clear()
        assert components.ai_available is False


class TestReceiptIntakeFlow:
    """End-to-end receipt intake."""

    @pytest.fixture
    def build(self, tmp_path, data_file, scripted_llm):
        def make():
            return create_app_components(
                platform=LocalPlatform(tmp_path),
                llm=scripted_llm(ANSWER),
                data_file=data_file,
            )
        return make

    @pytest.mark.asyncio
    async def test_scan_confirm_post(self, build, data_file):
        components = await build()
        item = await components.receipt_intake.scan(PNG_BYTES, "receipt.png")
        assert item.status == ReviewStatus.REVIEW

        # Nothing is posted until the user confirms
        assert await components.store.list(EntityKind.EXPENDITURES) == []

        result = await components.receipt_intake.confirm_and_post(
            item, "g1", "d1", "c1",
            corrections={"vendor": "Office Depot #42", "justification": "Outreach flyers"},
            apply_indirect_cost=True,
        )

        assert result.expenditure.vendor == "Office Depot #42"
        assert result.expenditure.amount == Decimal("200.00")
        assert result.expenditure.receipt_url == item.receipt_path
        assert result.indirect_cost.amount == Decimal("20.00")
        assert result.grant_stats.spent == Decimal("220.00")

        on_disk = json.loads(data_file.read_text(encoding="utf-8"))
        assert len(on_disk["expenditures"]) == 2

    @pytest.mark.asyncio
    async def test_confirm_still_validates(self, build):
        components = await build()
        item = await components.receipt_intake.scan(PNG_BYTES, "receipt.png")
        with pytest.raises(ValidationError) as exc_info:
            await components.receipt_intake.confirm_and_post(item, "g1", "", "c1")
        assert exc_info.value.fields == ["deliverable_id"]

    @pytest.mark.asyncio
    async def test_unreadable_correction_is_a_validation_error(self, build):
        components = await build()
        item = await components.receipt_intake.scan(PNG_BYTES, "receipt.png")
        with pytest.raises(ValidationError) as exc_info:
            await components.receipt_intake.confirm_and_post(
                item, "g1", "d1", "c1", corrections={"amount": "abc"},
            )
        assert exc_info.value.fields == ["amount"]
        assert await components.store.list(EntityKind.EXPENDITURES) == []

    @pytest.mark.asyncio
    async def test_long_discard_reason_is_kept_in_details(self, build):
        components = await build()
        item = await components.receipt_intake.scan(PNG_BYTES, "receipt.png")
        reason = "duplicate of an earlier receipt. " * 20
        await components.receipt_intake.discard(item, reason)

        events = await components.audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.EXPENDITURE_REJECTED
        assert events[0].description.endswith("...")
        assert events[0].details["reason"] == reason

    @pytest.mark.asyncio
    async def test_discard_is_audited(self, build):
        components = await build()
        item = await components.receipt_intake.scan(PNG_BYTES, "receipt.png")
        await components.receipt_intake.discard(item, "personal purchase")

        events = await components.audit_storage.get_recent_events()
        assert events[0].event_type == AuditEventType.EXPENDITURE_REJECTED
        assert events[0].entity_id == item.id
        assert await components.store.list(EntityKind.EXPENDITURES) == []
