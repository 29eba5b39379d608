"""
Main Orchestrator for Grant Ledger

This module ties together all the components and defines the
end-to-end flow for receipt intake:

    image → stored → read by the model → review → confirm → post

DESIGN DECISION: The orchestrator enforces the boundaries:
- No expenditure is posted from a receipt without human confirmation
- The budget location (grant, deliverable, category) always comes from a person
- Every step is audited

create_app_components() builds everything the application needs from
settings, degrading instead of failing when optional pieces (the
language model, the platform shell) are missing.
"""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from grantledger.agents import ReceiptAgent, ReviewItem, WritingAgent
from grantledger.audit import AuditLogger, create_correlation_id
from grantledger.config import get_settings
from grantledger.errors import ValidationError
from grantledger.ledger import (
    BackupManager,
    ExpenditurePoster,
    GrantManager,
    PostingOptions,
    PostingResult,
    TemplateManager,
)
from grantledger.models.audit import AuditEventType
from grantledger.models.grant import ExpenditureDraft, FundingSource
from grantledger.services.llm import GeminiLanguageModel, LanguageModelInterface
from grantledger.services.platform import (
    LocalPlatform,
    PlatformServices,
)
from grantledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    JsonFileLedgerStore,
    LedgerStoreInterface,
)
from grantledger.validation import ExpenditureValidator


logger = structlog.get_logger("grantledger")


class ReceiptIntakeFlow:
    """
    Orchestrates receipt intake.

    Flow:
    1. Scan → ReceiptAgent stores the image and proposes fields
    2. Review → Present to user (PAUSE - require confirmation)
    3. Confirm → User picks the budget location and corrects fields
    4. Post → ExpenditurePoster validates and saves

    Human confirmation (step 3) is MANDATORY.
    The system NEVER auto-posts.
    """

    def __init__(
        self,
        receipt_agent: ReceiptAgent,
        poster: ExpenditurePoster,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = receipt_agent
        self._poster = poster
        self._audit = audit_logger or AuditLogger()

    async def scan(self, image_bytes: bytes, filename: str) -> ReviewItem:
        """Read a receipt. Always returns an item, possibly for manual entry."""
        return await self._agent.scan(image_bytes, filename)

    async def confirm_and_post(
        self,
        item: ReviewItem,
        grant_id: str,
        deliverable_id: str,
        category_id: str,
        corrections: Optional[dict] = None,
        apply_indirect_cost: bool = False,
        funding_source: FundingSource = FundingSource.GRANT,
    ) -> PostingResult:
        """
        Post a reviewed receipt.

        Args:
            item: The scanned receipt
            grant_id, deliverable_id, category_id: Where the spend goes
            corrections: Field values the user changed (vendor, amount, ...)
            apply_indirect_cost: Also post the grant's IDC entry
            funding_source: Grant, Match or Third-Party

        Raises:
            ValidationError: If required fields are still missing or a
                correction cannot be read (e.g. amount "abc")
        """
        draft = item.to_draft(grant_id, deliverable_id, category_id)
        update = {"funding_source": funding_source, **(corrections or {})}
        try:
            draft = ExpenditureDraft.model_validate({**draft.model_dump(), **update})
        except PydanticValidationError as e:
            names = {f.alias or n: n for n, f in ExpenditureDraft.model_fields.items()}
            fields = dict.fromkeys(
                names.get(err["loc"][0], str(err["loc"][0])) for err in e.errors() if err["loc"]
            )
            raise ValidationError(fields) from e

        return await self._poster.post_expenditure(
            draft,
            PostingOptions(apply_indirect_cost=apply_indirect_cost),
        )

    async def discard(self, item: ReviewItem, reason: Optional[str] = None) -> None:
        """User decided the receipt should not be posted."""
        await self._audit.log_entity_changed(
            AuditEventType.EXPENDITURE_REJECTED,
            "receipt",
            item.id,
            f"Receipt discarded: {reason or 'no reason given'}",
            details={"filename": item.filename, "reason": reason},
            correlation_id=create_correlation_id(),
        )


class AppComponents:
    """Everything a front end needs, already wired together."""

    def __init__(
        self,
        store: LedgerStoreInterface,
        platform: PlatformServices,
        audit_logger: AuditLogger,
        audit_storage: AuditStorageInterface,
        llm: Optional[LanguageModelInterface] = None,
    ):
        self.store = store
        self.platform = platform
        self.audit_logger = audit_logger
        self.audit_storage = audit_storage
        self.llm = llm

        self.poster = ExpenditurePoster(store, ExpenditureValidator(), audit_logger)
        self.grants = GrantManager(store, audit_logger)
        self.templates = TemplateManager(store, audit_logger)
        self.backups = BackupManager(store, platform, audit_logger)
        self.receipt_intake = ReceiptIntakeFlow(
            ReceiptAgent(llm, platform, audit_logger),
            self.poster,
            audit_logger,
        )
        self.writer = WritingAgent(llm) if llm is not None else None

    @property
    def ai_available(self) -> bool:
        return self.llm is not None


def _create_llm() -> Optional[LanguageModelInterface]:
    try:
        return GeminiLanguageModel()
    except PydanticValidationError as e:
        # Missing GEMINI_API_KEY: receipts fall back to manual entry
        logger.warning("llm_not_configured", error_count=e.error_count())
        return None


async def create_app_components(
    platform: Optional[PlatformServices] = None,
    llm: Optional[LanguageModelInterface] = None,
    use_llm: bool = True,
    data_file: Optional[Path] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        platform: Shell services. Defaults to local directories from
                 settings; pass UnavailablePlatform() for headless use.
        llm: Language model to use instead of Gemini (e.g., in tests)
        use_llm: Set to False to run without any language model
        data_file: Override the configured data file

    Raises:
        PersistenceError: If the data file exists but cannot be loaded
    """
    ledger_settings = get_settings().ledger

    store = JsonFileLedgerStore(
        data_file or ledger_settings.data_file,
        retries=ledger_settings.write_retries,
    )
    await store.load()

    if platform is None:
        platform = LocalPlatform(
            ledger_settings.export_dir,
            attachments_dir=ledger_settings.attachments_dir,
        )

    if llm is None and use_llm:
        llm = _create_llm()

    audit_storage = InMemoryAuditStorage()
    return AppComponents(
        store=store,
        platform=platform,
        audit_logger=AuditLogger(audit_storage),
        audit_storage=audit_storage,
        llm=llm,
    )
