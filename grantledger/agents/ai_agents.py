"""
AI Agents for Grant Ledger

CRITICAL BOUNDARIES:

1. RECEIPT AGENT:
   - CAN: Read a receipt image and propose vendor, date, amount, category
   - CANNOT: Post anything. It only prefills a draft for a person to review
   - CANNOT: Drop a receipt. Unreadable output goes to manual entry

2. WRITING AGENT:
   - CAN: Draft grant proposal sections and email templates
   - CANNOT: Save anything without the user choosing to

The LLM is an ASSISTANT, not a BOOKKEEPER.
Everything it returns is untrusted text until it has been validated here.
"""

import datetime as dt
import json
import re
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field
from pydantic import ValidationError as PydanticValidationError

from grantledger.audit import AuditLogger, create_correlation_id
from grantledger.errors import ExternalServiceError
from grantledger.models.grant import (
    EmailTemplate,
    ExpenditureDraft,
    OptionalDate,
    new_id,
)
from grantledger.services.llm import LanguageModelInterface
from grantledger.services.platform import PlatformServices


RECEIPT_PROMPT = """Extract data from this receipt. Return ONLY a JSON object (no markdown) with these keys:
- "vendor" (string)
- "date" (YYYY-MM-DD string)
- "amount" (number)
- "category" (string, guess based on vendor e.g., Supplies, Travel, Meals)."""


def sniff_mime_type(data: bytes) -> str:
    """Image MIME type from magic bytes. Unknown formats are sent as JPEG."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def _extract_json_object(text: str) -> Optional[str]:
    """The outermost {...} in a model response, markdown fences removed."""
    text = re.sub(r"```(?:json)?", "", text).strip()
    start = text.find("{")
    end = text.rfind("}") + 1
    if start >= 0 and end > start:
        return text[start:end]
    return None


def _clean_amount(v):
    """Models sometimes answer "$1,234.50" instead of a number."""
    if isinstance(v, str):
        v = v.replace("$", "").replace(",", "").strip()
        return v or None
    if isinstance(v, float):
        return str(v)
    return v


# =============================================================================
# RECEIPT PARSING
# =============================================================================

class ReceiptFields(BaseModel):
    """What a receipt scan proposes. Every field may be missing."""

    vendor: str = ""
    date: OptionalDate = None
    amount: Annotated[Optional[Decimal], BeforeValidator(_clean_amount)] = Field(default=None, ge=0)
    category: str = ""


class ParsedReceipt(BaseModel):
    outcome: Literal["parsed"] = "parsed"
    receipt: ReceiptFields
    raw_text: str


class UnparseableReceipt(BaseModel):
    outcome: Literal["unparseable"] = "unparseable"
    raw_text: str
    reason: str


ReceiptParse = Annotated[
    Union[ParsedReceipt, UnparseableReceipt],
    Field(discriminator="outcome"),
]

def parse_receipt_text(raw: str) -> Union[ParsedReceipt, UnparseableReceipt]:
    """
    Validate a model's receipt answer.

    Never raises: anything that is not a usable receipt object comes
    back as UnparseableReceipt with the reason.
    """
    json_str = _extract_json_object(raw or "")
    if json_str is None:
        return UnparseableReceipt(raw_text=raw or "", reason="No JSON object in response")

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError as e:
        return UnparseableReceipt(raw_text=raw, reason=f"Invalid JSON: {e.msg}")

    if not isinstance(data, dict):
        return UnparseableReceipt(raw_text=raw, reason="Response is not a JSON object")

    try:
        fields = ReceiptFields.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return UnparseableReceipt(raw_text=raw, reason=f"Invalid {location}: {first['msg']}")

    if not fields.vendor and fields.amount is None:
        return UnparseableReceipt(raw_text=raw, reason="No vendor or amount found")

    return ParsedReceipt(receipt=fields, raw_text=raw)


class ReviewStatus(str, Enum):
    REVIEW = "Review"
    MANUAL_ENTRY = "ManualEntry"


class ReviewItem(BaseModel):
    """
    A scanned receipt waiting for a person.

    REVIEW items have proposed fields to confirm; MANUAL_ENTRY items
    could not be read and carry the reason instead.
    """

    id: str = Field(default_factory=new_id)
    filename: str
    receipt_path: Optional[str] = None
    status: ReviewStatus
    receipt: Optional[ReceiptFields] = None
    raw_text: str = ""
    reason: Optional[str] = None
    scanned_at: dt.datetime = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))

    def to_draft(
        self,
        grant_id: str = "",
        deliverable_id: str = "",
        category_id: str = "",
    ) -> ExpenditureDraft:
        """
        Prefill an expenditure draft from this receipt.

        The budget location always comes from the person; the model's
        category guess is only kept as a note.
        """
        fields = self.receipt or ReceiptFields()
        return ExpenditureDraft(
            grant_id=grant_id,
            deliverable_id=deliverable_id,
            category_id=category_id,
            date=fields.date,
            vendor=fields.vendor,
            amount=fields.amount,
            notes=f"Receipt category: {fields.category}" if fields.category else "",
            receipt_url=self.receipt_path,
        )


class ReceiptAgent:
    """
    Turns receipt images into review items.

    FLOW:
    1. Store the image as an attachment (if the platform allows)
    2. Ask the model to read it
    3. Validate the answer
    4. Return a ReviewItem, in review or manual entry, never nothing
    """

    def __init__(
        self,
        llm: Optional[LanguageModelInterface],
        platform: Optional[PlatformServices] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._llm = llm
        self._platform = platform
        self._audit = audit_logger or AuditLogger()

    async def _store_image(self, image_bytes: bytes, filename: str, correlation_id) -> Optional[str]:
        if self._platform is None:
            return None
        try:
            return await self._platform.save_attachment(image_bytes, filename)
        except ExternalServiceError as e:
            # The scan still goes ahead without a stored copy
            await self._audit.log_external_service_error(e.service, str(e), correlation_id)
            return None

    async def scan(self, image_bytes: bytes, filename: str) -> ReviewItem:
        correlation_id = create_correlation_id()
        receipt_path = await self._store_image(image_bytes, filename, correlation_id)

        def manual(reason: str, raw_text: str = "") -> ReviewItem:
            return ReviewItem(
                filename=filename,
                receipt_path=receipt_path,
                status=ReviewStatus.MANUAL_ENTRY,
                raw_text=raw_text,
                reason=reason,
            )

        if self._llm is None:
            item = manual("Receipt reading is not configured; enter the details manually")
            await self._audit.log_receipt_scanned(item.id, False, correlation_id)
            return item

        try:
            raw = await self._llm.generate(
                RECEIPT_PROMPT,
                image=image_bytes,
                mime_type=sniff_mime_type(image_bytes),
            )
        except ExternalServiceError as e:
            await self._audit.log_external_service_error(e.service, str(e), correlation_id)
            item = manual(f"Receipt could not be read: {e}")
            await self._audit.log_receipt_scanned(item.id, False, correlation_id)
            return item

        result = parse_receipt_text(raw)
        if isinstance(result, UnparseableReceipt):
            item = manual(result.reason, result.raw_text)
        else:
            item = ReviewItem(
                filename=filename,
                receipt_path=receipt_path,
                status=ReviewStatus.REVIEW,
                receipt=result.receipt,
                raw_text=result.raw_text,
            )

        await self._audit.log_receipt_scanned(item.id, item.status == ReviewStatus.REVIEW, correlation_id)
        return item


# =============================================================================
# WRITING ASSISTANT
# =============================================================================

class _TemplateDraft(BaseModel):
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)


class WritingAgent:
    """Drafts prose for grant proposals and email templates."""

    def __init__(self, llm: LanguageModelInterface):
        self._llm = llm

    async def draft_grant_section(
        self,
        topic: str,
        grant_name: str,
        funder: str,
        key_details: str,
    ) -> str:
        prompt = f"""You are a professional grant writer. Write the "{topic}" section for a grant proposal.

Grant Name: {grant_name}
Funder: {funder}
Key Details provided by user: {key_details}

Keep it professional, persuasive, and concise. Formatting: clean paragraphs."""

        return (await self._llm.generate(prompt)).strip()

    async def draft_email_template(self, topic: str, context: str) -> EmailTemplate:
        """
        Draft a reusable email template.

        Raises:
            ExternalServiceError: If the model is unreachable or its answer
                                 is not a subject/body JSON object
        """
        prompt = f"""You are an expert grant manager. Create an email template.
Topic: {topic}
Context/Tone: {context}

Return ONLY valid JSON with keys "subject" and "body".
The body should use placeholders like {{{{GrantName}}}}, {{{{Vendor}}}}, {{{{Date}}}} where appropriate."""

        raw = await self._llm.generate(prompt)
        json_str = _extract_json_object(raw)
        if json_str is None:
            raise ExternalServiceError("gemini", "template response contained no JSON object")
        try:
            draft = _TemplateDraft.model_validate_json(json_str)
        except PydanticValidationError as e:
            raise ExternalServiceError("gemini", f"template response was malformed: {e.error_count()} problem(s)") from e

        return EmailTemplate(title=topic, subject=draft.subject, body=draft.body)
