"""AI agents package."""

from grantledger.agents.ai_agents import (
    RECEIPT_PROMPT,
    ParsedReceipt,
    ReceiptAgent,
    ReceiptFields,
    ReceiptParse,
    ReviewItem,
    ReviewStatus,
    UnparseableReceipt,
    WritingAgent,
    parse_receipt_text,
    sniff_mime_type,
)

__all__ = [
    "RECEIPT_PROMPT",
    "ParsedReceipt",
    "ReceiptAgent",
    "ReceiptFields",
    "ReceiptParse",
    "ReviewItem",
    "ReviewStatus",
    "UnparseableReceipt",
    "WritingAgent",
    "parse_receipt_text",
    "sniff_mime_type",
]
