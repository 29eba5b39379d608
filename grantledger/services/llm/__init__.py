"""Language model services package."""

from grantledger.services.llm.interface import LanguageModelInterface
from grantledger.services.llm.gemini_service import GeminiLanguageModel

__all__ = [
    "GeminiLanguageModel",
    "LanguageModelInterface",
]
