"""
Abstract Language Model Interface

The ledger only needs one thing from a language model: text out for a
prompt (optionally with an image) in. Keeping that behind an interface
lets tests use a scripted fake and keeps the Gemini SDK out of the core.

Output is ALWAYS untrusted text. Callers validate it before use.
"""

from abc import ABC, abstractmethod
from typing import Optional


class LanguageModelInterface(ABC):
    """Prompt in, free-form text out."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> str:
        """
        Run one generation.

        Args:
            prompt: Instruction text
            image: Optional image bytes sent alongside the prompt
            mime_type: MIME type of the image (e.g., "image/png")

        Raises:
            ExternalServiceError: If the model could not be reached or
                                 returned nothing usable
        """
        pass
