"""
Language Model Service using Google Gemini

DESIGN DECISION: We use Gemini because:
1. One model handles both receipt images and grant prose
2. Fast and cheap enough for one-receipt-at-a-time use
3. Free tier sufficient for a small nonprofit

Transient failures are retried. Anything that still fails becomes an
ExternalServiceError, which callers treat as "fall back to manual entry".
"""

from typing import Optional

import google.generativeai as genai
from tenacity import retry, stop_after_attempt, wait_exponential

from grantledger.config import GeminiSettings, get_settings
from grantledger.errors import ExternalServiceError
from grantledger.services.llm.interface import LanguageModelInterface


class GeminiLanguageModel(LanguageModelInterface):
    """
    Gemini-backed text and vision generation.

    Configuration comes from GEMINI_* settings unless passed in.
    """

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _generate_with_retry(self, contents) -> str:
        response = await self._model.generate_content_async(contents)
        return response.text

    async def generate(
        self,
        prompt: str,
        image: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ) -> str:
        contents = [prompt]
        if image is not None:
            # Image first, instruction second, as the vision prompt expects
            contents = [{"mime_type": mime_type or "image/jpeg", "data": image}, prompt]

        try:
            text = await self._generate_with_retry(contents)
        except Exception as e:
            raise ExternalServiceError("gemini", str(e)) from e

        if not text:
            raise ExternalServiceError("gemini", "empty response")
        return text
