"""AI providers."""

from docguard.domain.ai.providers.gemini import GeminiProvider
from docguard.domain.ai.providers.openai import OpenAIProvider

__all__ = ["GeminiProvider", "OpenAIProvider"]
