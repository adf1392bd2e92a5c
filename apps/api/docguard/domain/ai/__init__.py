"""AI domain services and provider abstractions."""

from docguard.domain.ai.factory import build_ai_service
from docguard.domain.ai.service import AIService

__all__ = ["AIService", "build_ai_service"]
