import asyncio
import logging
from threading import BoundedSemaphore
from typing import Any

from docguard.domain.ai.providers.base import StructuredAIProvider
from docguard.domain.ai.retry import run_ai_with_retry


logger = logging.getLogger(__name__)


class AIService:
    """Async generation client around one blocking provider.

    Bounds concurrency, enforces a per-call timeout and retries transient
    failures. Every failure leaves as ``GenerationError``.

    The concurrency slot is taken and released inside the worker thread, so a
    call that timed out keeps its slot until the provider actually returns.
    """

    def __init__(
        self,
        *,
        primary: StructuredAIProvider,
        max_concurrency: int = 4,
        acquire_timeout_ms: int = 200,
        request_timeout_sec: float = 30,
        max_attempts: int = 2,
        retry_backoff_sec: float = 0.5,
    ) -> None:
        self.primary = primary
        self._semaphore = BoundedSemaphore(value=max(1, int(max_concurrency)))
        self._acquire_timeout_sec = max(0.01, int(acquire_timeout_ms) / 1000)
        self._request_timeout_sec = max(0.01, float(request_timeout_sec))
        self.max_attempts = max(1, int(max_attempts))
        self.retry_backoff_sec = max(0.0, float(retry_backoff_sec))

    def _call_provider(self, *, request_text: str, output_schema: dict[str, Any]) -> dict[str, Any]:
        acquired = self._semaphore.acquire(timeout=self._acquire_timeout_sec)
        if not acquired:
            raise RuntimeError("ai_backpressure_busy")
        try:
            return self.primary.generate_json(
                request_text=request_text,
                output_schema=output_schema,
            )
        finally:
            self._semaphore.release()

    async def generate_json(
        self,
        *,
        request_text: str,
        output_schema: dict[str, Any],
    ) -> dict[str, Any]:
        async def attempt(number: int) -> dict[str, Any]:
            logger.debug("ai call attempt %d", number)
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(
                        self._call_provider,
                        request_text=request_text,
                        output_schema=output_schema,
                    ),
                    timeout=self._request_timeout_sec,
                )
            except asyncio.TimeoutError:
                raise RuntimeError("ai_request_timeout") from None

        return await run_ai_with_retry(
            attempt,
            max_attempts=self.max_attempts,
            backoff_sec=self.retry_backoff_sec,
        )
