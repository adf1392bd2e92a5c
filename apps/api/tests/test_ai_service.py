import asyncio
import threading
import time
import unittest

from docguard.domain.ai import AIService
from docguard.domain.ai.retry import classify_ai_failure, run_ai_with_retry
from docguard.domain.generation import GenerationError


_SCHEMA = {"type": "object", "properties": {"summary": {"type": "string"}}, "required": ["summary"]}


class _ScriptedProvider:
    """Raises or returns the scripted outcomes in order, one per call."""

    def __init__(self, *outcomes, delay_sec: float = 0.0):
        self.outcomes = list(outcomes)
        self.delay_sec = delay_sec
        self.calls = 0

    def generate_json(self, *, request_text: str, output_schema: dict) -> dict:
        self.calls += 1
        if self.delay_sec:
            time.sleep(self.delay_sec)
        outcome = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class _PeakTrackingProvider:
    """Sleeps inside the call and records how many calls overlapped."""

    def __init__(self, delay_sec: float):
        self.delay_sec = delay_sec
        self.calls = 0
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def generate_json(self, *, request_text: str, output_schema: dict) -> dict:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay_sec)
            return {"summary": request_text}
        finally:
            with self._lock:
                self.active -= 1


class AIServiceTests(unittest.IsolatedAsyncioTestCase):
    def _service(self, provider, **overrides) -> AIService:
        options = {"max_attempts": 2, "retry_backoff_sec": 0, "request_timeout_sec": 5}
        options.update(overrides)
        return AIService(primary=provider, **options)

    async def test_returns_provider_output(self) -> None:
        provider = _ScriptedProvider({"summary": "ok"})

        result = await self._service(provider).generate_json(request_text="hi", output_schema=_SCHEMA)

        self.assertEqual(result, {"summary": "ok"})
        self.assertEqual(provider.calls, 1)

    async def test_transient_failure_is_retried(self) -> None:
        provider = _ScriptedProvider(RuntimeError("429 too many requests"), {"summary": "ok"})

        result = await self._service(provider).generate_json(request_text="hi", output_schema=_SCHEMA)

        self.assertEqual(result, {"summary": "ok"})
        self.assertEqual(provider.calls, 2)

    async def test_single_attempt_mode_propagates_immediately(self) -> None:
        provider = _ScriptedProvider(RuntimeError("429 too many requests"), {"summary": "ok"})

        with self.assertRaises(GenerationError) as ctx:
            await self._service(provider, max_attempts=1).generate_json(request_text="hi", output_schema=_SCHEMA)

        self.assertEqual(provider.calls, 1)
        self.assertEqual(ctx.exception.kind, "rate_limited")
        self.assertTrue(ctx.exception.transient)
        self.assertEqual(ctx.exception.attempt_count, 1)

    async def test_permanent_failure_is_not_retried(self) -> None:
        provider = _ScriptedProvider(RuntimeError("gemini_request_failed:400 Bad Request"), {"summary": "ok"})

        with self.assertRaises(GenerationError) as ctx:
            await self._service(provider, max_attempts=3).generate_json(request_text="hi", output_schema=_SCHEMA)

        self.assertEqual(provider.calls, 1)
        self.assertEqual(ctx.exception.kind, "provider_error")
        self.assertFalse(ctx.exception.transient)

    async def test_retries_are_bounded(self) -> None:
        provider = _ScriptedProvider(RuntimeError("read operation timed out"))

        with self.assertRaises(GenerationError) as ctx:
            await self._service(provider, max_attempts=3).generate_json(request_text="hi", output_schema=_SCHEMA)

        self.assertEqual(provider.calls, 3)
        self.assertEqual(ctx.exception.kind, "timeout")
        self.assertEqual(ctx.exception.attempt_count, 3)

    async def test_slow_provider_times_out(self) -> None:
        provider = _ScriptedProvider({"summary": "late"}, delay_sec=0.3)

        with self.assertRaises(GenerationError) as ctx:
            await self._service(provider, max_attempts=1, request_timeout_sec=0.05).generate_json(
                request_text="hi", output_schema=_SCHEMA
            )

        self.assertEqual(ctx.exception.kind, "timeout")

    async def test_backpressure_rejects_when_no_slot_is_free(self) -> None:
        provider = _ScriptedProvider({"summary": "ok"}, delay_sec=0.2)
        service = self._service(provider, max_attempts=1, max_concurrency=1, acquire_timeout_ms=10)

        results = await asyncio.gather(
            service.generate_json(request_text="a", output_schema=_SCHEMA),
            service.generate_json(request_text="b", output_schema=_SCHEMA),
            return_exceptions=True,
        )

        failures = [row for row in results if isinstance(row, GenerationError)]
        successes = [row for row in results if isinstance(row, dict)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        self.assertEqual(failures[0].kind, "rate_limited")
        self.assertIn("ai_backpressure_busy", failures[0].reason)

    async def test_timed_out_call_keeps_its_slot_until_the_provider_returns(self) -> None:
        provider = _PeakTrackingProvider(delay_sec=0.4)
        service = self._service(provider, max_attempts=1, max_concurrency=1, request_timeout_sec=0.05)

        with self.assertRaises(GenerationError) as ctx:
            await service.generate_json(request_text="first", output_schema=_SCHEMA)
        self.assertEqual(ctx.exception.kind, "timeout")

        results = await asyncio.gather(
            *(service.generate_json(request_text=str(n), output_schema=_SCHEMA) for n in range(3)),
            return_exceptions=True,
        )

        self.assertTrue(all(isinstance(row, GenerationError) for row in results))
        self.assertEqual(provider.calls, 1)
        self.assertEqual(provider.peak, 1)

    async def test_busy_rejection_after_timeout_names_backpressure(self) -> None:
        provider = _PeakTrackingProvider(delay_sec=0.3)
        service = self._service(
            provider, max_attempts=1, max_concurrency=1, request_timeout_sec=0.05, acquire_timeout_ms=10
        )

        with self.assertRaises(GenerationError):
            await service.generate_json(request_text="first", output_schema=_SCHEMA)
        with self.assertRaises(GenerationError) as ctx:
            await service.generate_json(request_text="second", output_schema=_SCHEMA)

        self.assertEqual(ctx.exception.kind, "rate_limited")
        self.assertIn("ai_backpressure_busy", ctx.exception.reason)
        self.assertEqual(provider.calls, 1)


class RetryPolicyTests(unittest.IsolatedAsyncioTestCase):
    def test_classify_ai_failure(self) -> None:
        cases = {
            "429 too many requests": ("rate_limited", True),
            "RESOURCE_EXHAUSTED: quota exceeded": ("rate_limited", True),
            "ai_backpressure_busy": ("rate_limited", True),
            "The read operation timed out": ("timeout", True),
            "ai_request_timeout": ("timeout", True),
            "Expecting value: line 1 column 1 (char 0)": ("schema_mismatch", True),
            "ai_response_not_object": ("schema_mismatch", True),
            "gemini_api_key_missing": ("config_error", False),
            "gemini_request_failed:400 Bad Request": ("provider_error", False),
            "gemini_request_failed:401 Unauthorized": ("config_error", False),
            "openai_request_failed:403 Forbidden": ("config_error", False),
            "gemini_request_failed:429 Too Many Requests": ("rate_limited", True),
            "gemini_request_failed:400 Bad Request: API key not valid. Please pass a valid API key.": (
                "config_error",
                False,
            ),
            "gemini_request_failed:400 Bad Request: Invalid JSON payload received.": ("provider_error", False),
            "Expecting ',' delimiter: line 1 column 402 (char 401)": ("schema_mismatch", True),
            "Expecting value: line 3 column 1 (char 429)": ("schema_mismatch", True),
            "Unterminated string starting at: line 1 column 12 (char 403)": ("schema_mismatch", True),
        }
        for detail, expected in cases.items():
            with self.subTest(detail=detail):
                self.assertEqual(classify_ai_failure(detail), expected)

    async def test_non_retryable_kinds_stop_after_first_attempt(self) -> None:
        attempts: list[int] = []

        async def call(attempt: int) -> dict:
            attempts.append(attempt)
            raise ValueError("Expecting value: line 1 column 1 (char 0)")

        with self.assertRaises(GenerationError) as ctx:
            await run_ai_with_retry(call, max_attempts=3, retryable_kinds={"timeout"}, backoff_sec=0)

        self.assertEqual(attempts, [1])
        self.assertEqual(ctx.exception.kind, "schema_mismatch")


if __name__ == "__main__":
    unittest.main()
