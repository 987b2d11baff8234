"""Tests for call_with_backoff()."""

import logging
from unittest.mock import patch

import pytest

from speech_pipeline.utils.retry import call_with_backoff


class TestCallWithBackoff:
    """Tests for the functional retry helper."""

    async def test_passes_arguments_and_returns_result(self) -> None:
        async def add(a: int, b: int = 0) -> int:
            return a + b

        assert await call_with_backoff(add, 2, b=3, base_delay=0.0) == 5

    async def test_retries_then_succeeds(self) -> None:
        attempts = 0

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionError("down")
            return "ok"

        result = await call_with_backoff(
            flaky, max_retries=3, base_delay=0.0, retryable_exceptions=(ConnectionError,)
        )
        assert result == "ok"
        assert attempts == 3

    async def test_exponential_delays(self) -> None:
        recorded: list[float] = []

        async def fake_sleep(delay: float) -> None:
            recorded.append(delay)

        async def always_fail() -> None:
            raise ValueError("fail")

        with patch("speech_pipeline.utils.retry.asyncio.sleep", side_effect=fake_sleep):
            with pytest.raises(ValueError):
                await call_with_backoff(always_fail, max_retries=3, base_delay=0.5)

        assert recorded == [0.5, 1.0, 2.0]

    async def test_non_retryable_raised_immediately(self) -> None:
        attempts = 0

        async def permanent() -> None:
            nonlocal attempts
            attempts += 1
            raise KeyError("nope")

        with pytest.raises(KeyError) as exc_info:
            await call_with_backoff(
                permanent, base_delay=0.0, retryable_exceptions=(ConnectionError,)
            )
        assert attempts == 1
        assert exc_info.value._retry_count == 0  # type: ignore[attr-defined]

    async def test_retry_count_on_exhaustion(self) -> None:
        async def always_fail() -> None:
            raise ConnectionError("down")

        with pytest.raises(ConnectionError) as exc_info:
            await call_with_backoff(always_fail, max_retries=2, base_delay=0.0)
        assert exc_info.value._retry_count == 2  # type: ignore[attr-defined]

    async def test_zero_retries_runs_once(self) -> None:
        attempts = 0

        async def fail() -> None:
            nonlocal attempts
            attempts += 1
            raise ValueError("fail")

        with pytest.raises(ValueError):
            await call_with_backoff(fail, max_retries=0)
        assert attempts == 1

    async def test_label_used_in_log(self, caplog) -> None:
        async def always_fail() -> None:
            raise ConnectionError("network down")

        with caplog.at_level(logging.WARNING, logger="speech_pipeline.utils.retry"):
            with pytest.raises(ConnectionError):
                await call_with_backoff(
                    always_fail, max_retries=1, base_delay=0.0, label="transcribe c1"
                )

        retry_logs = [r for r in caplog.records if "Retry" in r.message]
        assert len(retry_logs) == 1
        assert "1/1" in retry_logs[0].message
        assert "transcribe c1" in retry_logs[0].message
        assert "network down" in retry_logs[0].message
