"""Tests for retry with backoff."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agentloop.config.schema import ProviderConfig
from agentloop.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from agentloop.core.retry import (
    RetryConfig,
    backoff_delay,
    is_retryable,
    retry_with_backoff,
)

# ─── RetryConfig ──────────────────────────────────────────────


class TestRetryConfig:
    def test_defaults(self):
        cfg = RetryConfig()
        assert cfg.max_retries == 3
        assert cfg.base_delay == 1.0
        assert cfg.max_delay == 30.0
        assert cfg.jitter is True
        assert cfg.max_elapsed is None

    def test_frozen(self):
        cfg = RetryConfig()
        with pytest.raises(AttributeError):
            cfg.max_retries = 5  # type: ignore[misc]

    def test_from_provider_settings(self):
        settings = ProviderConfig(
            max_retries=6,
            retry_base_delay=0.5,
            retry_max_delay=8.0,
            retry_max_elapsed_seconds=20.0,
        )
        cfg = RetryConfig.from_provider(settings)
        assert cfg == RetryConfig(
            max_retries=6, base_delay=0.5, max_delay=8.0, max_elapsed=20.0
        )


# ─── is_retryable ─────────────────────────────────────────────


class TestIsRetryable:
    @pytest.mark.parametrize(
        "error",
        [
            ProviderRateLimitError("anthropic"),
            ProviderTimeoutError("anthropic", "timeout"),
            ProviderOverloadedError("anthropic", "overloaded"),
        ],
    )
    def test_transient_errors_retry(self, error):
        assert is_retryable(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ProviderAuthError("anthropic", "bad key"),
            ModelNotFoundError("anthropic", "nope"),
            ValueError("oops"),
        ],
    )
    def test_permanent_errors_do_not_retry(self, error):
        assert is_retryable(error) is False


# ─── backoff_delay ────────────────────────────────────────────


class TestBackoffDelay:
    def test_exponential_backoff(self):
        cfg = RetryConfig(base_delay=1.0, jitter=False)
        err = ProviderTimeoutError("anthropic", "timeout")
        assert [backoff_delay(i, cfg, err) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        cfg = RetryConfig(base_delay=10.0, max_delay=15.0, jitter=False)
        err = ProviderTimeoutError("anthropic", "timeout")
        assert backoff_delay(1, cfg, err) == 15.0

    def test_retry_after_wins_over_backoff(self):
        cfg = RetryConfig(base_delay=1.0, jitter=False)
        err = ProviderRateLimitError("anthropic", retry_after=20.0)
        assert backoff_delay(0, cfg, err) == 20.0
        assert backoff_delay(5, cfg, err) == 20.0

    def test_retry_after_capped_by_max_delay(self):
        cfg = RetryConfig(max_delay=10.0, jitter=False)
        err = ProviderRateLimitError("anthropic", retry_after=30.0)
        assert backoff_delay(0, cfg, err) == 10.0

    def test_jitter_scales_delay(self):
        cfg = RetryConfig(base_delay=10.0, jitter=True)
        err = ProviderTimeoutError("anthropic", "timeout")
        with patch("agentloop.core.retry.random.uniform", return_value=0.8):
            delay = backoff_delay(0, cfg, err)
        assert delay == pytest.approx(8.0)


# ─── retry_with_backoff ───────────────────────────────────────


class TestRetryWithBackoff:
    async def test_succeeds_on_first_try(self):
        fn = AsyncMock(return_value="ok")
        assert await retry_with_backoff(fn) == "ok"
        assert fn.call_count == 1

    async def test_retries_transient_then_succeeds(self):
        fn = AsyncMock(
            side_effect=[
                ProviderRateLimitError("anthropic"),
                ProviderOverloadedError("anthropic", "busy"),
                "ok",
            ],
        )
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            result = await retry_with_backoff(fn)
        assert result == "ok"
        assert fn.call_count == 3

    async def test_fails_fast_on_auth_error(self):
        fn = AsyncMock(side_effect=ProviderAuthError("anthropic", "bad key"))
        with pytest.raises(ProviderAuthError):
            await retry_with_backoff(fn)
        assert fn.call_count == 1

    async def test_exhausts_retries_then_raises(self):
        cfg = RetryConfig(max_retries=2, jitter=False)
        fn = AsyncMock(side_effect=ProviderTimeoutError("anthropic", "t"))
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock),
            pytest.raises(ProviderTimeoutError),
        ):
            await retry_with_backoff(fn, config=cfg)
        # 1 initial + 2 retries
        assert fn.call_count == 3

    async def test_zero_retries_tries_once(self):
        fn = AsyncMock(side_effect=ProviderRateLimitError("anthropic"))
        with pytest.raises(ProviderRateLimitError):
            await retry_with_backoff(fn, config=RetryConfig(max_retries=0))
        assert fn.call_count == 1

    async def test_on_retry_receives_attempt_delay_and_error(self):
        cfg = RetryConfig(max_retries=2, base_delay=1.0, jitter=False)
        fn = AsyncMock(
            side_effect=[
                ProviderRateLimitError("anthropic", retry_after=5.0),
                ProviderTimeoutError("anthropic", "t"),
                "ok",
            ],
        )
        callback = MagicMock()
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            await retry_with_backoff(fn, config=cfg, on_retry=callback)
        assert [c.args[0] for c in callback.call_args_list] == [1, 2]
        assert [c.args[1] for c in callback.call_args_list] == [5.0, 2.0]
        assert isinstance(callback.call_args_list[1].args[2], ProviderTimeoutError)
        assert [c.args[0] for c in mock_sleep.call_args_list] == [5.0, 2.0]

    async def test_cancellation_propagates(self):
        fn = AsyncMock(side_effect=asyncio.CancelledError())
        with pytest.raises(asyncio.CancelledError):
            await retry_with_backoff(fn)
        assert fn.call_count == 1

    async def test_cancelled_during_backoff_sleep(self):
        fn = AsyncMock(side_effect=ProviderOverloadedError("anthropic", "busy"))
        task = asyncio.create_task(
            retry_with_backoff(fn, RetryConfig(base_delay=10.0, jitter=False))
        )
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert fn.call_count == 1


# ─── Elapsed-time budget ──────────────────────────────────────


class TestRetryBudget:
    async def test_stops_when_next_delay_exceeds_budget(self):
        # delays 1, 2, 4 fit in 5s; the next (8s) does not
        cfg = RetryConfig(max_retries=10, base_delay=1.0, jitter=False, max_elapsed=5.0)
        fn = AsyncMock(side_effect=ProviderTimeoutError("anthropic", "t"))
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep,
            pytest.raises(ProviderTimeoutError),
        ):
            await retry_with_backoff(fn, config=cfg)
        assert fn.call_count == 4
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 4.0]

    async def test_retry_after_beyond_budget_raises_without_sleeping(self):
        cfg = RetryConfig(max_retries=3, max_delay=60.0, max_elapsed=10.0)
        fn = AsyncMock(side_effect=ProviderRateLimitError("anthropic", retry_after=30.0))
        callback = MagicMock()
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep,
            pytest.raises(ProviderRateLimitError),
        ):
            await retry_with_backoff(fn, config=cfg, on_retry=callback)
        assert fn.call_count == 1
        mock_sleep.assert_not_awaited()
        callback.assert_not_called()

    async def test_budget_counts_real_elapsed_time(self):
        cfg = RetryConfig(max_retries=5, base_delay=0.01, jitter=False, max_elapsed=0.2)

        async def _slow_failure() -> str:
            await asyncio.sleep(0.12)
            raise ProviderOverloadedError("anthropic", "busy")

        fn = AsyncMock(side_effect=_slow_failure)
        with pytest.raises(ProviderOverloadedError):
            await retry_with_backoff(fn, config=cfg)
        # the second attempt ends past the budget, so no third attempt is made
        assert fn.call_count == 2

    async def test_no_budget_uses_all_retries(self):
        cfg = RetryConfig(max_retries=4, base_delay=100.0, jitter=False)
        fn = AsyncMock(side_effect=ProviderTimeoutError("anthropic", "t"))
        with (
            patch.object(asyncio, "sleep", new_callable=AsyncMock),
            pytest.raises(ProviderTimeoutError),
        ):
            await retry_with_backoff(fn, config=cfg)
        assert fn.call_count == 5
