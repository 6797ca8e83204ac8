"""测试重试机制实现."""

from __future__ import annotations

import pytest

from histvault.core.exceptions import AuthenticationError, NetworkError, RateLimitError
from histvault.core.patterns import ExponentialBackoffRetry, RetryConfig, RetryState


class _RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestRetryConfig:
    """测试重试配置."""

    def test_default_config(self) -> None:
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 60.0
        assert config.jitter is True
        assert NetworkError in config.retry_on_exceptions
        assert RateLimitError in config.retry_on_exceptions
        assert AuthenticationError in config.skip_on_exceptions


class TestExponentialBackoffRetry:
    """测试指数退避重试."""

    @pytest.fixture
    def sleep(self) -> _RecordingSleep:
        return _RecordingSleep()

    @pytest.fixture
    def retry_instance(self, sleep: _RecordingSleep) -> ExponentialBackoffRetry:
        config = RetryConfig(max_attempts=3, base_delay=0.5, max_delay=1.5, jitter=False)
        return ExponentialBackoffRetry(config, sleep=sleep)

    @pytest.mark.asyncio
    async def test_successful_execution(self, retry_instance: ExponentialBackoffRetry) -> None:
        async def success_func() -> str:
            return "success"

        assert await retry_instance.execute(success_func) == "success"
        assert retry_instance.state == RetryState.COMPLETED
        assert retry_instance.attempt_count == 1

    @pytest.mark.asyncio
    async def test_retries_network_errors_with_backoff(
        self, retry_instance: ExponentialBackoffRetry, sleep: _RecordingSleep
    ) -> None:
        calls = 0

        async def flaky() -> str:
            nonlocal calls
            calls += 1
            if calls < 3:
                raise NetworkError("boom", provider_name="polygon")
            return "ok"

        assert await retry_instance.execute(flaky) == "ok"
        assert calls == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(
        self, retry_instance: ExponentialBackoffRetry, sleep: _RecordingSleep
    ) -> None:
        async def failing() -> None:
            raise NetworkError("boom", provider_name="polygon")

        with pytest.raises(NetworkError):
            await retry_instance.execute(failing)

        assert retry_instance.attempt_count == 3
        assert retry_instance.state == RetryState.FAILED
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_authentication_errors_are_not_retried(
        self, retry_instance: ExponentialBackoffRetry, sleep: _RecordingSleep
    ) -> None:
        async def denied() -> None:
            raise AuthenticationError("denied", provider_name="polygon")

        with pytest.raises(AuthenticationError):
            await retry_instance.execute(denied)

        assert retry_instance.attempt_count == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_unlisted_errors_propagate_immediately(self, retry_instance: ExponentialBackoffRetry) -> None:
        async def broken() -> None:
            raise ValueError("bad payload")

        with pytest.raises(ValueError):
            await retry_instance.execute(broken)

        assert retry_instance.attempt_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(
        self, retry_instance: ExponentialBackoffRetry, sleep: _RecordingSleep
    ) -> None:
        calls = 0

        async def limited() -> str:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RateLimitError("slow down", provider_name="polygon", retry_after=1)
            return "ok"

        assert await retry_instance.execute(limited) == "ok"
        assert sleep.delays == [1.0]

    def test_delay_is_capped(self, retry_instance: ExponentialBackoffRetry) -> None:
        assert retry_instance._calculate_delay(10) == 1.5

    def test_stats(self, retry_instance: ExponentialBackoffRetry) -> None:
        stats = retry_instance.get_stats()

        assert stats["attempts"] == 0
        assert stats["max_attempts"] == 3
        assert stats["state"] == "ready"
