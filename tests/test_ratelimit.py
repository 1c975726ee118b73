"""测试 RateLimiter."""

import pytest

from deskbridge.config import get_settings
from deskbridge.helpdesk.ratelimit import (
    RateLimiter,
    get_rate_limiter,
    reset_rate_limiter,
)


class TestRateLimiter:
    """测试最小间隔限流."""

    async def test_first_call_does_not_wait(self, fake_clock, recording_sleep) -> None:
        """首次调用不等待."""
        limiter = RateLimiter({"zendesk": 600}, clock=fake_clock, sleep=recording_sleep)

        async def call() -> str:
            return "ok"

        assert await limiter.schedule("zendesk", call) == "ok"
        assert recording_sleep.waits == []

    async def test_back_to_back_calls_are_spaced(
        self, fake_clock, recording_sleep
    ) -> None:
        """连续调用等待剩余间隔: 600 rpm -> 0.1s."""
        limiter = RateLimiter({"zendesk": 600}, clock=fake_clock, sleep=recording_sleep)

        async def call() -> None:
            return None

        await limiter.schedule("zendesk", call)
        fake_clock.now += 0.04
        await limiter.schedule("zendesk", call)

        assert recording_sleep.waits == [pytest.approx(0.06)]

    async def test_no_wait_after_interval_elapsed(
        self, fake_clock, recording_sleep
    ) -> None:
        """距离上次调用已超过间隔时不等待."""
        limiter = RateLimiter({"freshdesk": 80}, clock=fake_clock, sleep=recording_sleep)

        async def call() -> None:
            return None

        await limiter.schedule("freshdesk", call)
        fake_clock.now += 1.0
        await limiter.schedule("freshdesk", call)

        assert recording_sleep.waits == []

    async def test_providers_are_tracked_separately(
        self, fake_clock, recording_sleep
    ) -> None:
        """不同平台互不影响."""
        limiter = RateLimiter(
            {"zendesk": 700, "freshdesk": 80}, clock=fake_clock, sleep=recording_sleep
        )

        async def call() -> None:
            return None

        await limiter.schedule("zendesk", call)
        await limiter.schedule("freshdesk", call)

        assert recording_sleep.waits == []

    async def test_error_from_call_propagates(self, fake_clock, recording_sleep) -> None:
        """被调用函数的异常原样抛出，且仍记录调用时间."""
        limiter = RateLimiter({"zendesk": 600}, clock=fake_clock, sleep=recording_sleep)

        async def boom() -> None:
            raise RuntimeError("remote down")

        with pytest.raises(RuntimeError, match="remote down"):
            await limiter.schedule("zendesk", boom)

        async def call() -> None:
            return None

        await limiter.schedule("zendesk", call)
        assert len(recording_sleep.waits) == 1

    def test_min_interval_from_rpm(self) -> None:
        """间隔 = 60 / rpm."""
        limiter = RateLimiter({"zendesk": 700, "freshdesk": 80})
        assert limiter.min_interval("zendesk") == pytest.approx(60 / 700)
        assert limiter.min_interval("freshdesk") == pytest.approx(0.75)


class TestSharedLimiter:
    """测试进程级共享实例."""

    def test_get_rate_limiter_is_shared(self) -> None:
        """多次获取返回同一个实例，rpm 来自配置."""
        reset_rate_limiter()

        first = get_rate_limiter()
        second = get_rate_limiter()

        assert first is second
        assert first.requests_per_minute["zendesk"] == 700
        assert first.requests_per_minute["freshdesk"] == 80

    def test_reset_rebuilds_from_settings(self, monkeypatch) -> None:
        """重置后按当前配置重新创建."""
        reset_rate_limiter()
        before = get_rate_limiter()
        monkeypatch.setenv("FRESHDESK_REQUESTS_PER_MINUTE", "40")
        get_settings.cache_clear()
        try:
            reset_rate_limiter()
            after = get_rate_limiter()
        finally:
            get_settings.cache_clear()
            reset_rate_limiter()

        assert after is not before
        assert after.requests_per_minute["freshdesk"] == 40
