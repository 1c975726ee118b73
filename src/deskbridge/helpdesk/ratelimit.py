"""按平台的最小请求间隔限流."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 未配置的平台使用的保守默认值
DEFAULT_REQUESTS_PER_MINUTE = 60


class RateLimiter:
    """软限流器：保证同一平台相邻两次调用至少间隔 60s / rpm.

    每个平台只记录最近一次调用时间，不是令牌桶；
    同一平台的并发调用仍可能相互靠近.
    """

    def __init__(
        self,
        requests_per_minute: Mapping[str, int] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.requests_per_minute: dict[str, int] = dict(requests_per_minute or {})
        self._clock = clock
        self._sleep = sleep
        self._last_call: dict[str, float] = {}

    def min_interval(self, provider: str) -> float:
        """平台的最小调用间隔（秒）."""
        rpm = self.requests_per_minute.get(provider, DEFAULT_REQUESTS_PER_MINUTE)
        return 60.0 / rpm

    async def schedule(self, provider: str, fn: Callable[[], Awaitable[T]]) -> T:
        """等待到允许的时间点后执行 fn，fn 的异常原样抛出."""
        interval = self.min_interval(provider)
        last = self._last_call.get(provider)

        if last is not None:
            elapsed = self._clock() - last
            if elapsed < interval:
                wait = interval - elapsed
                logger.debug(f"[{provider}] 限流等待 {wait:.3f}s")
                await self._sleep(wait)

        self._last_call[provider] = self._clock()
        return await fn()


# 进程级共享实例：同一平台的所有任务共用一个预算
_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """获取进程级限流器（懒加载，读取配置中的 rpm）."""
    global _rate_limiter
    if _rate_limiter is None:
        from deskbridge.config import get_settings

        settings = get_settings()
        _rate_limiter = RateLimiter(
            {
                "zendesk": settings.zendesk_requests_per_minute,
                "freshdesk": settings.freshdesk_requests_per_minute,
            }
        )
    return _rate_limiter


def reset_rate_limiter() -> None:
    """重置共享限流器（配置变更或测试时调用）."""
    global _rate_limiter
    _rate_limiter = None
