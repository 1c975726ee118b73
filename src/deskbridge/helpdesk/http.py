"""带限流与统一错误处理的 HTTP 传输."""

import base64
from typing import Any

import httpx

from deskbridge.helpdesk.base import HelpdeskAPIError
from deskbridge.helpdesk.ratelimit import RateLimiter, get_rate_limiter


def basic_auth_header(username: str, password: str) -> str:
    """构造 HTTP Basic 认证头."""
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {token}"


class RateLimitedHTTP:
    """httpx.AsyncClient 封装：每次请求都经过平台限流器."""

    def __init__(
        self,
        provider: str,
        base_url: str,
        authorization: str,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        if timeout is None:
            from deskbridge.config import get_settings

            timeout = get_settings().http_timeout_seconds

        self.provider = provider
        self.base_url = base_url
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": authorization,
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        """关闭客户端."""
        await self._client.aclose()

    def url(self, path: str) -> str:
        """拼接绝对 URL；已是绝对地址的分页链接原样返回."""
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}{path}"

    async def send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """发送请求，不检查状态码."""

        async def _do() -> httpx.Response:
            return await self._client.request(method, self.url(path), **kwargs)

        return await self.rate_limiter.schedule(self.provider, _do)

    async def request(
        self,
        method: str,
        path: str,
        action: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """发送请求，非 2xx 时抛出 HelpdeskAPIError."""
        response = await self.send(method, path, **kwargs)
        if not response.is_success:
            raise HelpdeskAPIError(response.status_code, response.text, action)
        return response
