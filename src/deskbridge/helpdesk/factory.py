"""帮助中心客户端工厂."""

import httpx

from deskbridge.helpdesk.base import HelpdeskClient, HelpdeskConfig
from deskbridge.helpdesk.freshdesk import FreshdeskClient
from deskbridge.helpdesk.ratelimit import RateLimiter
from deskbridge.helpdesk.zendesk import ZendeskClient
from deskbridge.models.sync import HelpdeskProvider


def create_helpdesk_client(
    config: HelpdeskConfig,
    rate_limiter: RateLimiter | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HelpdeskClient:
    """根据 config.provider 创建对应平台的客户端."""
    if config.provider == HelpdeskProvider.ZENDESK:
        return ZendeskClient(config, rate_limiter=rate_limiter, transport=transport)
    if config.provider == HelpdeskProvider.FRESHDESK:
        return FreshdeskClient(config, rate_limiter=rate_limiter, transport=transport)

    msg = f"不支持的平台: {config.provider}"
    raise ValueError(msg)
