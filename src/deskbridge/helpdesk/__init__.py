"""外部帮助中心平台客户端."""

from deskbridge.helpdesk.base import (
    CategoryMapping,
    ConnectionTestResult,
    HelpdeskAPIError,
    HelpdeskClient,
    HelpdeskConfig,
    HelpdeskError,
    RemoteArticle,
    RemoteCategory,
    RemoteContainer,
)
from deskbridge.helpdesk.factory import create_helpdesk_client
from deskbridge.helpdesk.freshdesk import FreshdeskClient
from deskbridge.helpdesk.ratelimit import RateLimiter, get_rate_limiter
from deskbridge.helpdesk.zendesk import ZendeskClient

__all__ = [
    "CategoryMapping",
    "ConnectionTestResult",
    "FreshdeskClient",
    "HelpdeskAPIError",
    "HelpdeskClient",
    "HelpdeskConfig",
    "HelpdeskError",
    "RateLimiter",
    "RemoteArticle",
    "RemoteCategory",
    "RemoteContainer",
    "ZendeskClient",
    "create_helpdesk_client",
    "get_rate_limiter",
]
