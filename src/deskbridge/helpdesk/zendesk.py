"""Zendesk Help Center API 客户端."""

import logging
from typing import Any, Self

import httpx

from deskbridge.helpdesk.base import (
    ConnectionTestResult,
    HelpdeskConfig,
    RemoteArticle,
    RemoteCategory,
    RemoteContainer,
    parse_timestamp,
)
from deskbridge.helpdesk.http import RateLimitedHTTP, basic_auth_header
from deskbridge.helpdesk.ratelimit import RateLimiter
from deskbridge.models.sync import HelpdeskProvider

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2/help_center"


class ZendeskClient:
    """Zendesk Help Center 客户端: categories -> sections -> articles."""

    provider = HelpdeskProvider.ZENDESK

    def __init__(
        self,
        config: HelpdeskConfig,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        self.config = config
        self.http = RateLimitedHTTP(
            provider=self.provider.value,
            base_url=f"https://{config.subdomain}.zendesk.com",
            authorization=basic_auth_header(
                f"{config.email}/token", config.api_token or ""
            ),
            rate_limiter=rate_limiter,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """关闭客户端."""
        await self.http.close()

    async def _get_all(self, path: str, key: str, action: str) -> list[dict[str, Any]]:
        """沿 next_page 翻页直到结束，返回完整列表."""
        items: list[dict[str, Any]] = []
        next_page: str | None = path

        while next_page:
            response = await self.http.request("GET", next_page, action)
            data = response.json()
            items.extend(data.get(key) or [])
            next_page = data.get("next_page")

        logger.debug(f"{action}: 共 {len(items)} 条")
        return items

    async def list_categories(self) -> list[RemoteCategory]:
        """获取所有分类."""
        raw = await self._get_all(
            f"{API_PREFIX}/categories.json", "categories", "获取分类"
        )
        return [
            RemoteCategory(
                id=str(c["id"]),
                name=c.get("name") or "",
                description=c.get("description") or "",
            )
            for c in raw
        ]

    async def list_sections(
        self, category_id: str | None = None
    ) -> list[RemoteContainer]:
        """获取 section，指定 category_id 时只返回该分类下的."""
        path = (
            f"{API_PREFIX}/categories/{category_id}/sections.json"
            if category_id
            else f"{API_PREFIX}/sections.json"
        )
        raw = await self._get_all(path, "sections", "获取 section")
        return [
            RemoteContainer(
                id=str(s["id"]),
                name=s.get("name") or "",
                description=s.get("description") or "",
                category_id=str(s["category_id"]) if s.get("category_id") else None,
            )
            for s in raw
        ]

    async def list_articles(
        self, container_id: str | None = None
    ) -> list[RemoteArticle]:
        """获取文章（自动翻页），指定 container_id 时只返回该 section 下的."""
        path = (
            f"{API_PREFIX}/sections/{container_id}/articles.json"
            if container_id
            else f"{API_PREFIX}/articles.json"
        )
        raw = await self._get_all(path, "articles", "获取文章")
        return [self._parse_article(a) for a in raw]

    async def create_article(
        self, container_id: str, title: str, body: str
    ) -> RemoteArticle:
        """在指定 section 下创建已发布文章."""
        payload = {
            "article": {
                "title": title,
                "body": body,
                "locale": self.config.locale,
                "draft": False,
            },
            "notify_subscribers": False,
        }
        response = await self.http.request(
            "POST",
            f"{API_PREFIX}/sections/{container_id}/articles.json",
            "创建文章",
            json=payload,
        )
        return self._parse_article(response.json()["article"])

    async def update_article(
        self, external_id: str, title: str, body: str
    ) -> RemoteArticle:
        """更新文章标题和正文."""
        response = await self.http.request(
            "PUT",
            f"{API_PREFIX}/articles/{external_id}.json",
            "更新文章",
            json={"article": {"title": title, "body": body}},
        )
        return self._parse_article(response.json()["article"])

    async def test_connection(self) -> ConnectionTestResult:
        """测试连接与凭证."""
        try:
            response = await self.http.send("GET", f"{API_PREFIX}/categories.json")
        except httpx.HTTPError as e:
            return ConnectionTestResult(False, f"连接错误: {e}")

        if response.status_code == 401:
            return ConnectionTestResult(False, "凭证无效，请检查 email 和 API token")
        if not response.is_success:
            return ConnectionTestResult(
                False, f"连接失败: HTTP {response.status_code}"
            )
        return ConnectionTestResult(True, "已成功连接 Zendesk Help Center")

    def _parse_article(self, item: dict[str, Any]) -> RemoteArticle:
        section_id = item.get("section_id")
        return RemoteArticle(
            id=str(item["id"]),
            title=item.get("title") or "",
            body=item.get("body") or "",
            published=not item.get("draft", False),
            container_id=str(section_id) if section_id else None,
            url=item.get("html_url"),
            updated_at=parse_timestamp(item.get("updated_at")),
        )
