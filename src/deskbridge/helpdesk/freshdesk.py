"""Freshdesk Solutions API 客户端."""

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

API_PREFIX = "/api/v2/solutions"

# Freshdesk 文章状态: 1 草稿, 2 已发布
STATUS_PUBLISHED = 2


class FreshdeskClient:
    """Freshdesk Solutions 客户端: categories -> folders -> articles."""

    provider = HelpdeskProvider.FRESHDESK

    def __init__(
        self,
        config: HelpdeskConfig,
        rate_limiter: RateLimiter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
        page_size: int | None = None,
    ) -> None:
        if page_size is None:
            from deskbridge.config import get_settings

            page_size = get_settings().freshdesk_page_size

        self.config = config
        self.page_size = page_size
        self.http = RateLimitedHTTP(
            provider=self.provider.value,
            base_url=f"https://{config.subdomain}.freshdesk.com",
            # API key 作为用户名，密码固定为 X
            authorization=basic_auth_header(config.api_key or "", "X"),
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

    async def _get_all(self, path: str, action: str) -> list[dict[str, Any]]:
        """按 Link: rel="next" 翻页直到结束，返回完整列表."""
        items: list[dict[str, Any]] = []
        next_url: str | None = path
        params: dict[str, int] | None = {"page": 1, "per_page": self.page_size}

        while next_url:
            response = await self.http.request("GET", next_url, action, params=params)
            items.extend(response.json() or [])
            next_url = response.links.get("next", {}).get("url")
            # 后续页的 URL 已带分页参数
            params = None

        logger.debug(f"{action}: 共 {len(items)} 条")
        return items

    async def list_categories(self) -> list[RemoteCategory]:
        """获取所有分类."""
        raw = await self._get_all(f"{API_PREFIX}/categories", "获取分类")
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
        """获取分类下的 folder（Freshdesk 没有全局 folder 列表）."""
        if not category_id:
            msg = "Freshdesk 获取 folder 需要 category_id"
            raise ValueError(msg)

        raw = await self._get_all(
            f"{API_PREFIX}/categories/{category_id}/folders", "获取 folder"
        )
        return [
            RemoteContainer(
                id=str(f["id"]),
                name=f.get("name") or "",
                description=f.get("description") or "",
                category_id=str(f.get("category_id") or category_id),
            )
            for f in raw
        ]

    async def list_articles(
        self, container_id: str | None = None
    ) -> list[RemoteArticle]:
        """获取 folder 下的全部文章（自动翻页）."""
        if not container_id:
            msg = "Freshdesk 获取文章需要 folder_id"
            raise ValueError(msg)

        raw = await self._get_all(
            f"{API_PREFIX}/folders/{container_id}/articles", "获取文章"
        )
        return [self._parse_article(a) for a in raw]

    async def create_article(
        self, container_id: str, title: str, body: str
    ) -> RemoteArticle:
        """在指定 folder 下创建已发布文章."""
        response = await self.http.request(
            "POST",
            f"{API_PREFIX}/folders/{container_id}/articles",
            "创建文章",
            json={"title": title, "description": body, "status": STATUS_PUBLISHED},
        )
        return self._parse_article(response.json())

    async def update_article(
        self, external_id: str, title: str, body: str
    ) -> RemoteArticle:
        """更新文章标题和正文."""
        response = await self.http.request(
            "PUT",
            f"{API_PREFIX}/articles/{external_id}",
            "更新文章",
            json={"title": title, "description": body},
        )
        return self._parse_article(response.json())

    async def test_connection(self) -> ConnectionTestResult:
        """测试连接与凭证."""
        try:
            response = await self.http.send("GET", f"{API_PREFIX}/categories")
        except httpx.HTTPError as e:
            return ConnectionTestResult(False, f"连接错误: {e}")

        if response.status_code == 401:
            return ConnectionTestResult(False, "API key 无效")
        if not response.is_success:
            return ConnectionTestResult(
                False, f"连接失败: HTTP {response.status_code}"
            )
        return ConnectionTestResult(True, "已成功连接 Freshdesk")

    def _parse_article(self, item: dict[str, Any]) -> RemoteArticle:
        folder_id = item.get("folder_id")
        article_id = str(item["id"])
        return RemoteArticle(
            id=article_id,
            title=item.get("title") or "",
            body=item.get("description") or "",
            published=item.get("status") == STATUS_PUBLISHED,
            container_id=str(folder_id) if folder_id else None,
            url=(
                f"https://{self.config.subdomain}.freshdesk.com"
                f"/support/solutions/articles/{article_id}"
            ),
            updated_at=parse_timestamp(item.get("updated_at")),
        )
