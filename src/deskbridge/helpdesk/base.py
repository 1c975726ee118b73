"""帮助中心平台的通用类型与能力接口."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, Self

from pydantic import BaseModel, Field, model_validator

from deskbridge.models.sync import HelpdeskProvider


class HelpdeskError(Exception):
    """帮助中心调用错误."""


class HelpdeskAPIError(HelpdeskError):
    """远端 API 返回非 2xx."""

    def __init__(self, status_code: int, body: str, action: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.action = action
        prefix = f"{action} 失败" if action else "请求失败"
        super().__init__(f"{prefix}: HTTP {status_code} {body[:300]}")


class CategoryMapping(BaseModel):
    """运营人员配置的 本地分类 <-> 外部 section/folder 映射."""

    local_category_id: str
    external_section_id: str
    external_section_name: str | None = None


class HelpdeskConfig(BaseModel):
    """单个知识库的帮助中心连接配置."""

    provider: HelpdeskProvider
    subdomain: str = Field(min_length=1)

    # Zendesk: email + API token
    email: str | None = None
    api_token: str | None = None

    # Freshdesk: API key
    api_key: str | None = None

    default_section_id: str | None = None  # Zendesk 导出默认 section
    default_folder_id: str | None = None  # Freshdesk 导出默认 folder
    locale: str = "en-us"
    category_mappings: list[CategoryMapping] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_credentials(self) -> Self:
        if self.provider == HelpdeskProvider.ZENDESK:
            if not self.email or not self.api_token:
                msg = "Zendesk 需要 email 和 api_token"
                raise ValueError(msg)
        elif not self.api_key:
            msg = "Freshdesk 需要 api_key"
            raise ValueError(msg)
        return self

    @property
    def default_container_id(self) -> str | None:
        """导出时的默认容器（section 或 folder）."""
        if self.provider == HelpdeskProvider.ZENDESK:
            return self.default_section_id or None
        return self.default_folder_id or None


@dataclass
class RemoteCategory:
    """远端顶层分类."""

    id: str
    name: str
    description: str = ""


@dataclass
class RemoteContainer:
    """直接包含文章的容器: Zendesk section / Freshdesk folder."""

    id: str
    name: str
    description: str = ""
    category_id: str | None = None


@dataclass
class RemoteArticle:
    """远端文章."""

    id: str
    title: str
    body: str
    published: bool
    container_id: str | None = None
    url: str | None = None
    updated_at: datetime | None = None


@dataclass
class ConnectionTestResult:
    """连接测试结果."""

    success: bool
    message: str


class HelpdeskClient(Protocol):
    """各平台客户端需要提供的能力."""

    provider: HelpdeskProvider

    async def list_categories(self) -> list[RemoteCategory]: ...

    async def list_sections(
        self, category_id: str | None = None
    ) -> list[RemoteContainer]: ...

    async def list_articles(
        self, container_id: str | None = None
    ) -> list[RemoteArticle]: ...

    async def create_article(
        self, container_id: str, title: str, body: str
    ) -> RemoteArticle: ...

    async def update_article(
        self, external_id: str, title: str, body: str
    ) -> RemoteArticle: ...

    async def test_connection(self) -> ConnectionTestResult: ...

    async def close(self) -> None: ...


def parse_timestamp(value: str | None) -> datetime | None:
    """解析 ISO-8601 时间（如 2024-01-02T03:04:05Z），返回 naive UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed
