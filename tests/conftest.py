"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import deskbridge.models  # noqa: F401
from deskbridge.core.store import SQLModelStore
from deskbridge.helpdesk.base import (
    ConnectionTestResult,
    HelpdeskAPIError,
    HelpdeskConfig,
    RemoteArticle,
    RemoteCategory,
    RemoteContainer,
)
from deskbridge.helpdesk.ratelimit import RateLimiter
from deskbridge.models.mapping import ExternalArticleMapping
from deskbridge.models.sync import HelpdeskProvider, SyncDirection, SyncJob


class FakeHelpdeskClient:
    """内存中的帮助中心，记录所有调用."""

    def __init__(self, provider: HelpdeskProvider = HelpdeskProvider.ZENDESK) -> None:
        self.provider = provider
        self.categories: list[RemoteCategory] = []
        self.sections: dict[str, list[RemoteContainer]] = {}
        self.articles: dict[str, list[RemoteArticle]] = {}
        self.calls: list[str] = []
        self.failing_titles: set[str] = set()
        self.fail_listing = False
        self.closed = False
        self._next_id = 9000

    def add_container(
        self, container_id: str, name: str, category_id: str = "1"
    ) -> RemoteContainer:
        if not any(c.id == category_id for c in self.categories):
            self.categories.append(RemoteCategory(id=category_id, name="General"))
        container = RemoteContainer(id=container_id, name=name, category_id=category_id)
        self.sections.setdefault(category_id, []).append(container)
        self.articles.setdefault(container_id, [])
        return container

    def add_article(
        self,
        container_id: str,
        article_id: str,
        title: str,
        body: str,
        published: bool = True,
    ) -> RemoteArticle:
        article = RemoteArticle(
            id=article_id,
            title=title,
            body=body,
            published=published,
            container_id=container_id,
            url=f"https://acme.zendesk.com/hc/articles/{article_id}",
        )
        self.articles.setdefault(container_id, []).append(article)
        return article

    def find(self, article_id: str) -> RemoteArticle:
        for items in self.articles.values():
            for article in items:
                if article.id == article_id:
                    return article
        raise KeyError(article_id)

    @property
    def remote_calls(self) -> list[str]:
        return [c for c in self.calls if c != "close"]

    async def list_categories(self) -> list[RemoteCategory]:
        self.calls.append("list_categories")
        if self.fail_listing:
            raise HelpdeskAPIError(503, "Service Unavailable", "获取分类")
        return list(self.categories)

    async def list_sections(
        self, category_id: str | None = None
    ) -> list[RemoteContainer]:
        self.calls.append(f"list_sections:{category_id}")
        if category_id is None:
            return [s for items in self.sections.values() for s in items]
        return list(self.sections.get(category_id, []))

    async def list_articles(
        self, container_id: str | None = None
    ) -> list[RemoteArticle]:
        self.calls.append(f"list_articles:{container_id}")
        return [
            RemoteArticle(**vars(a)) for a in self.articles.get(container_id or "", [])
        ]

    async def create_article(
        self, container_id: str, title: str, body: str
    ) -> RemoteArticle:
        self.calls.append(f"create_article:{container_id}")
        if title in self.failing_titles:
            raise HelpdeskAPIError(422, '{"error":"invalid"}', "创建文章")
        self._next_id += 1
        return self.add_article(container_id, str(self._next_id), title, body)

    async def update_article(
        self, external_id: str, title: str, body: str
    ) -> RemoteArticle:
        self.calls.append(f"update_article:{external_id}")
        if title in self.failing_titles:
            raise HelpdeskAPIError(422, '{"error":"invalid"}', "更新文章")
        article = self.find(external_id)
        article.title = title
        article.body = body
        return article

    async def test_connection(self) -> ConnectionTestResult:
        self.calls.append("test_connection")
        return ConnectionTestResult(True, "ok")

    async def close(self) -> None:
        self.calls.append("close")
        self.closed = True


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """创建测试用的内存数据库会话工厂."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> SQLModelStore:
    return SQLModelStore(session_factory)


class FlakyMappingStore(SQLModelStore):
    """broken_ids 中的外部 ID 或本地文章 ID 写入映射时失败."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session_factory)
        self.broken_ids: set[str] = set()

    async def create_external_mapping(
        self, mapping: ExternalArticleMapping
    ) -> ExternalArticleMapping:
        if {mapping.external_id, mapping.local_article_id} & self.broken_ids:
            msg = f"写入映射失败: {mapping.external_id}"
            raise RuntimeError(msg)
        return await super().create_external_mapping(mapping)


@pytest.fixture
def flaky_mapping_store(
    session_factory: async_sessionmaker[AsyncSession],
) -> FlakyMappingStore:
    return FlakyMappingStore(session_factory)


@pytest.fixture
def zendesk_config() -> HelpdeskConfig:
    return HelpdeskConfig(
        provider=HelpdeskProvider.ZENDESK,
        subdomain="acme",
        email="ops@acme.test",
        api_token="zd-token",
        default_section_id="500",
    )


@pytest.fixture
def freshdesk_config() -> HelpdeskConfig:
    return HelpdeskConfig(
        provider=HelpdeskProvider.FRESHDESK,
        subdomain="acme",
        api_key="fd-key",
        default_folder_id="700",
    )


@pytest.fixture
def fake_remote() -> FakeHelpdeskClient:
    return FakeHelpdeskClient()


@pytest.fixture
def client_factory(
    fake_remote: FakeHelpdeskClient,
) -> Callable[[HelpdeskConfig], FakeHelpdeskClient]:
    """每次创建客户端都返回同一个内存帮助中心."""

    def _factory(config: HelpdeskConfig) -> FakeHelpdeskClient:
        fake_remote.provider = config.provider
        return fake_remote

    return _factory


@pytest.fixture
def make_job(
    store: SQLModelStore,
) -> Callable[..., Awaitable[SyncJob]]:
    """创建 pending 状态的任务记录."""

    async def _make(
        direction: SyncDirection = SyncDirection.IMPORT,
        provider: HelpdeskProvider = HelpdeskProvider.ZENDESK,
        knowledge_base_id: str = "kb-1",
    ) -> SyncJob:
        return await store.create_sync_job(
            SyncJob(
                knowledge_base_id=knowledge_base_id,
                provider=provider,
                direction=direction,
            )
        )

    return _make


class RecordingSleep:
    """记录等待时长并推进假时钟."""

    def __init__(self, clock: "FakeClock") -> None:
        self.clock = clock
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)
        self.clock.now += seconds


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(fake_clock)


@pytest.fixture
def no_wait_limiter() -> RateLimiter:
    """不真正等待的限流器."""

    async def _sleep(seconds: float) -> None:
        return None

    return RateLimiter({"zendesk": 700, "freshdesk": 80}, sleep=_sleep)

