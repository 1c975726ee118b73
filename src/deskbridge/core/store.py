"""同步引擎依赖的持久化接口及其 SQLModel 实现."""

from datetime import datetime
from typing import Any, Protocol, TypeVar

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from deskbridge.models.article import Article, Category
from deskbridge.models.mapping import ExternalArticleMapping
from deskbridge.models.sync import HelpdeskProvider, SyncJob, SyncJobStatus

ModelT = TypeVar("ModelT", bound=SQLModel)


class Store(Protocol):
    """同步引擎需要的存储操作，由调用方注入."""

    async def get_categories_by_knowledge_base_id(
        self, knowledge_base_id: str
    ) -> list[Category]: ...

    async def create_category(self, category: Category) -> Category: ...

    async def get_articles_by_knowledge_base_id(
        self, knowledge_base_id: str
    ) -> list[Article]: ...

    async def create_article(self, article: Article) -> Article: ...

    async def update_article(
        self, article_id: str, fields: dict[str, Any]
    ) -> Article: ...

    async def get_external_mapping_by_external_id(
        self, knowledge_base_id: str, external_id: str, provider: HelpdeskProvider
    ) -> ExternalArticleMapping | None: ...

    async def get_external_mapping_by_local_article(
        self, knowledge_base_id: str, local_article_id: str, provider: HelpdeskProvider
    ) -> ExternalArticleMapping | None: ...

    async def create_external_mapping(
        self, mapping: ExternalArticleMapping
    ) -> ExternalArticleMapping: ...

    async def update_external_mapping(
        self, mapping_id: str, fields: dict[str, Any]
    ) -> ExternalArticleMapping: ...

    async def create_sync_job(self, job: SyncJob) -> SyncJob: ...

    async def get_sync_job(self, job_id: str) -> SyncJob | None: ...

    async def update_sync_job(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: SyncJobStatus | None = None,
    ) -> SyncJob | None: ...


class SQLModelStore:
    """基于 SQLModel 的 Store 实现.

    每个操作使用独立会话并立即提交，任务进度对轮询方实时可见.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _add(self, obj: ModelT) -> ModelT:
        async with self._session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
            return obj

    async def _update(
        self,
        model: type[ModelT],
        obj_id: str,
        fields: dict[str, Any],
        touch: bool = True,
    ) -> ModelT:
        async with self._session_factory() as session:
            obj = await session.get(model, obj_id)
            if obj is None:
                msg = f"{model.__name__} 不存在: {obj_id}"
                raise LookupError(msg)

            for key, value in fields.items():
                setattr(obj, key, value)
            if touch and hasattr(obj, "updated_at"):
                obj.updated_at = datetime.utcnow()

            await session.commit()
            await session.refresh(obj)
            return obj

    async def get_categories_by_knowledge_base_id(
        self, knowledge_base_id: str
    ) -> list[Category]:
        async with self._session_factory() as session:
            stmt = (
                select(Category)
                .where(Category.knowledge_base_id == knowledge_base_id)
                .order_by(Category.order)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create_category(self, category: Category) -> Category:
        return await self._add(category)

    async def get_articles_by_knowledge_base_id(
        self, knowledge_base_id: str
    ) -> list[Article]:
        async with self._session_factory() as session:
            stmt = (
                select(Article)
                .where(Article.knowledge_base_id == knowledge_base_id)
                .order_by(Article.created_at)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def create_article(self, article: Article) -> Article:
        return await self._add(article)

    async def update_article(self, article_id: str, fields: dict[str, Any]) -> Article:
        return await self._update(Article, article_id, fields)

    async def get_external_mapping_by_external_id(
        self, knowledge_base_id: str, external_id: str, provider: HelpdeskProvider
    ) -> ExternalArticleMapping | None:
        async with self._session_factory() as session:
            stmt = select(ExternalArticleMapping).where(
                ExternalArticleMapping.knowledge_base_id == knowledge_base_id,
                ExternalArticleMapping.external_id == external_id,
                ExternalArticleMapping.provider == provider,
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def get_external_mapping_by_local_article(
        self, knowledge_base_id: str, local_article_id: str, provider: HelpdeskProvider
    ) -> ExternalArticleMapping | None:
        async with self._session_factory() as session:
            stmt = select(ExternalArticleMapping).where(
                ExternalArticleMapping.knowledge_base_id == knowledge_base_id,
                ExternalArticleMapping.local_article_id == local_article_id,
                ExternalArticleMapping.provider == provider,
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def create_external_mapping(
        self, mapping: ExternalArticleMapping
    ) -> ExternalArticleMapping:
        return await self._add(mapping)

    async def update_external_mapping(
        self, mapping_id: str, fields: dict[str, Any]
    ) -> ExternalArticleMapping:
        return await self._update(ExternalArticleMapping, mapping_id, fields)

    async def create_sync_job(self, job: SyncJob) -> SyncJob:
        return await self._add(job)

    async def get_sync_job(self, job_id: str) -> SyncJob | None:
        async with self._session_factory() as session:
            return await session.get(SyncJob, job_id)

    async def update_sync_job(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_status: SyncJobStatus | None = None,
    ) -> SyncJob | None:
        """更新任务记录.

        指定 expected_status 时只在已保存的状态仍为该值时写入（条件 UPDATE），
        否则不做任何修改并返回 None.
        """
        if expected_status is None:
            return await self._update(SyncJob, job_id, fields, touch=False)

        async with self._session_factory() as session:
            stmt = (
                update(SyncJob)
                .where(SyncJob.id == job_id, SyncJob.status == expected_status)
                .values(**fields)
            )
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount == 0:
                return None
            return await session.get(SyncJob, job_id)
