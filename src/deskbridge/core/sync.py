"""同步服务 - 知识库与外部帮助中心之间的导入/导出."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from deskbridge.core.category_mapper import CategoryMapper
from deskbridge.core.hashing import content_hash
from deskbridge.core.job import JobTracker
from deskbridge.core.store import Store
from deskbridge.helpdesk.base import (
    HelpdeskClient,
    HelpdeskConfig,
    RemoteArticle,
    RemoteContainer,
)
from deskbridge.helpdesk.factory import create_helpdesk_client
from deskbridge.models.article import Article
from deskbridge.models.mapping import ExternalArticleMapping, MappingDirection
from deskbridge.models.sync import SyncDirection, SyncJob, SyncJobStatus

logger = logging.getLogger(__name__)

ClientFactory = Callable[[HelpdeskConfig], HelpdeskClient]


class SyncError(Exception):
    """任务级同步错误."""


class SyncConfigurationError(SyncError):
    """配置不足，任务无法开始写入远端."""


class SyncCancelledError(SyncError):
    """任务被外部取消."""


class SyncOrchestrator:
    """同步编排器.

    单个任务内顺序处理每篇文章；单篇失败只记入错误日志，
    枚举远端层级失败或配置错误则整个任务失败并向上抛出.
    """

    def __init__(
        self,
        store: Store,
        client_factory: ClientFactory = create_helpdesk_client,
    ) -> None:
        self.store = store
        self.client_factory = client_factory

    async def run(
        self,
        job: SyncJob,
        config: HelpdeskConfig,
        article_ids: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> JobTracker:
        """按任务记录的方向执行导入或导出."""
        if job.provider != config.provider:
            tracker = JobTracker(self.store, job.id)
            msg = f"任务平台 {job.provider.value} 与配置平台 {config.provider.value} 不一致"
            error = SyncConfigurationError(msg)
            if await tracker.refresh_status() == SyncJobStatus.PENDING:
                await _fail_if_active(tracker, error)
            raise error

        if job.direction == SyncDirection.IMPORT:
            return await self.import_articles(
                job.knowledge_base_id, config, job.id, cancel_event=cancel_event
            )
        return await self.export_articles(
            job.knowledge_base_id,
            config,
            job.id,
            article_ids=article_ids,
            cancel_event=cancel_event,
        )

    async def import_articles(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        job_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> JobTracker:
        """从远端导入文章到本地知识库（远端内容优先）."""
        tracker = JobTracker(self.store, job_id)
        client: HelpdeskClient | None = None

        # 任务已在执行或已结束时直接抛出，不改动记录
        await tracker.start()

        try:
            logger.info(
                f"开始导入: kb={knowledge_base_id}, 平台={config.provider.value}, "
                f"任务={job_id}"
            )

            mapper = await CategoryMapper.load(
                self.store, knowledge_base_id, config.category_mappings
            )
            client = self.client_factory(config)

            for category in await client.list_categories():
                for container in await client.list_sections(category.id):
                    articles = await client.list_articles(container.id)
                    await tracker.add_total(len(articles))

                    for remote in articles:
                        _check_cancelled(cancel_event)
                        try:
                            await self._import_one(
                                knowledge_base_id,
                                config,
                                tracker,
                                mapper,
                                container,
                                remote,
                            )
                        except Exception as e:
                            tracker.record_failure(remote.id, e)
                            logger.warning(f"导入文章 {remote.id} 失败: {e}")
                        await tracker.item_done()

            await tracker.complete()
            return tracker

        except Exception as e:
            logger.exception(f"导入任务 {job_id} 失败: {e}")
            await _fail_if_active(tracker, e)
            raise

        finally:
            if client is not None:
                await client.close()

    async def _import_one(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        tracker: JobTracker,
        mapper: CategoryMapper,
        container: RemoteContainer,
        remote: RemoteArticle,
    ) -> None:
        mapping = await self.store.get_external_mapping_by_external_id(
            knowledge_base_id, remote.id, config.provider
        )
        digest = content_hash(remote.body)

        if mapping:
            if mapping.content_hash == digest:
                tracker.record_skipped()
                return

            if not mapping.local_article_id:
                msg = f"映射 {mapping.id} 对应的本地文章已不存在"
                raise SyncError(msg)

            category_id = await mapper.resolve(container)
            fields: dict[str, object] = {"title": remote.title, "content": remote.body}
            if category_id:
                fields["category_id"] = category_id
            await self.store.update_article(mapping.local_article_id, fields)

            await self.store.update_external_mapping(
                mapping.id,
                {
                    "content_hash": digest,
                    "external_url": remote.url or mapping.external_url,
                    "external_updated_at": remote.updated_at,
                    "local_updated_at": datetime.utcnow(),
                },
            )
            tracker.record_updated()
            return

        category_id = await mapper.resolve(container)
        article = await self.store.create_article(
            Article(
                knowledge_base_id=knowledge_base_id,
                category_id=category_id,
                title=remote.title,
                content=remote.body,
                is_public=remote.published,
            )
        )
        await self.store.create_external_mapping(
            ExternalArticleMapping(
                knowledge_base_id=knowledge_base_id,
                local_article_id=article.id,
                provider=config.provider,
                external_id=remote.id,
                external_url=remote.url,
                sync_direction=MappingDirection.IMPORTED,
                content_hash=digest,
                external_updated_at=remote.updated_at,
                local_updated_at=article.updated_at,
            )
        )
        tracker.record_created()

    async def export_articles(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        job_id: str,
        article_ids: list[str] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> JobTracker:
        """把本地文章导出到远端（本地内容优先）.

        未指定 article_ids 时导出全部公开文章.
        """
        tracker = JobTracker(self.store, job_id)
        client: HelpdeskClient | None = None

        # 任务已在执行或已结束时直接抛出，不改动记录
        await tracker.start()

        try:
            logger.info(
                f"开始导出: kb={knowledge_base_id}, 平台={config.provider.value}, "
                f"任务={job_id}"
            )

            all_articles = await self.store.get_articles_by_knowledge_base_id(
                knowledge_base_id
            )
            if article_ids is not None:
                wanted = set(article_ids)
                candidates = [a for a in all_articles if a.id in wanted]
            else:
                candidates = [a for a in all_articles if a.is_public]

            # 先确定所有目标容器，任何一篇无处可写都在调用远端前失败
            mapper = CategoryMapper(
                self.store, knowledge_base_id, [], config.category_mappings
            )
            default_container = config.default_container_id
            targets: dict[str, str] = {}
            unmapped: list[str] = []
            for article in candidates:
                target = mapper.target_container(article.category_id, default_container)
                if target is None:
                    unmapped.append(article.id)
                else:
                    targets[article.id] = target

            if unmapped:
                msg = (
                    f"未配置默认导出容器，且 {len(unmapped)} 篇文章的分类没有映射: "
                    f"{', '.join(unmapped[:5])}"
                )
                raise SyncConfigurationError(msg)

            await tracker.add_total(len(candidates))
            client = self.client_factory(config)

            for article in candidates:
                _check_cancelled(cancel_event)
                try:
                    await self._export_one(
                        knowledge_base_id,
                        config,
                        tracker,
                        client,
                        article,
                        targets[article.id],
                    )
                except Exception as e:
                    tracker.record_failure(article.id, e)
                    logger.warning(f"导出文章 {article.id} 失败: {e}")
                await tracker.item_done()

            await tracker.complete()
            return tracker

        except Exception as e:
            logger.exception(f"导出任务 {job_id} 失败: {e}")
            await _fail_if_active(tracker, e)
            raise

        finally:
            if client is not None:
                await client.close()

    async def _export_one(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        tracker: JobTracker,
        client: HelpdeskClient,
        article: Article,
        target_container: str,
    ) -> None:
        mapping = await self.store.get_external_mapping_by_local_article(
            knowledge_base_id, article.id, config.provider
        )
        digest = content_hash(article.content)

        if mapping:
            if mapping.content_hash == digest:
                tracker.record_skipped()
                return

            remote = await client.update_article(
                mapping.external_id, article.title, article.content
            )
            await self.store.update_external_mapping(
                mapping.id,
                {
                    "content_hash": digest,
                    "external_url": remote.url or mapping.external_url,
                    "local_updated_at": article.updated_at,
                    "external_updated_at": remote.updated_at,
                },
            )
            tracker.record_updated()
            return

        remote = await client.create_article(
            target_container, article.title, article.content
        )
        await self.store.create_external_mapping(
            ExternalArticleMapping(
                knowledge_base_id=knowledge_base_id,
                local_article_id=article.id,
                provider=config.provider,
                external_id=remote.id,
                external_url=remote.url,
                sync_direction=MappingDirection.EXPORTED,
                content_hash=digest,
                local_updated_at=article.updated_at,
                external_updated_at=remote.updated_at,
            )
        )
        tracker.record_created()


def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        msg = "任务已被取消"
        raise SyncCancelledError(msg)


async def _fail_if_active(tracker: JobTracker, error: Exception) -> None:
    """任务尚未进入终态时标记为失败."""
    if tracker.status not in (SyncJobStatus.PENDING, SyncJobStatus.RUNNING):
        return
    try:
        await tracker.fail(error)
    except Exception:
        # 保留原始异常向上抛出
        logger.exception(f"标记任务 {tracker.job_id} 失败时出错")
