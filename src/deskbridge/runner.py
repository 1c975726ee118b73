"""任务调用方：创建任务、后台执行、供轮询查询状态."""

import asyncio
import logging
from datetime import datetime

from deskbridge.config import get_settings
from deskbridge.core.job import InvalidJobTransition, error_entry
from deskbridge.core.store import SQLModelStore, Store
from deskbridge.core.sync import SyncOrchestrator
from deskbridge.helpdesk.base import ConnectionTestResult, HelpdeskConfig
from deskbridge.models.database import init_db
from deskbridge.models.sync import SyncDirection, SyncJob, SyncJobStatus

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    """配置日志."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class SyncRunner:
    """以 fire-and-forget 方式启动同步任务.

    任务结果只通过 SyncJob 记录体现；后台任务自身的异常会被记录日志，
    不会再向调用方抛出.
    """

    def __init__(
        self,
        store: Store,
        orchestrator: SyncOrchestrator | None = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator or SyncOrchestrator(store)
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}

    async def start_import(
        self, knowledge_base_id: str, config: HelpdeskConfig
    ) -> SyncJob:
        """创建导入任务并在后台执行."""
        return await self._start(knowledge_base_id, config, SyncDirection.IMPORT)

    async def start_export(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        article_ids: list[str] | None = None,
    ) -> SyncJob:
        """创建导出任务并在后台执行."""
        return await self._start(
            knowledge_base_id, config, SyncDirection.EXPORT, article_ids
        )

    async def _start(
        self,
        knowledge_base_id: str,
        config: HelpdeskConfig,
        direction: SyncDirection,
        article_ids: list[str] | None = None,
    ) -> SyncJob:
        job = await self.store.create_sync_job(
            SyncJob(
                knowledge_base_id=knowledge_base_id,
                provider=config.provider,
                direction=direction,
            )
        )
        cancel_event = asyncio.Event()
        self._cancel_events[job.id] = cancel_event
        self._tasks[job.id] = asyncio.create_task(
            self._run(job, config, article_ids, cancel_event),
            name=f"sync-{job.id}",
        )
        logger.info(
            f"已创建{direction.value}任务 {job.id} "
            f"(kb={knowledge_base_id}, 平台={config.provider.value})"
        )
        return job

    async def _run(
        self,
        job: SyncJob,
        config: HelpdeskConfig,
        article_ids: list[str] | None,
        cancel_event: asyncio.Event,
    ) -> None:
        try:
            await self.orchestrator.run(
                job, config, article_ids=article_ids, cancel_event=cancel_event
            )
        except InvalidJobTransition as e:
            # 记录归其他执行所有或已结束
            logger.warning(f"任务 {job.id} 未执行: {e}")
        except Exception as e:
            logger.error(f"任务 {job.id} 失败: {e}")
            await self._ensure_failed(job.id, e)
        finally:
            self._tasks.pop(job.id, None)
            self._cancel_events.pop(job.id, None)

    async def _ensure_failed(self, job_id: str, error: Exception) -> None:
        """编排器未能标记失败时由调用方补记."""
        current = await self.store.get_sync_job(job_id)
        if current is None or current.status not in (
            SyncJobStatus.PENDING,
            SyncJobStatus.RUNNING,
        ):
            return
        await self.store.update_sync_job(
            job_id,
            {
                "status": SyncJobStatus.FAILED,
                "completed_at": datetime.utcnow(),
                "error_log": [*current.error_log, error_entry(None, error)],
            },
            expected_status=current.status,
        )

    async def get_job(self, job_id: str) -> SyncJob | None:
        """查询任务当前状态."""
        return await self.store.get_sync_job(job_id)

    def is_running(self, job_id: str) -> bool:
        """任务是否仍在本进程中执行."""
        return job_id in self._tasks

    def cancel(self, job_id: str) -> bool:
        """请求取消任务，在处理下一篇文章前生效."""
        event = self._cancel_events.get(job_id)
        if event is None:
            return False
        event.set()
        logger.info(f"已请求取消任务 {job_id}")
        return True

    async def wait(self, job_id: str) -> SyncJob | None:
        """等待后台任务结束，返回最终的任务记录."""
        task = self._tasks.get(job_id)
        if task is not None:
            await task
        return await self.get_job(job_id)

    async def test_connection(self, config: HelpdeskConfig) -> ConnectionTestResult:
        """测试帮助中心连接."""
        client = self.orchestrator.client_factory(config)
        try:
            return await client.test_connection()
        finally:
            await client.close()


async def create_runner(database_url: str | None = None) -> SyncRunner:
    """初始化日志和数据库并创建 SyncRunner."""
    configure_logging()
    session_factory = await init_db(database_url or get_settings().database_url)
    return SyncRunner(SQLModelStore(session_factory))
