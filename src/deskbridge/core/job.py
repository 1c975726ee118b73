"""SyncJob 进度记录与状态机."""

import logging
from datetime import datetime
from typing import Any

from deskbridge.core.store import Store
from deskbridge.models.sync import SyncJobStatus

logger = logging.getLogger(__name__)

# 允许的状态迁移，终态不可再变
_TRANSITIONS: dict[SyncJobStatus, set[SyncJobStatus]] = {
    SyncJobStatus.PENDING: {SyncJobStatus.RUNNING, SyncJobStatus.FAILED},
    SyncJobStatus.RUNNING: {SyncJobStatus.COMPLETED, SyncJobStatus.FAILED},
    SyncJobStatus.COMPLETED: set(),
    SyncJobStatus.FAILED: set(),
}


class InvalidJobTransition(Exception):
    """非法的任务状态迁移."""


def error_entry(item_id: str | None, error: BaseException | str) -> dict[str, Any]:
    """构造一条错误日志."""
    message = error if isinstance(error, str) else str(error) or type(error).__name__
    return {
        "item_id": item_id,
        "error": message,
        "timestamp": datetime.utcnow().isoformat(),
    }


class JobTracker:
    """在内存中累计计数，并在每个条目后写回 SyncJob.

    - total_items 在运行中可能增长，终态前只是下限
    - failed_items 始终等于条目级错误数
    - 所有写入都以本次执行看到的状态为条件，记录被其他执行改动后
      抛出 InvalidJobTransition，不覆盖已保存的终态
    """

    def __init__(self, store: Store, job_id: str) -> None:
        self.store = store
        self.job_id = job_id
        self.status = SyncJobStatus.PENDING
        self.total_items = 0
        self.processed_items = 0
        self.created_items = 0
        self.updated_items = 0
        self.skipped_items = 0
        self.error_log: list[dict[str, Any]] = []

    @property
    def failed_items(self) -> int:
        return len(self.error_log)

    def _check_transition(self, new_status: SyncJobStatus) -> None:
        if new_status not in _TRANSITIONS[self.status]:
            msg = f"任务 {self.job_id} 不能从 {self.status.value} 变为 {new_status.value}"
            raise InvalidJobTransition(msg)

    def counters(self) -> dict[str, Any]:
        """当前计数快照."""
        return {
            "total_items": self.total_items,
            "processed_items": self.processed_items,
            "created_items": self.created_items,
            "updated_items": self.updated_items,
            "skipped_items": self.skipped_items,
            "failed_items": self.failed_items,
            "error_log": list(self.error_log),
        }

    async def refresh_status(self) -> SyncJobStatus:
        """以已持久化的状态为准."""
        job = await self.store.get_sync_job(self.job_id)
        if job is None:
            msg = f"任务不存在: {self.job_id}"
            raise LookupError(msg)
        self.status = job.status
        return self.status

    async def _write(self, fields: dict[str, Any]) -> None:
        """只在已保存的状态仍是本次执行看到的状态时写入."""
        saved = await self.store.update_sync_job(
            self.job_id, fields, expected_status=self.status
        )
        if saved is None:
            await self.refresh_status()
            msg = f"任务 {self.job_id} 已被其他执行更新为 {self.status.value}"
            raise InvalidJobTransition(msg)

    async def start(self) -> None:
        """pending -> running."""
        await self.refresh_status()
        self._check_transition(SyncJobStatus.RUNNING)
        await self._write(
            {"status": SyncJobStatus.RUNNING, "started_at": datetime.utcnow()}
        )
        self.status = SyncJobStatus.RUNNING

    async def add_total(self, count: int) -> None:
        """新发现 count 个待处理条目."""
        self.total_items += count
        await self._write({"total_items": self.total_items})

    def record_created(self) -> None:
        self.created_items += 1

    def record_updated(self) -> None:
        self.updated_items += 1

    def record_skipped(self) -> None:
        self.skipped_items += 1

    def record_failure(self, item_id: str | None, error: BaseException | str) -> None:
        self.error_log.append(error_entry(item_id, error))

    async def item_done(self) -> None:
        """一个条目处理完毕（无论成败），写回进度."""
        self.processed_items += 1
        await self._write(self.counters())

    async def complete(self) -> None:
        """running -> completed."""
        self._check_transition(SyncJobStatus.COMPLETED)
        fields = self.counters()
        fields.update(status=SyncJobStatus.COMPLETED, completed_at=datetime.utcnow())
        await self._write(fields)
        self.status = SyncJobStatus.COMPLETED
        logger.info(
            f"任务 {self.job_id} 完成: 新建={self.created_items}, "
            f"更新={self.updated_items}, 跳过={self.skipped_items}, "
            f"失败={self.failed_items}"
        )

    async def fail(self, error: BaseException | str) -> None:
        """-> failed，追加一条任务级错误（item_id 为 None）."""
        self._check_transition(SyncJobStatus.FAILED)
        fields = self.counters()
        fields.update(
            status=SyncJobStatus.FAILED,
            completed_at=datetime.utcnow(),
            error_log=[*self.error_log, error_entry(None, error)],
        )
        await self._write(fields)
        self.status = SyncJobStatus.FAILED
