"""SyncJob 同步任务模型."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class HelpdeskProvider(str, Enum):
    """外部帮助中心平台."""

    ZENDESK = "zendesk"
    FRESHDESK = "freshdesk"


class SyncDirection(str, Enum):
    """同步方向."""

    IMPORT = "import"
    EXPORT = "export"


class SyncJobStatus(str, Enum):
    """任务状态: pending -> running -> completed|failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncJob(SQLModel, table=True):
    """一次导入/导出任务的进度与错误日志."""

    __tablename__ = "sync_jobs"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    knowledge_base_id: str = Field(index=True, description="所属知识库")
    provider: HelpdeskProvider = Field(description="外部平台")
    direction: SyncDirection = Field(description="同步方向")
    status: SyncJobStatus = Field(default=SyncJobStatus.PENDING)
    total_items: int = Field(default=0, description="已知条目总数（运行中为下限）")
    processed_items: int = Field(default=0)
    created_items: int = Field(default=0)
    updated_items: int = Field(default=0)
    skipped_items: int = Field(default=0)
    failed_items: int = Field(default=0)
    error_log: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="错误日志: [{item_id, error, timestamp}]",
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
