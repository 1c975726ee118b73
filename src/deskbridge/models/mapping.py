"""本地文章与外部文章的映射模型."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from deskbridge.models.sync import HelpdeskProvider


class MappingDirection(str, Enum):
    """映射首次建立时的方向."""

    IMPORTED = "imported"
    EXPORTED = "exported"


class ExternalArticleMapping(SQLModel, table=True):
    """本地文章 <-> 外部文章 对应关系.

    本地文章被删除后 local_article_id 可能悬空，映射不会被自动清理.
    """

    __tablename__ = "external_article_mappings"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint(
            "knowledge_base_id", "provider", "external_id", name="uq_mapping_external"
        ),
        UniqueConstraint(
            "knowledge_base_id",
            "provider",
            "local_article_id",
            name="uq_mapping_local",
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    knowledge_base_id: str = Field(index=True)
    local_article_id: str | None = Field(default=None, description="本地文章 ID")
    provider: HelpdeskProvider
    external_id: str = Field(description="外部文章 ID")
    external_url: str | None = Field(default=None)
    sync_direction: MappingDirection
    content_hash: str = Field(description="最近一次同步内容的摘要")
    local_updated_at: datetime | None = Field(default=None)
    external_updated_at: datetime | None = Field(default=None)
    has_conflict: bool = Field(default=False, description="保留字段，暂不处理冲突")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
