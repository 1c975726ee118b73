"""数据模型."""

from deskbridge.models.article import Article, Category
from deskbridge.models.database import close_db, init_db
from deskbridge.models.mapping import ExternalArticleMapping, MappingDirection
from deskbridge.models.sync import (
    HelpdeskProvider,
    SyncDirection,
    SyncJob,
    SyncJobStatus,
)

__all__ = [
    "Article",
    "Category",
    "ExternalArticleMapping",
    "HelpdeskProvider",
    "MappingDirection",
    "SyncDirection",
    "SyncJob",
    "SyncJobStatus",
    "close_db",
    "init_db",
]
