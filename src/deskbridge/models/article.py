"""知识库本地文章与分类模型."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel


def _new_id() -> str:
    return str(uuid.uuid4())


class Category(SQLModel, table=True):
    """知识库分类."""

    __tablename__ = "categories"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    knowledge_base_id: str = Field(index=True, description="所属知识库")
    name: str = Field(description="分类名称")
    description: str | None = Field(default=None, description="分类描述")
    order: int = Field(default=0, description="排序位置")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Article(SQLModel, table=True):
    """知识库文章."""

    __tablename__ = "articles"  # type: ignore[assignment]

    id: str = Field(default_factory=_new_id, primary_key=True)
    knowledge_base_id: str = Field(index=True, description="所属知识库")
    category_id: str | None = Field(
        default=None, foreign_key="categories.id", description="所属分类"
    )
    title: str = Field(description="标题")
    content: str = Field(default="", description="HTML 正文")
    is_public: bool = Field(default=False, description="是否公开")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
