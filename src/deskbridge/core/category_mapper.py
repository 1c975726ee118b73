"""远端容器与本地分类之间的解析."""

import logging

from deskbridge.core.store import Store
from deskbridge.helpdesk.base import CategoryMapping, RemoteContainer
from deskbridge.models.article import Category

logger = logging.getLogger(__name__)


class CategoryMapper:
    """单个任务内使用的分类解析器.

    解析顺序：
    1. 配置中的显式映射（external_section_id -> local_category_id）
    2. 按容器名称复用或自动创建本地分类，任务内缓存
    3. 无名称的容器视为未分类（None）

    自动创建的分类不会写回配置中的映射列表.
    """

    def __init__(
        self,
        store: Store,
        knowledge_base_id: str,
        categories: list[Category],
        mappings: list[CategoryMapping],
    ) -> None:
        self.store = store
        self.knowledge_base_id = knowledge_base_id
        self._categories = list(categories)
        self._mappings = list(mappings)
        self._by_container: dict[str, str] = {}

    @classmethod
    async def load(
        cls,
        store: Store,
        knowledge_base_id: str,
        mappings: list[CategoryMapping],
    ) -> "CategoryMapper":
        """读取知识库现有分类并创建解析器."""
        categories = await store.get_categories_by_knowledge_base_id(knowledge_base_id)
        return cls(store, knowledge_base_id, categories, mappings)

    @property
    def categories(self) -> list[Category]:
        """当前已知的本地分类（含本任务新建的）."""
        return list(self._categories)

    def _explicit(self, container_id: str) -> str | None:
        known = {c.id for c in self._categories}
        for mapping in self._mappings:
            if (
                mapping.external_section_id == container_id
                and mapping.local_category_id in known
            ):
                return mapping.local_category_id
        return None

    async def resolve(self, container: RemoteContainer) -> str | None:
        """返回远端容器对应的本地分类 ID，未分类时返回 None."""
        explicit = self._explicit(container.id)
        if explicit:
            return explicit

        cached = self._by_container.get(container.id)
        if cached:
            return cached

        if not container.name:
            return None

        # 同名分类直接复用，避免重复运行时产生重复分类
        for category in self._categories:
            if category.name == container.name:
                self._by_container[container.id] = category.id
                return category.id

        category = await self.store.create_category(
            Category(
                knowledge_base_id=self.knowledge_base_id,
                name=container.name,
                description=container.description or "",
                order=len(self._categories),
            )
        )
        self._categories.append(category)
        self._by_container[container.id] = category.id
        logger.info(f"自动创建分类: {category.name} (容器 {container.id})")
        return category.id

    def target_container(
        self, local_category_id: str | None, default_container_id: str | None
    ) -> str | None:
        """导出时文章的目标容器：显式映射优先，其次默认容器."""
        if local_category_id:
            for mapping in self._mappings:
                if mapping.local_category_id == local_category_id:
                    return mapping.external_section_id
        return default_container_id
