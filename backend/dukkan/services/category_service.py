"""
Category Service

Categories form a two-level tree: main categories and their subcategories.
A category still referenced by products or holding subcategories cannot be
deleted; products carry the category id, not a copy of the name.
"""

import logging
from typing import List, Optional

from dukkan.core.exceptions import CategoryNotFoundError, ValidationError
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.catalog import Category, CreateCategoryRequest, UpdateCategoryRequest
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)


class CategoryService:

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def create_category(self, request: CreateCategoryRequest) -> Category:
        parent_id = request.parent_id or None
        if parent_id:
            await self._check_parent(parent_id)

        category = Category(name=request.name, parent_id=parent_id)
        await self.repos.categories.put(category, expected_version=0)
        logger.info(f"Category {category.id} created: {category.name}")
        return category

    async def get_category(self, category_id: str) -> Category:
        category = await self.repos.categories.get(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def list_categories(self, parent_id: Optional[str] = None) -> List[Category]:
        """All categories, or the subcategories of one main category"""
        categories = [
            c for c in await self.repos.categories.list()
            if parent_id is None or c.parent_id == parent_id
        ]
        return sorted(categories, key=lambda c: c.name.lower())

    async def update_category(self, category_id: str, request: UpdateCategoryRequest) -> Category:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "parent_id" in changes:
            changes["parent_id"] = changes["parent_id"] or None
            if changes["parent_id"]:
                if changes["parent_id"] == category_id:
                    raise ValidationError("A category cannot be its own parent", {"field": "parentId"})
                await self._check_parent(changes["parent_id"])
                if await self.list_categories(parent_id=category_id):
                    raise ValidationError(
                        "A category with subcategories cannot be nested",
                        {"field": "parentId", "category_id": category_id}
                    )

        async def update_once() -> Category:
            category = await self.get_category(category_id)
            updated = category.model_copy(update={**changes, "version": category.version + 1})
            await self.repos.categories.put(updated, expected_version=category.version)
            return updated

        return await retry_async(update_once, self.retry_config, description=f"category {category_id} edit")

    async def delete_category(self, category_id: str) -> None:
        """
        Raises:
            CategoryNotFoundError: no such category
            ValidationError: products or subcategories still reference it
        """
        await self.get_category(category_id)

        products = [p for p in await self.repos.products.list() if p.category_id == category_id]
        if products:
            raise ValidationError(
                "Category is still used by products",
                {"category_id": category_id, "products": len(products)}
            )
        if await self.list_categories(parent_id=category_id):
            raise ValidationError("Category still has subcategories", {"category_id": category_id})

        await self.repos.categories.delete(category_id)
        logger.info(f"Category {category_id} deleted")

    async def _check_parent(self, parent_id: str) -> None:
        parent = await self.get_category(parent_id)
        if not parent.is_main:
            raise ValidationError(
                "Subcategories can only be nested under a main category",
                {"field": "parentId", "parent_id": parent_id}
            )
