"""
Product catalogue

Descriptive and pricing edits only. Stock is set once at creation (opening
stock) and afterwards changes exclusively through the stock ledger. A
category id, when given, must name an existing category.
"""

import logging
from typing import List, Optional

from dukkan.core.exceptions import CategoryNotFoundError, ProductNotFoundError
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.inventory import CreateProductRequest, Product, UpdateProductRequest
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)


class ProductService:

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def create_product(self, request: CreateProductRequest) -> Product:
        """
        Raises:
            CategoryNotFoundError: categoryId given but unknown
        """
        product = Product(**request.model_dump(exclude_none=True))
        await self._check_category(product.category_id)
        await self.repos.products.put(product, expected_version=0)
        logger.info(f"Product {product.id} created: {product.name} (stock {product.stock})")
        return product

    async def get_product(self, product_id: str) -> Product:
        product = await self.repos.products.get(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def list_products(self, category_id: Optional[str] = None) -> List[Product]:
        products = [
            p for p in await self.repos.products.list()
            if category_id is None or p.category_id == category_id
        ]
        return sorted(products, key=lambda p: p.name.lower())

    async def list_low_stock(self) -> List[Product]:
        """Products at or below their minimum stock, emptiest first"""
        products = [p for p in await self.repos.products.list() if p.is_low_stock]
        return sorted(products, key=lambda p: (p.stock, p.name.lower()))

    async def update_product(self, product_id: str, request: UpdateProductRequest) -> Product:
        """Stock is re-read on every attempt and carried over unchanged"""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        await self._check_category(changes.get("category_id", ""))

        async def update_once() -> Product:
            product = await self.get_product(product_id)
            updated = product.model_copy(update={**changes, "version": product.version + 1})
            await self.repos.products.put(updated, expected_version=product.version)
            return updated

        product = await retry_async(update_once, self.retry_config, description=f"product {product_id} edit")
        logger.info(f"Product {product_id} updated: {sorted(changes)}")
        return product

    async def delete_product(self, product_id: str) -> None:
        await self.get_product(product_id)
        await self.repos.products.delete(product_id)
        logger.info(f"Product {product_id} deleted")

    async def _check_category(self, category_id: str) -> None:
        """An empty category id means uncategorised"""
        if category_id and await self.repos.categories.get(category_id) is None:
            raise CategoryNotFoundError(category_id)
