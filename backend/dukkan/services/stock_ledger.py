"""
Stock Ledger - the single writer of Product.stock

Stock changes only as a side effect of sale and purchase lifecycle events:
- reserve_and_apply: all-or-nothing decrement (sale create, purchase delete)
- release: unconditional increment (sale delete, compensation)
- receive: increment of products that must exist (purchase create)

The key-value store has no multi-key transactions, so every product write
is a conditional put on the product's version. A batch decrement works as:

1. Load every product in the batch
2. Check stock >= quantity for ALL of them before writing any
3. Write each decrement with a version check
4. If a write loses a race, release the decrements already written and
   re-run the whole cycle (bounded, with backoff)

Stock therefore never goes negative and a losing concurrent request ends
with InsufficientStockError once it re-reads the winner's write.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from dukkan.core.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    StoreError,
    TransactionRollbackError,
    ValidationError,
)
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.inventory import Product
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockMovement:
    """Quantity to take from or return to one product"""
    product_id: str
    quantity: int


@dataclass(frozen=True)
class StockChange:
    """Applied change to one product"""
    product_id: str
    previous_stock: int
    new_stock: int

    @property
    def change(self) -> int:
        return self.new_stock - self.previous_stock


def aggregate_movements(movements: Iterable[StockMovement]) -> "OrderedDict[str, int]":
    """
    Sum quantities per product, keeping first-seen order.

    Raises:
        ValidationError: on a non-positive quantity
    """
    totals: "OrderedDict[str, int]" = OrderedDict()
    for movement in movements:
        if movement.quantity <= 0:
            raise ValidationError(
                f"Quantity for product '{movement.product_id}' must be positive",
                {"product_id": movement.product_id, "quantity": movement.quantity}
            )
        totals[movement.product_id] = totals.get(movement.product_id, 0) + movement.quantity
    return totals


class StockLedger:
    """Applies and reverses stock deltas on Product documents"""

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def reserve_and_apply(self, movements: Iterable[StockMovement], reason: str = "") -> List[StockChange]:
        """
        Decrement stock for every movement, or for none of them.

        Raises:
            ValidationError: non-positive quantity
            ProductNotFoundError: a product id does not resolve
            InsufficientStockError: first product whose stock is short; nothing written
            VersionConflictError: lost the race on every attempt
        """
        demands = aggregate_movements(movements)
        if not demands:
            return []

        return await retry_async(
            lambda: self._reserve_once(demands, reason),
            self.retry_config,
            description=f"stock reservation ({reason or 'unspecified'})",
        )

    async def _reserve_once(self, demands: Dict[str, int], reason: str) -> List[StockChange]:
        products: Dict[str, Product] = {}
        for product_id in demands:
            product = await self.repos.products.get(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            products[product_id] = product

        # Check everything before the first write
        for product_id, quantity in demands.items():
            available = products[product_id].stock
            if available < quantity:
                logger.warning(
                    f"Insufficient stock for {product_id}: requested {quantity}, available {available} "
                    f"| Reason: {reason or 'Not specified'}"
                )
                raise InsufficientStockError(product_id, quantity, available)

        applied: List[StockChange] = []
        try:
            for product_id, quantity in demands.items():
                product = products[product_id]
                updated = product.model_copy(update={
                    "stock": product.stock - quantity,
                    "version": product.version + 1,
                })
                await self.repos.products.put(updated, expected_version=product.version)
                applied.append(StockChange(product_id, product.stock, updated.stock))
        except StoreError as e:
            if applied:
                logger.warning(
                    f"Stock reservation interrupted after {len(applied)} write(s) ({e.error_code}); "
                    f"releasing applied decrements"
                )
                await self._compensate(applied, reason, e)
            raise

        for change in applied:
            self._log_change(change, reason)
        return applied

    async def _compensate(self, applied: List[StockChange], reason: str, cause: Exception) -> None:
        try:
            await self.release(
                [StockMovement(change.product_id, -change.change) for change in applied],
                reason=f"compensation for {reason or 'interrupted reservation'}",
            )
        except StoreError as rollback_error:
            raise TransactionRollbackError(
                operation=reason or "stock reservation",
                rollback_reason=str(cause),
                rollback_error=str(rollback_error),
                details={"applied": [change.__dict__ for change in applied]},
            ) from rollback_error

    async def release(self, movements: Iterable[StockMovement], reason: str = "") -> List[StockChange]:
        """
        Increment stock for every movement.

        A product that no longer exists is logged and skipped, so reversing
        a sale whose product was removed still succeeds.
        """
        changes = []
        for product_id, quantity in aggregate_movements(movements).items():
            change = await retry_async(
                lambda product_id=product_id, quantity=quantity: self._increment_once(product_id, quantity),
                self.retry_config,
                description=f"stock release for {product_id}",
            )
            if change is None:
                logger.warning(
                    f"Stock release skipped: product {product_id} not found "
                    f"(+{quantity}) | Reason: {reason or 'Not specified'}"
                )
                continue
            self._log_change(change, reason)
            changes.append(change)
        return changes

    async def receive(self, movements: Iterable[StockMovement], reason: str = "") -> List[StockChange]:
        """
        Increment stock for goods received; every product must exist.

        Raises:
            ProductNotFoundError: checked for all products before any write
        """
        movements = list(movements)
        demands = aggregate_movements(movements)
        for product_id in demands:
            if await self.repos.products.get(product_id) is None:
                raise ProductNotFoundError(product_id)
        return await self.release(movements, reason=reason)

    async def _increment_once(self, product_id: str, quantity: int) -> Optional[StockChange]:
        product = await self.repos.products.get(product_id)
        if product is None:
            return None
        updated = product.model_copy(update={
            "stock": product.stock + quantity,
            "version": product.version + 1,
        })
        await self.repos.products.put(updated, expected_version=product.version)
        return StockChange(product_id, product.stock, updated.stock)

    @staticmethod
    def _log_change(change: StockChange, reason: str) -> None:
        logger.info(
            f"Stock updated: {change.product_id} | "
            f"{change.previous_stock} → {change.new_stock} ({change.change:+d}) | "
            f"Reason: {reason or 'Not specified'}"
        )
