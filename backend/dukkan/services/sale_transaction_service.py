"""
Sale Transaction Service - Saga Pattern Implementation

Orchestrates the sale lifecycle over the stock ledger:

create_sale:
1. Validate items and resolve every product (snapshot name, prices, category)
2. Reserve stock through the ledger (all-or-nothing; nothing written on failure)
3. Persist the committed Sale document
4. If persisting fails, release the reserved stock (compensating transaction)

delete_sale:
1. Load the Sale and claim it (versioned write of status=reversing)
2. Release its stock, only if this call landed the claim
3. Delete the Sale document

Stock is restored before the Sale disappears, so a crash in between leaves
correct stock and an orphaned Sale record, never lost inventory.

update_sale only corrects financial fields and does not touch stock.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from dukkan.core.exceptions import (
    ProductNotFoundError,
    SaleNotFoundError,
    StoreError,
    ValidationError,
)
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.base import new_id, utc_now
from dukkan.models.inventory import (
    CreateSaleRequest,
    Sale,
    SaleItem,
    SaleStatus,
    SalesSummary,
    SummaryPeriod,
    UpdateSaleRequest,
)
from dukkan.repositories.entity_repository import Repositories
from dukkan.services.stock_ledger import StockLedger, StockMovement

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """Parse stored ISO timestamps, including a trailing 'Z'; naive means UTC"""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def period_start(period: SummaryPeriod, now: datetime) -> Optional[datetime]:
    if period == SummaryPeriod.DAILY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == SummaryPeriod.WEEKLY:
        return now - timedelta(days=7)
    if period == SummaryPeriod.MONTHLY:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


class SaleTransactionService:
    """Create, reverse and correct sales"""

    def __init__(self, repos: Repositories, stock_ledger: Optional[StockLedger] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.stock_ledger = stock_ledger or StockLedger(repos)
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def create_sale(self, request: CreateSaleRequest) -> Sale:
        """
        Create a sale and decrement stock.

        Raises:
            ValidationError: empty item list or non-positive quantity
            ProductNotFoundError: an item's product does not exist
            InsufficientStockError: stock short for some item; no Sale written
            StoreError: store failure (reserved stock is released first)
        """
        if not request.items:
            raise ValidationError("A sale needs at least one item", {"field": "items"})

        for item in request.items:
            if item.quantity <= 0:
                raise ValidationError(
                    f"Quantity for product '{item.product_id}' must be positive",
                    {"field": "quantity", "product_id": item.product_id, "value": item.quantity}
                )

        sale_items = []
        for item in request.items:
            product = await self.repos.products.get(item.product_id)
            if product is None:
                raise ProductNotFoundError(item.product_id)

            sale_price = item.sale_price if item.sale_price is not None else product.sale_price
            sale_items.append(SaleItem(
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
                sale_price=sale_price,
                purchase_price=product.purchase_price,
                profit=SaleItem.compute_profit(sale_price, product.purchase_price, item.quantity),
                category_id=product.category_id or None,
            ))

        sale_id = new_id()
        movements = [StockMovement(item.product_id, item.quantity) for item in sale_items]

        logger.info(f"Starting sale {sale_id} with {len(sale_items)} item(s)")
        await self.stock_ledger.reserve_and_apply(movements, reason=f"sale {sale_id}")

        total_price, total_profit = Sale.totals_for(sale_items)
        sale = Sale(
            id=sale_id,
            items=sale_items,
            total_price=total_price,
            total_profit=total_profit,
            date=utc_now(),
            payment_method=request.payment_method,
            payment_details=request.payment_details,
            customer_info=request.customer_info,
        )

        try:
            await self.repos.sales.put(sale)
        except StoreError as e:
            logger.error(f"Persisting sale {sale_id} failed, releasing reserved stock: {e.message}")
            await self.stock_ledger.release(movements, reason=f"rollback of failed sale {sale_id}")
            raise

        logger.info(f"Sale {sale_id} committed: total={total_price} profit={total_profit}")
        return sale

    async def delete_sale(self, sale_id: str) -> Sale:
        """
        Reverse a sale: claim it, restore its stock, then remove the record.

        The claim is a versioned write of status=reversing. Only the caller
        that lands it releases stock; a sale found already reversing (a
        concurrent or repeated delete) only has its record removed.

        Raises:
            SaleNotFoundError: no such sale
            ValidationError: the sale is a repair revenue record
        """
        sale = await self.get_sale(sale_id)

        if sale.is_repair_sale:
            raise ValidationError(
                "Repair revenue records follow their repair; delete the repair instead",
                {"sale_id": sale_id}
            )

        if await self._claim_for_reversal(sale_id):
            movements = [StockMovement(item.product_id, item.quantity) for item in sale.items]
            await self.stock_ledger.release(movements, reason=f"deleted sale {sale_id}")
        else:
            logger.warning(f"Sale {sale_id} already claimed for reversal; removing record only")

        await self.repos.sales.delete(sale_id)

        logger.info(f"Sale {sale_id} reversed and deleted")
        return sale

    async def _claim_for_reversal(self, sale_id: str) -> bool:
        async def claim_once() -> bool:
            sale = await self.get_sale(sale_id)
            if sale.status == SaleStatus.REVERSING:
                return False
            reversing = sale.model_copy(update={
                "status": SaleStatus.REVERSING,
                "version": sale.version + 1,
            })
            await self.repos.sales.put(reversing, expected_version=sale.version)
            return True

        return await retry_async(claim_once, self.retry_config, description=f"sale {sale_id} reversal claim")

    async def update_sale(self, sale_id: str, request: UpdateSaleRequest) -> Sale:
        """
        Replace the financial fields of a sale.

        Item quantities may change here but stock is NOT reconciled; edits are
        treated as financial corrections.
        """
        sale = await self.get_sale(sale_id)
        updates = {}

        if request.items is not None:
            items = [
                SaleItem(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    sale_price=item.sale_price,
                    purchase_price=item.purchase_price,
                    profit=SaleItem.compute_profit(item.sale_price, item.purchase_price, item.quantity),
                    category_id=item.category_id,
                )
                for item in request.items
            ]
            old_quantities = {i.product_id: i.quantity for i in sale.items}
            new_quantities = {i.product_id: i.quantity for i in items}
            if old_quantities != new_quantities:
                logger.warning(f"Sale {sale_id} quantities edited; stock left unchanged")

            total_price, total_profit = Sale.totals_for(items)
            updates.update(items=items, total_price=total_price, total_profit=total_profit)

        for field in ("date", "payment_method", "payment_details", "customer_info"):
            value = getattr(request, field)
            if value is not None:
                updates[field] = value

        async def update_once() -> Sale:
            current = await self.get_sale(sale_id)
            if current.status == SaleStatus.REVERSING:
                raise ValidationError("Sale is being reversed and can no longer be edited", {"sale_id": sale_id})
            updated = current.model_copy(update={**updates, "version": current.version + 1})
            await self.repos.sales.put(updated, expected_version=current.version)
            return updated

        updated = await retry_async(update_once, self.retry_config, description=f"sale {sale_id} edit")
        logger.info(f"Sale {sale_id} updated")
        return updated

    async def get_sale(self, sale_id: str) -> Sale:
        sale = await self.repos.sales.get(sale_id)
        if sale is None:
            raise SaleNotFoundError(sale_id)
        return sale

    async def list_sales(self) -> List[Sale]:
        sales = await self.repos.sales.list()
        return sorted(sales, key=lambda s: parse_timestamp(s.date), reverse=True)

    async def get_summary(self, period: SummaryPeriod = SummaryPeriod.DAILY,
                          now: Optional[datetime] = None) -> SalesSummary:
        """Revenue, profit and net profit after expenses since the start of the period"""
        now = now or datetime.now(timezone.utc)
        start = period_start(period, now)

        sales = [
            sale for sale in await self.repos.sales.list()
            if start is None or parse_timestamp(sale.date) >= start
        ]
        repair_sales = [sale for sale in sales if sale.is_repair_sale]
        expenses = [
            expense for expense in await self.repos.expenses.list()
            if start is None or parse_timestamp(expense.created_at) >= start
        ]
        total_profit = sum((s.total_profit for s in sales), Decimal("0"))
        total_expenses = sum((e.amount for e in expenses), Decimal("0"))

        return SalesSummary(
            period=period,
            start_date=start.isoformat() if start else None,
            total_sales=len(sales),
            total_revenue=sum((s.total_price for s in sales), Decimal("0")),
            total_profit=total_profit,
            repair_sales=len(repair_sales),
            repair_revenue=sum((s.total_price for s in repair_sales), Decimal("0")),
            repair_profit=sum((s.total_profit for s in repair_sales), Decimal("0")),
            total_expenses=total_expenses,
            net_profit=total_profit - total_expenses,
        )
