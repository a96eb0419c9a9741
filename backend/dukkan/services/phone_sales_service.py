"""
Phone Sales Service

Second-hand handsets are single units: a PhoneStock entry is either
in_stock or sold. Selling from stock flips it to sold with a version check,
so the same handset cannot be sold twice; deleting the sale puts it back.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from dukkan.core.exceptions import (
    PhoneSaleNotFoundError,
    PhoneStockNotFoundError,
    StoreError,
    ValidationError,
)
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.base import utc_now
from dukkan.models.phone import (
    CreatePhoneStockRequest,
    PhoneSale,
    PhoneSaleRequest,
    PhoneStock,
    PhoneStockStatus,
    UpdatePhoneStockRequest,
)
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)


class PhoneSalesService:
    """Handset stock and sales"""

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def add_stock(self, request: CreatePhoneStockRequest) -> PhoneStock:
        phone = PhoneStock(**request.model_dump())
        await self.repos.phone_stocks.put(phone, expected_version=0)
        logger.info(f"Phone {phone.id} stocked: {phone.brand} {phone.model}")
        return phone

    async def get_stock(self, phone_id: str) -> PhoneStock:
        phone = await self.repos.phone_stocks.get(phone_id)
        if phone is None:
            raise PhoneStockNotFoundError(phone_id)
        return phone

    async def list_stock(self, status: Optional[PhoneStockStatus] = None) -> List[PhoneStock]:
        phones = [
            p for p in await self.repos.phone_stocks.list()
            if status is None or p.status == status
        ]
        return sorted(phones, key=lambda p: p.created_at, reverse=True)

    async def update_stock(self, phone_id: str, request: UpdatePhoneStockRequest) -> PhoneStock:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        async def update_once() -> PhoneStock:
            phone = await self.get_stock(phone_id)
            updated = phone.model_copy(update={**changes, "version": phone.version + 1})
            await self.repos.phone_stocks.put(updated, expected_version=phone.version)
            return updated

        return await retry_async(update_once, self.retry_config, description=f"phone {phone_id} edit")

    async def delete_stock(self, phone_id: str) -> None:
        await self.get_stock(phone_id)
        await self.repos.phone_stocks.delete(phone_id)
        logger.info(f"Phone {phone_id} removed from stock")

    async def _set_status(self, phone_id: str, expected: PhoneStockStatus, status: PhoneStockStatus) -> PhoneStock:
        async def set_once() -> PhoneStock:
            phone = await self.get_stock(phone_id)
            if phone.status != expected:
                raise ValidationError(
                    f"Phone {phone_id} is {phone.status.value}, expected {expected.value}",
                    {"phone_stock_id": phone_id, "status": phone.status.value}
                )
            updated = phone.model_copy(update={"status": status, "version": phone.version + 1})
            await self.repos.phone_stocks.put(updated, expected_version=phone.version)
            return updated

        return await retry_async(set_once, self.retry_config, description=f"phone {phone_id} status")

    async def sell(self, request: PhoneSaleRequest) -> PhoneSale:
        """
        Record a handset sale.

        Raises:
            PhoneStockNotFoundError: unknown phone_stock_id
            ValidationError: handset already sold, or missing details for an
                unstocked handset
        """
        if request.phone_stock_id:
            phone = await self._set_status(request.phone_stock_id, PhoneStockStatus.IN_STOCK, PhoneStockStatus.SOLD)
            brand, model, imei = phone.brand, phone.model, phone.imei
            purchase_price = phone.purchase_price
            sale_price = request.sale_price if request.sale_price is not None else phone.sale_price
        else:
            if not request.brand or not request.model:
                raise ValidationError("Brand and model are required for an unstocked handset", {"field": "brand"})
            brand, model, imei = request.brand, request.model, request.imei or ""
            purchase_price = request.purchase_price or Decimal("0")
            sale_price = request.sale_price or Decimal("0")

        sale = PhoneSale(
            phone_stock_id=request.phone_stock_id,
            brand=brand,
            model=model,
            imei=imei,
            purchase_price=purchase_price,
            sale_price=sale_price,
            profit=sale_price - purchase_price,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            notes=request.notes,
            date=request.date or utc_now(),
            payment_method=request.payment_method,
            payment_details=request.payment_details,
        )

        try:
            await self.repos.phone_sales.put(sale)
        except StoreError:
            if request.phone_stock_id:
                logger.error(f"Phone sale write failed, returning {request.phone_stock_id} to stock")
                await self._set_status(request.phone_stock_id, PhoneStockStatus.SOLD, PhoneStockStatus.IN_STOCK)
            raise

        logger.info(f"Phone sale {sale.id}: {brand} {model} profit={sale.profit}")
        return sale

    async def get_sale(self, sale_id: str) -> PhoneSale:
        sale = await self.repos.phone_sales.get(sale_id)
        if sale is None:
            raise PhoneSaleNotFoundError(sale_id)
        return sale

    async def list_sales(self) -> List[PhoneSale]:
        sales = await self.repos.phone_sales.list()
        return sorted(sales, key=lambda s: s.date, reverse=True)

    async def delete_sale(self, sale_id: str) -> PhoneSale:
        """Reverse a handset sale; a stocked handset goes back to in_stock first"""
        sale = await self.get_sale(sale_id)
        if sale.phone_stock_id:
            try:
                await self._set_status(sale.phone_stock_id, PhoneStockStatus.SOLD, PhoneStockStatus.IN_STOCK)
            except PhoneStockNotFoundError:
                logger.warning(f"Phone {sale.phone_stock_id} of sale {sale_id} no longer exists")
        await self.repos.phone_sales.delete(sale_id)
        logger.info(f"Phone sale {sale_id} deleted")
        return sale
