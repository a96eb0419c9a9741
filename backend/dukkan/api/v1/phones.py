"""
Second-hand Phone API Endpoints
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_phone_sales_service, success_response
from dukkan.models.phone import (
    CreatePhoneStockRequest,
    PhoneSaleRequest,
    PhoneStockStatus,
    UpdatePhoneStockRequest,
)
from dukkan.services.phone_sales_service import PhoneSalesService

logger = logging.getLogger(__name__)

stock_router = APIRouter(prefix="/phone-stocks", tags=["phones"])
sales_router = APIRouter(prefix="/phone-sales", tags=["phones"])


@stock_router.get("")
async def list_phone_stock(
    status: Optional[PhoneStockStatus] = Query(None),
    service: PhoneSalesService = Depends(get_phone_sales_service),
):
    phones = await service.list_stock(status)
    return success_response(phones, count=len(phones))


@stock_router.get("/{phone_id}")
async def get_phone_stock(phone_id: str, service: PhoneSalesService = Depends(get_phone_sales_service)):
    return success_response(await service.get_stock(phone_id))


@stock_router.post("")
async def add_phone_stock(
    request: CreatePhoneStockRequest,
    service: PhoneSalesService = Depends(get_phone_sales_service),
):
    return success_response(await service.add_stock(request))


@stock_router.put("/{phone_id}")
async def update_phone_stock(
    phone_id: str,
    request: UpdatePhoneStockRequest,
    service: PhoneSalesService = Depends(get_phone_sales_service),
):
    return success_response(await service.update_stock(phone_id, request))


@stock_router.delete("/{phone_id}")
async def delete_phone_stock(phone_id: str, service: PhoneSalesService = Depends(get_phone_sales_service)):
    await service.delete_stock(phone_id)
    return success_response()


@sales_router.get("")
async def list_phone_sales(service: PhoneSalesService = Depends(get_phone_sales_service)):
    sales = await service.list_sales()
    return success_response(sales, count=len(sales))


@sales_router.post("")
async def sell_phone(request: PhoneSaleRequest, service: PhoneSalesService = Depends(get_phone_sales_service)):
    """Selling a stocked handset marks it sold; 400 if it already is"""
    return success_response(await service.sell(request))


@sales_router.delete("/{sale_id}")
async def delete_phone_sale(sale_id: str, service: PhoneSalesService = Depends(get_phone_sales_service)):
    await service.delete_sale(sale_id)
    return success_response()
