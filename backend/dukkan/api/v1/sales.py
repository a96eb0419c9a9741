"""
Sales API Endpoints

- POST   /sales           create a sale (decrements stock, all-or-nothing)
- DELETE /sales/{id}      reverse a sale (restores stock, then removes it)
- PUT    /sales/{id}      financial correction, stock untouched
- GET    /sales/summary   revenue/profit for a period
"""

import logging

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_sale_service, success_response
from dukkan.models.inventory import CreateSaleRequest, SummaryPeriod, UpdateSaleRequest
from dukkan.services.sale_transaction_service import SaleTransactionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sales", tags=["sales"])


@router.get("")
async def list_sales(service: SaleTransactionService = Depends(get_sale_service)):
    sales = await service.list_sales()
    return success_response(sales, count=len(sales))


@router.get("/summary")
async def sales_summary(
    period: SummaryPeriod = Query(SummaryPeriod.DAILY),
    service: SaleTransactionService = Depends(get_sale_service),
):
    return success_response(await service.get_summary(period))


@router.get("/{sale_id}")
async def get_sale(sale_id: str, service: SaleTransactionService = Depends(get_sale_service)):
    return success_response(await service.get_sale(sale_id))


@router.post("")
async def create_sale(request: CreateSaleRequest, service: SaleTransactionService = Depends(get_sale_service)):
    """
    Create a sale.

    Errors: 400 VALIDATION_ERROR, 404 PRODUCT_NOT_FOUND,
    409 INSUFFICIENT_STOCK (nothing written), 503 STORE_ERROR
    """
    return success_response(await service.create_sale(request))


@router.put("/{sale_id}")
async def update_sale(
    sale_id: str,
    request: UpdateSaleRequest,
    service: SaleTransactionService = Depends(get_sale_service),
):
    return success_response(await service.update_sale(sale_id, request))


@router.delete("/{sale_id}")
async def delete_sale(sale_id: str, service: SaleTransactionService = Depends(get_sale_service)):
    await service.delete_sale(sale_id)
    return success_response()
