"""
Supplier, Purchase and Supplier Payment API Endpoints

Purchases add stock and raise the supplier balance; deleting a purchase
takes the stock back out and fails with 409 INSUFFICIENT_STOCK when the
goods were already sold.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_purchase_service, success_response
from dukkan.models.purchase import (
    CreatePurchaseRequest,
    CreateSupplierRequest,
    SupplierPaymentRequest,
    UpdateSupplierRequest,
)
from dukkan.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

suppliers_router = APIRouter(prefix="/suppliers", tags=["suppliers"])
purchases_router = APIRouter(prefix="/purchases", tags=["purchases"])
payments_router = APIRouter(prefix="/supplier-payments", tags=["suppliers"])


# =============================================================================
# Suppliers
# =============================================================================

@suppliers_router.get("")
async def list_suppliers(
    active_only: bool = Query(False, alias="activeOnly"),
    service: PurchaseService = Depends(get_purchase_service),
):
    suppliers = await service.list_suppliers(active_only=active_only)
    return success_response(suppliers, count=len(suppliers))


@suppliers_router.get("/{supplier_id}")
async def get_supplier(supplier_id: str, service: PurchaseService = Depends(get_purchase_service)):
    return success_response(await service.get_supplier(supplier_id))


@suppliers_router.post("")
async def create_supplier(request: CreateSupplierRequest, service: PurchaseService = Depends(get_purchase_service)):
    return success_response(await service.create_supplier(request))


@suppliers_router.put("/{supplier_id}")
async def update_supplier(
    supplier_id: str,
    request: UpdateSupplierRequest,
    service: PurchaseService = Depends(get_purchase_service),
):
    return success_response(await service.update_supplier(supplier_id, request))


@suppliers_router.delete("/{supplier_id}")
async def delete_supplier(supplier_id: str, service: PurchaseService = Depends(get_purchase_service)):
    await service.delete_supplier(supplier_id)
    return success_response()


# =============================================================================
# Purchases
# =============================================================================

@purchases_router.get("")
async def list_purchases(
    supplier_id: Optional[str] = Query(None, alias="supplierId"),
    service: PurchaseService = Depends(get_purchase_service),
):
    purchases = await service.list_purchases(supplier_id=supplier_id)
    return success_response(purchases, count=len(purchases))


@purchases_router.get("/{purchase_id}")
async def get_purchase(purchase_id: str, service: PurchaseService = Depends(get_purchase_service)):
    return success_response(await service.get_purchase(purchase_id))


@purchases_router.post("")
async def create_purchase(request: CreatePurchaseRequest, service: PurchaseService = Depends(get_purchase_service)):
    return success_response(await service.create_purchase(request))


@purchases_router.delete("/{purchase_id}")
async def delete_purchase(purchase_id: str, service: PurchaseService = Depends(get_purchase_service)):
    await service.delete_purchase(purchase_id)
    return success_response()


# =============================================================================
# Supplier payments
# =============================================================================

@payments_router.get("")
async def list_supplier_payments(
    supplier_id: Optional[str] = Query(None, alias="supplierId"),
    service: PurchaseService = Depends(get_purchase_service),
):
    payments = await service.list_payments(supplier_id=supplier_id)
    return success_response(payments, count=len(payments))


@payments_router.post("")
async def record_supplier_payment(
    request: SupplierPaymentRequest,
    service: PurchaseService = Depends(get_purchase_service),
):
    return success_response(await service.record_payment(request))
