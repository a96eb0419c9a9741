"""
Product Catalogue API Endpoints

Stock is read-only here; it changes through sales and purchases.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_product_service, success_response
from dukkan.models.inventory import CreateProductRequest, UpdateProductRequest
from dukkan.services.product_service import ProductService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
async def list_products(
    category_id: Optional[str] = Query(None, alias="categoryId"),
    service: ProductService = Depends(get_product_service),
):
    products = await service.list_products(category_id=category_id)
    return success_response(products, count=len(products))


@router.get("/low-stock")
async def list_low_stock(service: ProductService = Depends(get_product_service)):
    """Products whose stock is at or below minStock"""
    products = await service.list_low_stock()
    return success_response(products, count=len(products))


@router.get("/{product_id}")
async def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    return success_response(await service.get_product(product_id))


@router.post("")
async def create_product(request: CreateProductRequest, service: ProductService = Depends(get_product_service)):
    return success_response(await service.create_product(request))


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    request: UpdateProductRequest,
    service: ProductService = Depends(get_product_service),
):
    return success_response(await service.update_product(product_id, request))


@router.delete("/{product_id}")
async def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    await service.delete_product(product_id)
    return success_response()
