"""
Category API Endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_category_service, success_response
from dukkan.models.catalog import CreateCategoryRequest, UpdateCategoryRequest
from dukkan.services.category_service import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
async def list_categories(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    service: CategoryService = Depends(get_category_service),
):
    categories = await service.list_categories(parent_id=parent_id)
    return success_response(categories, count=len(categories))


@router.get("/{category_id}")
async def get_category(category_id: str, service: CategoryService = Depends(get_category_service)):
    return success_response(await service.get_category(category_id))


@router.post("")
async def create_category(request: CreateCategoryRequest, service: CategoryService = Depends(get_category_service)):
    return success_response(await service.create_category(request))


@router.put("/{category_id}")
async def update_category(
    category_id: str,
    request: UpdateCategoryRequest,
    service: CategoryService = Depends(get_category_service),
):
    return success_response(await service.update_category(category_id, request))


@router.delete("/{category_id}")
async def delete_category(category_id: str, service: CategoryService = Depends(get_category_service)):
    """Rejected with 400 while products or subcategories use the category"""
    await service.delete_category(category_id)
    return success_response()
