"""
Repair API Endpoints

PUT /repairs/{id}/status moves a repair forward one step. Moving it to
`delivered` also records the repair's revenue as a sale in the same call.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_repair_service, success_response
from dukkan.models.repair import (
    CreateRepairRequest,
    RepairStatus,
    RepairStatusRequest,
    UpdateRepairRequest,
)
from dukkan.services.repair_service import RepairService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repairs", tags=["repairs"])


@router.get("")
async def list_repairs(
    status: Optional[RepairStatus] = Query(None),
    service: RepairService = Depends(get_repair_service),
):
    repairs = await service.list_repairs(status)
    return success_response(repairs, count=len(repairs))


@router.post("/reconcile")
async def reconcile_repairs(service: RepairService = Depends(get_repair_service)):
    """Create revenue records missing for delivered repairs"""
    created = await service.reconcile_delivered_repairs()
    return success_response(created, count=len(created))


@router.get("/{repair_id}")
async def get_repair(repair_id: str, service: RepairService = Depends(get_repair_service)):
    return success_response(await service.get_repair(repair_id))


@router.post("")
async def create_repair(request: CreateRepairRequest, service: RepairService = Depends(get_repair_service)):
    return success_response(await service.create_repair(request))


@router.put("/{repair_id}")
async def update_repair(
    repair_id: str,
    request: UpdateRepairRequest,
    service: RepairService = Depends(get_repair_service),
):
    return success_response(await service.update_repair(repair_id, request))


@router.put("/{repair_id}/status")
async def change_repair_status(
    repair_id: str,
    request: RepairStatusRequest,
    service: RepairService = Depends(get_repair_service),
):
    """Errors: 404 REPAIR_NOT_FOUND, 409 INVALID_STATUS_TRANSITION"""
    return success_response(await service.change_status(repair_id, request.status))


@router.delete("/{repair_id}")
async def delete_repair(repair_id: str, service: RepairService = Depends(get_repair_service)):
    await service.delete_repair(repair_id)
    return success_response()
