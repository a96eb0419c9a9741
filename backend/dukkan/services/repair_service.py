"""
Repair Service and Repair-to-Sale Bridge

Repair status is forward-only: in_progress -> completed -> delivered.

Delivering a repair:
1. Load the repair; it must be `completed` (a delivered repair is rejected)
2. Set status=delivered, deliveredAt=now and persist with a version check
3. Synthesize a revenue Sale (`repair-<repairId>` product id) and persist it

The synthetic Sale never touches the stock ledger. Its id is derived from the
repair id (`repair-sale-<repairId>`), so reconciling after a delivery can
never produce a second revenue record. If step 3 fails the repair stays
delivered; reconcile_delivered_repairs() creates the missing Sale.
"""

import logging
from typing import List, Optional

from dukkan.core.exceptions import (
    InvalidStatusTransitionError,
    RepairNotFoundError,
    StoreError,
)
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.base import CustomerInfo, utc_now
from dukkan.models.inventory import REPAIR_PRODUCT_PREFIX, Sale, SaleItem
from dukkan.models.repair import (
    REPAIR_TRANSITIONS,
    CreateRepairRequest,
    RepairRecord,
    RepairStatus,
    UpdateRepairRequest,
)
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)

REPAIR_SALE_PREFIX = "repair-sale-"


def repair_sale_id(repair_id: str) -> str:
    return f"{REPAIR_SALE_PREFIX}{repair_id}"


def build_repair_sale(repair: RepairRecord) -> Sale:
    """Revenue record for a delivered repair"""
    item = SaleItem(
        product_id=f"{REPAIR_PRODUCT_PREFIX}{repair.id}",
        product_name=f"Tamir: {repair.device_info}",
        quantity=1,
        sale_price=repair.repair_cost,
        purchase_price=repair.parts_cost,
        profit=repair.profit,
    )
    customer_info = None
    if repair.customer_name:
        customer_info = CustomerInfo(name=repair.customer_name, phone=repair.customer_phone)

    return Sale(
        id=repair_sale_id(repair.id),
        items=[item],
        total_price=repair.repair_cost,
        total_profit=repair.profit,
        date=repair.delivered_at or utc_now(),
        payment_method=repair.payment_method,
        payment_details=repair.payment_details,
        customer_info=customer_info,
    )


class RepairService:
    """Repair jobs and their conversion into revenue"""

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def create_repair(self, request: CreateRepairRequest) -> RepairRecord:
        data = request.model_dump(exclude_none=True)
        repair = RepairRecord(
            **data,
            profit=RepairRecord.compute_profit(request.repair_cost, request.parts_cost),
            status=RepairStatus.IN_PROGRESS,
        )
        await self.repos.repairs.put(repair, expected_version=0)
        logger.info(f"Repair {repair.id} created for {repair.device_info}")
        return repair

    async def get_repair(self, repair_id: str) -> RepairRecord:
        repair = await self.repos.repairs.get(repair_id)
        if repair is None:
            raise RepairNotFoundError(repair_id)
        return repair

    async def list_repairs(self, status: Optional[RepairStatus] = None) -> List[RepairRecord]:
        repairs = [
            r for r in await self.repos.repairs.list()
            if status is None or r.status == status
        ]
        return sorted(repairs, key=lambda r: r.created_at, reverse=True)

    async def update_repair(self, repair_id: str, request: UpdateRepairRequest) -> RepairRecord:
        """
        Edit descriptive and cost fields; profit is recomputed.

        The write is version-checked, so a status change landing in between
        is re-read instead of overwritten. An existing synthetic Sale is left
        as recorded at delivery.
        """
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        async def update_once() -> RepairRecord:
            repair = await self.get_repair(repair_id)
            merged = {**repair.model_dump(), **changes, "version": repair.version + 1}
            merged["profit"] = RepairRecord.compute_profit(merged["repair_cost"], merged["parts_cost"])
            updated = RepairRecord.model_validate(merged)
            await self.repos.repairs.put(updated, expected_version=repair.version)
            return updated

        updated = await retry_async(update_once, self.retry_config, description=f"repair {repair_id} edit")
        if updated.status == RepairStatus.DELIVERED:
            logger.info(f"Repair {repair_id} edited after delivery; revenue record unchanged")
        return updated

    async def delete_repair(self, repair_id: str) -> None:
        """Remove a repair together with its revenue record"""
        await self.get_repair(repair_id)
        await self.repos.sales.delete(repair_sale_id(repair_id))
        await self.repos.repairs.delete(repair_id)
        logger.info(f"Repair {repair_id} deleted")

    async def change_status(self, repair_id: str, status: RepairStatus) -> RepairRecord:
        """
        Move a repair one step forward.

        Raises:
            RepairNotFoundError: no such repair
            InvalidStatusTransitionError: backwards, skipping or unchanged
        """
        if status == RepairStatus.DELIVERED:
            return await self.deliver_repair(repair_id)
        return await self._transition(repair_id, status)

    async def _transition(self, repair_id: str, status: RepairStatus, **updates) -> RepairRecord:
        """Versioned single-step status write; the transition is re-checked on every attempt"""
        async def transition_once() -> RepairRecord:
            repair = await self.get_repair(repair_id)
            if status not in REPAIR_TRANSITIONS[repair.status]:
                raise InvalidStatusTransitionError(repair_id, repair.status.value, status.value)
            updated = repair.model_copy(update={**updates, "status": status, "version": repair.version + 1})
            await self.repos.repairs.put(updated, expected_version=repair.version)
            logger.info(f"Repair {repair_id}: {repair.status.value} → {status.value}")
            return updated

        return await retry_async(transition_once, self.retry_config, description=f"repair {repair_id} status")

    async def deliver_repair(self, repair_id: str) -> RepairRecord:
        """
        Mark a completed repair delivered and record its revenue.

        Raises:
            RepairNotFoundError: no such repair
            InvalidStatusTransitionError: repair is not `completed`, including
                one that is already delivered
            StoreError: a write failed; when the Sale write fails the repair
                is already delivered and must be reconciled
        """
        delivered = await self._transition(repair_id, RepairStatus.DELIVERED, delivered_at=utc_now())

        try:
            await self._ensure_sale(delivered)
        except StoreError as e:
            logger.error(
                f"Repair {repair_id} delivered but its revenue record was not saved "
                f"({e.error_code}); run reconciliation"
            )
            raise
        return delivered

    async def _ensure_sale(self, repair: RepairRecord) -> Optional[Sale]:
        """Write the synthetic Sale unless it already exists; returns it when created"""
        if await self.repos.sales.get(repair_sale_id(repair.id)) is not None:
            return None
        sale = build_repair_sale(repair)
        await self.repos.sales.put(sale)
        logger.info(f"Revenue record {sale.id} created: total={sale.total_price} profit={sale.total_profit}")
        return sale

    async def reconcile_delivered_repairs(self) -> List[Sale]:
        """Create the missing revenue record of every delivered repair"""
        created = []
        for repair in await self.repos.repairs.list():
            if repair.status != RepairStatus.DELIVERED:
                continue
            sale = await self._ensure_sale(repair)
            if sale is not None:
                created.append(sale)

        if created:
            logger.warning(f"Reconciliation created {len(created)} missing repair revenue record(s)")
        return created
