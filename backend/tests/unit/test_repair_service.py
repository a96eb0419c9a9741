"""
Unit Tests for the Repair Service and Repair-to-Sale Bridge

Tests for:
- Forward-only status transitions
- Delivery producing exactly one revenue record
- Rejected re-delivery and reconciliation
- Versioned edits racing status changes
"""

import asyncio
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, patch

from dukkan.core.exceptions import InvalidStatusTransitionError, RepairNotFoundError, StoreError
from dukkan.models.base import PaymentMethod
from dukkan.models.repair import CreateRepairRequest, RepairRecord, RepairStatus, UpdateRepairRequest
from dukkan.services.repair_service import build_repair_sale, repair_sale_id

pytestmark = pytest.mark.unit


class TestDeliverRepair:

    @pytest.mark.asyncio
    async def test_delivery_creates_one_sale(self, repair_service, repos, repair_factory):
        """Test repairCost=200, partsCost=80 -> sale total 200, profit 120"""
        await repair_factory("R", repair_cost="200", parts_cost="80")

        repair = await repair_service.deliver_repair("R")

        assert repair.status == RepairStatus.DELIVERED
        assert repair.delivered_at is not None
        sales = await repos.sales.list()
        assert len(sales) == 1
        sale = sales[0]
        assert sale.id == repair_sale_id("R")
        assert sale.total_price == Decimal("200")
        assert sale.total_profit == Decimal("120")
        assert sale.items[0].product_id == "repair-R"
        assert sale.items[0].product_name == "Tamir: iPhone 11"
        assert sale.items[0].quantity == 1

    @pytest.mark.asyncio
    async def test_delivery_does_not_touch_stock(self, repair_service, repos, repair_factory, product_factory):
        await product_factory("P", stock=4)
        await repair_factory("R")

        await repair_service.deliver_repair("R")

        assert (await repos.products.get("P")).stock == 4

    @pytest.mark.asyncio
    async def test_in_progress_cannot_skip_to_delivered(self, repair_service, repos, repair_factory):
        await repair_factory("R", status=RepairStatus.IN_PROGRESS)

        with pytest.raises(InvalidStatusTransitionError):
            await repair_service.deliver_repair("R")

        assert (await repos.repairs.get("R")).status == RepairStatus.IN_PROGRESS
        assert await repos.sales.list() == []

    @pytest.mark.asyncio
    async def test_redelivery_rejected(self, repair_service, repos, repair_factory):
        await repair_factory("R")
        first = await repair_service.deliver_repair("R")

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            await repair_service.change_status("R", RepairStatus.DELIVERED)

        assert exc_info.value.status_code == 409
        assert (await repos.repairs.get("R")).delivered_at == first.delivered_at
        assert len(await repos.sales.list()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_record_revenue_once(self, repair_service, repos, repair_factory):
        await repair_factory("R")

        results = await asyncio.gather(
            repair_service.deliver_repair("R"),
            repair_service.deliver_repair("R"),
            return_exceptions=True,
        )

        assert sum(isinstance(r, RepairRecord) for r in results) == 1
        assert sum(isinstance(r, InvalidStatusTransitionError) for r in results) == 1
        assert len(await repos.sales.list()) == 1

    @pytest.mark.asyncio
    async def test_sale_failure_keeps_delivery_and_reconcile_fixes_it(self, repair_service, repos, repair_factory):
        """Test a failed revenue write leaves the repair delivered until reconciled"""
        await repair_factory("R")

        with patch.object(repos.sales, "put", AsyncMock(side_effect=StoreError("down"))):
            with pytest.raises(StoreError):
                await repair_service.deliver_repair("R")

        assert (await repos.repairs.get("R")).status == RepairStatus.DELIVERED
        assert await repos.sales.list() == []

        created = await repair_service.reconcile_delivered_repairs()

        assert [s.id for s in created] == [repair_sale_id("R")]
        assert await repair_service.reconcile_delivered_repairs() == []
        assert len(await repos.sales.list()) == 1

    def test_sale_carries_payment_and_customer(self):
        repair = RepairRecord(
            id="R9", customer_name="Zeynep", customer_phone="0555", device_info="Galaxy S21",
            repair_cost=Decimal("350"), parts_cost=Decimal("100"), profit=Decimal("250"),
            status=RepairStatus.DELIVERED, delivered_at="2025-01-05T10:00:00+00:00",
            payment_method=PaymentMethod.CASH,
        )

        sale = build_repair_sale(repair)

        assert sale.payment_method == PaymentMethod.CASH
        assert sale.customer_info.name == "Zeynep"
        assert sale.date == "2025-01-05T10:00:00+00:00"
        assert sale.is_repair_sale


class TestStatusTransitions:

    @pytest.mark.asyncio
    async def test_full_forward_path(self, repair_service, repos):
        repair = await repair_service.create_repair(CreateRepairRequest(
            customer_name="Can", device_info="Redmi Note 10",
            repair_cost=Decimal("150"), parts_cost=Decimal("40"),
        ))
        assert repair.status == RepairStatus.IN_PROGRESS
        assert repair.profit == Decimal("110")

        await repair_service.change_status(repair.id, RepairStatus.COMPLETED)
        delivered = await repair_service.change_status(repair.id, RepairStatus.DELIVERED)

        assert delivered.status == RepairStatus.DELIVERED
        assert (await repos.sales.get(repair_sale_id(repair.id))).total_profit == Decimal("110")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current,requested", [
        (RepairStatus.DELIVERED, RepairStatus.COMPLETED),
        (RepairStatus.DELIVERED, RepairStatus.IN_PROGRESS),
        (RepairStatus.COMPLETED, RepairStatus.IN_PROGRESS),
        (RepairStatus.COMPLETED, RepairStatus.COMPLETED),
    ])
    async def test_status_never_regresses(self, repair_service, repos, repair_factory, current, requested):
        await repair_factory("R", status=current)

        with pytest.raises(InvalidStatusTransitionError):
            await repair_service.change_status("R", requested)

        assert (await repos.repairs.get("R")).status == current

    @pytest.mark.asyncio
    async def test_unknown_repair(self, repair_service):
        with pytest.raises(RepairNotFoundError):
            await repair_service.change_status("missing", RepairStatus.COMPLETED)


class TestRepairEdits:

    @pytest.mark.asyncio
    async def test_update_recomputes_profit(self, repair_service, repair_factory):
        await repair_factory("R", status=RepairStatus.IN_PROGRESS)

        updated = await repair_service.update_repair("R", UpdateRepairRequest(parts_cost=Decimal("120")))

        assert updated.profit == Decimal("80")
        assert updated.status == RepairStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_delete_removes_revenue_record(self, repair_service, repos, repair_factory):
        await repair_factory("R")
        await repair_service.deliver_repair("R")

        await repair_service.delete_repair("R")

        assert await repos.repairs.get("R") is None
        assert await repos.sales.list() == []

    @pytest.mark.asyncio
    async def test_edit_racing_delivery_keeps_delivered_status(self, repair_service, repos, repair_factory):
        """Test a concurrent cost edit never writes the status back to completed"""
        await repair_factory("R")

        await asyncio.gather(
            repair_service.update_repair("R", UpdateRepairRequest(parts_cost=Decimal("100"))),
            repair_service.change_status("R", RepairStatus.DELIVERED),
        )

        stored = await repos.repairs.get("R")
        assert stored.status == RepairStatus.DELIVERED
        assert stored.parts_cost == Decimal("100")
        assert stored.version == 3
