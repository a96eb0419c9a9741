"""
Unit Tests for the Purchase Service

Tests for:
- Purchase receipt incrementing stock and supplier totals
- Payment status progression
- Reversal guarded by already-sold stock
- Compensation when recording a purchase fails after stock was received
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch

from dukkan.core.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    StoreError,
    SupplierNotFoundError,
    TransactionRollbackError,
    ValidationError,
)
from dukkan.models.inventory import CreateSaleRequest, SaleItemRequest
from dukkan.models.purchase import (
    CreatePurchaseRequest,
    CreateSupplierRequest,
    PurchaseItemRequest,
    PurchaseStatus,
    SupplierPaymentRequest,
)

pytestmark = pytest.mark.unit


@pytest_asyncio.fixture
async def supplier(purchase_service):
    return await purchase_service.create_supplier(CreateSupplierRequest(name="Teknosa Toptan"))


def purchase_request(supplier_id, *lines, **kwargs) -> CreatePurchaseRequest:
    return CreatePurchaseRequest(
        supplier_id=supplier_id,
        items=[PurchaseItemRequest(product_id=pid, quantity=qty, unit_cost=Decimal(cost)) for pid, qty, cost in lines],
        **kwargs,
    )


class TestCreatePurchase:

    @pytest.mark.asyncio
    async def test_receipt_increments_stock_and_supplier(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=2)

        purchase = await purchase_service.create_purchase(
            purchase_request(supplier.id, ("P", 10, "25"), discount=Decimal("50"))
        )

        assert (await repos.products.get("P")).stock == 12
        assert purchase.subtotal == Decimal("250")
        assert purchase.total == Decimal("200")
        assert purchase.status == PurchaseStatus.UNPAID
        stored_supplier = await repos.suppliers.get(supplier.id)
        assert stored_supplier.total_purchased == Decimal("200")
        assert stored_supplier.balance == Decimal("200")

    @pytest.mark.asyncio
    async def test_partial_upfront_payment(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=0)

        purchase = await purchase_service.create_purchase(
            purchase_request(supplier.id, ("P", 4, "50"), paid_amount=Decimal("80"))
        )

        assert purchase.status == PurchaseStatus.PARTIALLY_PAID
        assert purchase.remaining == Decimal("120")
        assert len(await purchase_service.list_payments(supplier.id)) == 1
        assert (await repos.suppliers.get(supplier.id)).balance == Decimal("120")

    @pytest.mark.asyncio
    async def test_unknown_product_changes_nothing(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=1)

        with pytest.raises(ProductNotFoundError):
            await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 1, "5"), ("nope", 1, "5")))

        assert (await repos.products.get("P")).stock == 1
        assert (await repos.suppliers.get(supplier.id)).total_purchased == Decimal("0")

    @pytest.mark.asyncio
    async def test_unknown_supplier(self, purchase_service, product_factory):
        await product_factory("P")

        with pytest.raises(SupplierNotFoundError):
            await purchase_service.create_purchase(purchase_request("missing", ("P", 1, "5")))

    @pytest.mark.asyncio
    async def test_overpayment_rejected(self, purchase_service, product_factory, supplier):
        await product_factory("P")

        with pytest.raises(ValidationError):
            await purchase_service.create_purchase(
                purchase_request(supplier.id, ("P", 1, "5"), paid_amount=Decimal("6"))
            )

    @pytest.mark.asyncio
    async def test_failed_purchase_write_reverses_everything(self, purchase_service, repos, product_factory, supplier):
        """Test stock=2, receive 10, purchase record write fails -> stock 2, supplier untouched"""
        await product_factory("P", stock=2)

        with patch.object(repos.purchases, "put", AsyncMock(side_effect=StoreError("write failed"))):
            with pytest.raises(StoreError):
                await purchase_service.create_purchase(
                    purchase_request(supplier.id, ("P", 10, "5"), paid_amount=Decimal("20"))
                )

        assert (await repos.products.get("P")).stock == 2
        assert await repos.purchases.list() == []
        assert await repos.supplier_payments.list() == []
        stored_supplier = await repos.suppliers.get(supplier.id)
        assert stored_supplier.total_purchased == Decimal("0")
        assert stored_supplier.total_paid == Decimal("0")
        assert stored_supplier.balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_failed_supplier_update_reverses_stock(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=2)

        with patch.object(repos.suppliers, "put", AsyncMock(side_effect=StoreError("down"))):
            with pytest.raises(StoreError):
                await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 4, "5")))

        assert (await repos.products.get("P")).stock == 2
        assert await repos.purchases.list() == []

    @pytest.mark.asyncio
    async def test_unrecoverable_rollback_is_reported(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=2)

        original_put = repos.products.put
        calls = {"n": 0}

        async def put(entity, expected_version=None):
            calls["n"] += 1
            if calls["n"] == 1:
                return await original_put(entity, expected_version=expected_version)
            raise StoreError("store down")

        with patch.object(repos.purchases, "put", AsyncMock(side_effect=StoreError("write failed"))), \
                patch.object(repos.products, "put", side_effect=put):
            with pytest.raises(TransactionRollbackError):
                await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 4, "5")))


class TestSupplierPayments:

    @pytest.mark.asyncio
    async def test_payments_settle_purchase(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=0)
        purchase = await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 2, "100")))

        await purchase_service.record_payment(SupplierPaymentRequest(
            supplier_id=supplier.id, purchase_id=purchase.id, amount=Decimal("50")
        ))
        assert (await repos.purchases.get(purchase.id)).status == PurchaseStatus.PARTIALLY_PAID

        await purchase_service.record_payment(SupplierPaymentRequest(
            supplier_id=supplier.id, purchase_id=purchase.id, amount=Decimal("150")
        ))
        settled = await repos.purchases.get(purchase.id)
        assert settled.status == PurchaseStatus.PAID
        assert settled.remaining == Decimal("0")
        assert (await repos.suppliers.get(supplier.id)).balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_payment_above_remaining_rejected(self, purchase_service, product_factory, supplier):
        await product_factory("P", stock=0)
        purchase = await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 1, "100")))

        with pytest.raises(ValidationError):
            await purchase_service.record_payment(SupplierPaymentRequest(
                supplier_id=supplier.id, purchase_id=purchase.id, amount=Decimal("101")
            ))

    @pytest.mark.asyncio
    async def test_non_positive_payment_rejected(self, purchase_service, supplier):
        with pytest.raises(ValidationError):
            await purchase_service.record_payment(SupplierPaymentRequest(supplier_id=supplier.id, amount=Decimal("0")))


class TestDeletePurchase:

    @pytest.mark.asyncio
    async def test_delete_reverses_stock_and_totals(self, purchase_service, repos, product_factory, supplier):
        await product_factory("P", stock=3)
        purchase = await purchase_service.create_purchase(
            purchase_request(supplier.id, ("P", 5, "10"), paid_amount=Decimal("20"))
        )

        await purchase_service.delete_purchase(purchase.id)

        assert (await repos.products.get("P")).stock == 3
        stored_supplier = await repos.suppliers.get(supplier.id)
        assert stored_supplier.total_purchased == Decimal("0")
        assert stored_supplier.total_paid == Decimal("0")
        assert await repos.purchases.get(purchase.id) is None
        assert await purchase_service.list_payments() == []

    @pytest.mark.asyncio
    async def test_delete_rejected_when_goods_sold(self, purchase_service, sale_service, repos,
                                                   product_factory, supplier):
        """Test a purchase cannot be reversed below zero stock"""
        await product_factory("P", stock=0)
        purchase = await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 2, "10")))
        await sale_service.create_sale(CreateSaleRequest(items=[SaleItemRequest(product_id="P", quantity=1)]))

        with pytest.raises(InsufficientStockError):
            await purchase_service.delete_purchase(purchase.id)

        assert (await repos.products.get("P")).stock == 1
        assert await repos.purchases.get(purchase.id) is not None

    @pytest.mark.asyncio
    async def test_supplier_with_purchases_cannot_be_deleted(self, purchase_service, product_factory, supplier):
        await product_factory("P")
        await purchase_service.create_purchase(purchase_request(supplier.id, ("P", 1, "10")))

        with pytest.raises(ValidationError):
            await purchase_service.delete_supplier(supplier.id)
