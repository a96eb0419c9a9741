"""
Purchase Service - suppliers, purchases and supplier payments

A purchase is the mirror image of a sale:

create_purchase:
1. Validate the supplier, the lines and every product
2. Receive stock through the ledger (+quantity per line)
3. Add the purchase total to the supplier (optimistic locking)
4. Record the initial payment, if any
5. Persist the purchase
6. If any write after step 2 fails, undo the supplier totals and the
   payment and take the received stock back out

delete_purchase:
1. Take the received stock back out, all-or-nothing; fails with
   InsufficientStockError when the goods were already sold
2. Reverse the supplier totals
3. Remove linked payments and the purchase

Supplier balance = total_purchased - total_paid.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from dukkan.core.exceptions import (
    InsufficientStockError,
    PurchaseNotFoundError,
    StoreError,
    SupplierNotFoundError,
    TransactionRollbackError,
    ValidationError,
)
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.base import utc_now
from dukkan.models.purchase import (
    CreatePurchaseRequest,
    CreateSupplierRequest,
    Purchase,
    PurchaseItem,
    PurchasePaymentMethod,
    Supplier,
    SupplierPayment,
    SupplierPaymentMethod,
    SupplierPaymentRequest,
    UpdateSupplierRequest,
)
from dukkan.repositories.entity_repository import Repositories
from dukkan.services.stock_ledger import StockLedger, StockMovement

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class PurchaseService:
    """Supplier accounts and goods received"""

    def __init__(self, repos: Repositories, stock_ledger: Optional[StockLedger] = None,
                 retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.stock_ledger = stock_ledger or StockLedger(repos)
        self.retry_config = retry_config or optimistic_lock_retry_config()

    # =========================================================================
    # Suppliers
    # =========================================================================

    async def create_supplier(self, request: CreateSupplierRequest) -> Supplier:
        supplier = Supplier(**request.model_dump(exclude_none=True))
        await self.repos.suppliers.put(supplier, expected_version=0)
        logger.info(f"Supplier {supplier.id} created: {supplier.name}")
        return supplier

    async def get_supplier(self, supplier_id: str) -> Supplier:
        supplier = await self.repos.suppliers.get(supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(supplier_id)
        return supplier

    async def list_suppliers(self, active_only: bool = False) -> List[Supplier]:
        suppliers = [
            s for s in await self.repos.suppliers.list()
            if s.is_active or not active_only
        ]
        return sorted(suppliers, key=lambda s: s.name.lower())

    async def update_supplier(self, supplier_id: str, request: UpdateSupplierRequest) -> Supplier:
        """Edit contact and terms; derived totals are carried over"""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        async def update_once() -> Supplier:
            supplier = await self.get_supplier(supplier_id)
            updated = supplier.model_copy(update={**changes, "version": supplier.version + 1})
            await self.repos.suppliers.put(updated, expected_version=supplier.version)
            return updated

        return await retry_async(update_once, self.retry_config, description=f"supplier {supplier_id} edit")

    async def delete_supplier(self, supplier_id: str) -> None:
        """Suppliers with purchases on record cannot be removed"""
        await self.get_supplier(supplier_id)
        purchases = await self.list_purchases(supplier_id=supplier_id)
        if purchases:
            raise ValidationError(
                "Supplier has purchases on record; deactivate it instead",
                {"supplier_id": supplier_id, "purchases": len(purchases)}
            )
        await self.repos.suppliers.delete(supplier_id)
        logger.info(f"Supplier {supplier_id} deleted")

    async def _adjust_supplier(self, supplier_id: str, purchased: Decimal = ZERO, paid: Decimal = ZERO) -> Supplier:
        async def adjust_once() -> Supplier:
            supplier = await self.get_supplier(supplier_id)
            total_purchased = supplier.total_purchased + purchased
            total_paid = supplier.total_paid + paid
            updated = supplier.model_copy(update={
                "total_purchased": total_purchased,
                "total_paid": total_paid,
                "balance": total_purchased - total_paid,
                "version": supplier.version + 1,
            })
            await self.repos.suppliers.put(updated, expected_version=supplier.version)
            return updated

        supplier = await retry_async(adjust_once, self.retry_config, description=f"supplier {supplier_id} totals")
        logger.info(
            f"Supplier {supplier_id} totals: purchased {supplier.total_purchased}, "
            f"paid {supplier.total_paid}, balance {supplier.balance}"
        )
        return supplier

    # =========================================================================
    # Purchases
    # =========================================================================

    async def create_purchase(self, request: CreatePurchaseRequest) -> Purchase:
        """
        Record goods received from a supplier.

        Raises:
            ValidationError: no lines, non-positive quantity, overpayment
            SupplierNotFoundError / ProductNotFoundError: unresolved ids
        """
        if not request.items:
            raise ValidationError("A purchase needs at least one item", {"field": "items"})
        for item in request.items:
            if item.quantity <= 0:
                raise ValidationError(
                    f"Quantity for product '{item.product_id}' must be positive",
                    {"field": "quantity", "product_id": item.product_id, "value": item.quantity}
                )

        await self.get_supplier(request.supplier_id)

        items = [
            PurchaseItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
                total_cost=item.unit_cost * item.quantity,
                notes=item.notes,
            )
            for item in request.items
        ]
        subtotal = sum((item.total_cost for item in items), ZERO)
        total = max(ZERO, subtotal - request.discount)
        if request.paid_amount > total:
            raise ValidationError(
                "Paid amount exceeds the purchase total",
                {"field": "paidAmount", "paid_amount": str(request.paid_amount), "total": str(total)}
            )

        purchase = Purchase(
            supplier_id=request.supplier_id,
            purchase_date=request.purchase_date or utc_now(),
            invoice_number=request.invoice_number,
            status=Purchase.status_for(request.paid_amount, total),
            payment_method=request.payment_method,
            payment_due_date=request.payment_due_date,
            subtotal=subtotal,
            discount=request.discount,
            total=total,
            paid_amount=request.paid_amount,
            remaining=total - request.paid_amount,
            currency=request.currency,
            exchange_rate=request.exchange_rate,
            total_try=total * request.exchange_rate,
            notes=request.notes,
            items=items,
        )

        movements = [StockMovement(item.product_id, item.quantity) for item in items]
        await self.stock_ledger.receive(movements, reason=f"purchase {purchase.id}")

        supplier_adjusted = False
        payment = None
        try:
            await self._adjust_supplier(purchase.supplier_id, purchased=total, paid=request.paid_amount)
            supplier_adjusted = True

            if request.paid_amount > 0:
                initial_payment = SupplierPayment(
                    supplier_id=purchase.supplier_id,
                    purchase_id=purchase.id,
                    amount=request.paid_amount,
                    payment_date=purchase.purchase_date,
                    payment_method=_payment_method_for(request.payment_method),
                    notes="Alış faturası ile ödendi",
                )
                await self.repos.supplier_payments.put(initial_payment)
                payment = initial_payment

            await self.repos.purchases.put(purchase)
        except StoreError as e:
            logger.error(f"Recording purchase {purchase.id} failed, reversing received stock: {e.message}")
            await self._rollback_purchase(purchase, movements, supplier_adjusted, payment, e)
            raise

        logger.info(f"Purchase {purchase.id} recorded: total={total} status={purchase.status.value}")
        return purchase

    async def _rollback_purchase(self, purchase: Purchase, movements: List[StockMovement],
                                 supplier_adjusted: bool, payment: Optional[SupplierPayment],
                                 cause: StoreError) -> None:
        """Undo the side effects of a purchase whose record was never written"""
        try:
            if payment is not None:
                await self.repos.supplier_payments.delete(payment.id)
            if supplier_adjusted:
                await self._adjust_supplier(
                    purchase.supplier_id, purchased=-purchase.total, paid=-purchase.paid_amount
                )
            await self.stock_ledger.reserve_and_apply(movements, reason=f"rollback of failed purchase {purchase.id}")
        except (StoreError, InsufficientStockError) as rollback_error:
            raise TransactionRollbackError(
                operation=f"purchase {purchase.id}",
                rollback_reason=str(cause),
                rollback_error=str(rollback_error),
                details={"supplier_id": purchase.supplier_id, "total": str(purchase.total)},
            ) from rollback_error

    async def get_purchase(self, purchase_id: str) -> Purchase:
        purchase = await self.repos.purchases.get(purchase_id)
        if purchase is None:
            raise PurchaseNotFoundError(purchase_id)
        return purchase

    async def list_purchases(self, supplier_id: Optional[str] = None) -> List[Purchase]:
        purchases = [
            p for p in await self.repos.purchases.list()
            if supplier_id is None or p.supplier_id == supplier_id
        ]
        return sorted(purchases, key=lambda p: p.purchase_date, reverse=True)

    async def delete_purchase(self, purchase_id: str) -> Purchase:
        """
        Reverse a purchase.

        Raises:
            PurchaseNotFoundError: no such purchase
            InsufficientStockError: part of the received stock is already sold
        """
        purchase = await self.get_purchase(purchase_id)
        payments = [p for p in await self.repos.supplier_payments.list() if p.purchase_id == purchase_id]
        paid = sum((p.amount for p in payments), ZERO)

        movements = [StockMovement(item.product_id, item.quantity) for item in purchase.items]
        await self.stock_ledger.reserve_and_apply(movements, reason=f"deleted purchase {purchase_id}")

        try:
            await self._adjust_supplier(purchase.supplier_id, purchased=-purchase.total, paid=-paid)
        except SupplierNotFoundError:
            logger.warning(f"Supplier {purchase.supplier_id} of purchase {purchase_id} no longer exists")

        for payment in payments:
            await self.repos.supplier_payments.delete(payment.id)
        await self.repos.purchases.delete(purchase_id)

        logger.info(f"Purchase {purchase_id} reversed and deleted")
        return purchase

    # =========================================================================
    # Supplier payments
    # =========================================================================

    async def record_payment(self, request: SupplierPaymentRequest) -> SupplierPayment:
        """
        Pay a supplier, optionally against one purchase.

        Raises:
            ValidationError: amount not positive or above the purchase's remaining
        """
        amount = Decimal(request.amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be positive", {"field": "amount", "value": str(amount)})

        await self.get_supplier(request.supplier_id)

        purchase = None
        if request.purchase_id:
            purchase = await self.get_purchase(request.purchase_id)
            if purchase.supplier_id != request.supplier_id:
                raise ValidationError(
                    "Purchase belongs to another supplier",
                    {"purchase_id": purchase.id, "supplier_id": request.supplier_id}
                )
            if amount > purchase.remaining:
                raise ValidationError(
                    "Payment exceeds the purchase's remaining amount",
                    {"field": "amount", "remaining": str(purchase.remaining), "value": str(amount)}
                )

        payment = SupplierPayment(
            supplier_id=request.supplier_id,
            purchase_id=request.purchase_id,
            amount=amount,
            payment_date=request.payment_date or utc_now(),
            payment_method=request.payment_method,
            receipt_number=request.receipt_number,
            notes=request.notes,
        )

        await self._adjust_supplier(request.supplier_id, paid=amount)

        if purchase is not None:
            paid_amount = purchase.paid_amount + amount
            updated = purchase.model_copy(update={
                "paid_amount": paid_amount,
                "remaining": purchase.total - paid_amount,
                "status": Purchase.status_for(paid_amount, purchase.total),
            })
            await self.repos.purchases.put(updated)
            logger.info(f"Purchase {purchase.id} now {updated.status.value}: remaining {updated.remaining}")

        try:
            await self.repos.supplier_payments.put(payment)
        except StoreError:
            logger.error(f"Supplier {request.supplier_id} totals include payment {payment.id} but its record was not saved")
            raise

        return payment

    async def list_payments(self, supplier_id: Optional[str] = None) -> List[SupplierPayment]:
        payments = [
            p for p in await self.repos.supplier_payments.list()
            if supplier_id is None or p.supplier_id == supplier_id
        ]
        return sorted(payments, key=lambda p: p.payment_date, reverse=True)


def _payment_method_for(method: Optional[PurchasePaymentMethod]) -> SupplierPaymentMethod:
    if method is None or method == PurchasePaymentMethod.DEFERRED:
        return SupplierPaymentMethod.CASH
    return SupplierPaymentMethod(method.value)
