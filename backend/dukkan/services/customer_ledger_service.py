"""
Customer Ledger Service

Maintains Customer.debt / Customer.credit as running balances derived from an
append-only CustomerTransaction log.

applyTransaction steps:
1. Validate the amount
2. Update the balance with optimistic locking (retried on conflict)
3. Append the transaction record

If step 3 fails the balance is already correct and only the audit trail is
short one entry. That degraded state is returned as a warning, not raised.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple

from dukkan.core.exceptions import CustomerNotFoundError, StoreError, ValidationError
from dukkan.core.retry import RetryConfig, optimistic_lock_retry_config, retry_async
from dukkan.models.base import utc_now
from dukkan.models.customer import (
    CreateCustomerRequest,
    Customer,
    CustomerTransaction,
    TransactionType,
    UpdateCustomerRequest,
)
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def apply_balance_rule(debt: Decimal, credit: Decimal, transaction_type: TransactionType,
                       amount: Decimal) -> Tuple[Decimal, Decimal]:
    """
    New (debt, credit) after one transaction.

    Payments clamp at zero; each type touches exactly one of the two fields.
    """
    if transaction_type == TransactionType.DEBT:
        return debt + amount, credit
    if transaction_type == TransactionType.CREDIT:
        return debt, credit + amount
    if transaction_type == TransactionType.PAYMENT_RECEIVED:
        return max(ZERO, debt - amount), credit
    if transaction_type == TransactionType.PAYMENT_MADE:
        return debt, max(ZERO, credit - amount)
    raise ValidationError(f"Unknown transaction type: {transaction_type}", {"field": "type"})


@dataclass
class LedgerResult:
    """Outcome of a ledger transaction"""
    customer: Customer
    transaction: CustomerTransaction
    warnings: List[str] = field(default_factory=list)

    @property
    def audit_recorded(self) -> bool:
        return not self.warnings


class CustomerLedgerService:
    """Customer accounts and their debt/credit ledger"""

    def __init__(self, repos: Repositories, retry_config: Optional[RetryConfig] = None):
        self.repos = repos
        self.retry_config = retry_config or optimistic_lock_retry_config()

    async def apply_transaction(self, customer_id: str, transaction_type: TransactionType,
                                amount: Decimal, description: str = "") -> LedgerResult:
        """
        Apply one ledger transaction.

        Raises:
            ValidationError: amount is not positive
            CustomerNotFoundError: no such customer
            StoreError: the balance write failed (nothing recorded)
        """
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError(
                "Transaction amount must be positive",
                {"field": "amount", "value": str(amount)}
            )

        customer = await retry_async(
            lambda: self._update_balance_once(customer_id, transaction_type, amount),
            self.retry_config,
            description=f"balance update for customer {customer_id}",
        )

        transaction = CustomerTransaction(
            customer_id=customer_id,
            type=transaction_type,
            amount=amount,
            description=description,
            created_at=utc_now(),
        )

        warnings = []
        try:
            await self.repos.transactions.put(transaction)
        except StoreError as e:
            message = (
                f"Balance updated but the {transaction_type.value} transaction record "
                f"could not be saved: {e.message}"
            )
            logger.warning(f"Customer {customer_id}: {message}")
            warnings.append(message)

        return LedgerResult(customer=customer, transaction=transaction, warnings=warnings)

    async def _update_balance_once(self, customer_id: str, transaction_type: TransactionType,
                                   amount: Decimal) -> Customer:
        customer = await self.repos.customers.get(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        debt, credit = apply_balance_rule(customer.debt, customer.credit, transaction_type, amount)
        updated = customer.model_copy(update={
            "debt": debt,
            "credit": credit,
            "version": customer.version + 1,
        })
        await self.repos.customers.put(updated, expected_version=customer.version)

        logger.info(
            f"Customer {customer_id} {transaction_type.value} {amount}: "
            f"debt {customer.debt} → {debt}, credit {customer.credit} → {credit}"
        )
        return updated

    async def create_customer(self, request: CreateCustomerRequest) -> LedgerResult:
        """
        Create a customer with zero balances.

        Opening balances are booked through the ledger so the log explains them.
        Returns the result of the last booking (or the bare customer with no
        transaction when there is no opening balance).
        """
        customer = Customer(
            name=request.name,
            phone=request.phone,
            email=request.email,
            notes=request.notes,
        )
        await self.repos.customers.put(customer, expected_version=0)
        logger.info(f"Customer {customer.id} created")

        warnings: List[str] = []
        last_transaction = None
        for transaction_type, amount in (
            (TransactionType.DEBT, request.opening_debt),
            (TransactionType.CREDIT, request.opening_credit),
        ):
            if amount > 0:
                result = await self.apply_transaction(customer.id, transaction_type, amount, "Açılış bakiyesi")
                customer = result.customer
                last_transaction = result.transaction
                warnings.extend(result.warnings)

        return LedgerResult(customer=customer, transaction=last_transaction, warnings=warnings)

    async def update_customer(self, customer_id: str, request: UpdateCustomerRequest) -> Customer:
        """Edit contact fields; debt/credit are carried over untouched"""
        changes = request.model_dump(exclude_unset=True, exclude_none=True)

        async def update_once() -> Customer:
            customer = await self.get_customer(customer_id)
            updated = customer.model_copy(update={**changes, "version": customer.version + 1})
            await self.repos.customers.put(updated, expected_version=customer.version)
            return updated

        customer = await retry_async(update_once, self.retry_config, description=f"customer {customer_id} edit")
        logger.info(f"Customer {customer_id} updated: {sorted(changes)}")
        return customer

    async def get_customer(self, customer_id: str) -> Customer:
        customer = await self.repos.customers.get(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    async def list_customers(self) -> List[Customer]:
        customers = await self.repos.customers.list()
        return sorted(customers, key=lambda c: c.name.lower())

    async def delete_customer(self, customer_id: str) -> None:
        """Remove the account; its transaction log is kept"""
        await self.get_customer(customer_id)
        await self.repos.customers.delete(customer_id)
        logger.info(f"Customer {customer_id} deleted")

    async def list_transactions(self, customer_id: Optional[str] = None) -> List[CustomerTransaction]:
        """Ledger entries, newest first, optionally for one customer"""
        if customer_id is not None:
            await self.get_customer(customer_id)
        transactions = [
            t for t in await self.repos.transactions.list()
            if customer_id is None or t.customer_id == customer_id
        ]
        return sorted(transactions, key=lambda t: t.created_at, reverse=True)
