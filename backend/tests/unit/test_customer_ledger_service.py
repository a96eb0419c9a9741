"""
Unit Tests for the Customer Ledger Service

Tests for:
- Balance rules of the four transaction types
- Clamping of over-payments at zero
- Degraded audit-log writes surfaced as warnings
- Contact edits preserving balances
- Concurrent transactions on one customer
"""

import asyncio
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, patch

from dukkan.core.exceptions import CustomerNotFoundError, StoreError, ValidationError
from dukkan.models.customer import CreateCustomerRequest, TransactionType, UpdateCustomerRequest
from dukkan.services.customer_ledger_service import apply_balance_rule

pytestmark = pytest.mark.unit


class TestBalanceRule:

    @pytest.mark.parametrize("transaction_type,expected", [
        (TransactionType.DEBT, (Decimal("150"), Decimal("20"))),
        (TransactionType.CREDIT, (Decimal("100"), Decimal("70"))),
        (TransactionType.PAYMENT_RECEIVED, (Decimal("50"), Decimal("20"))),
        (TransactionType.PAYMENT_MADE, (Decimal("100"), Decimal("0"))),
    ])
    def test_each_type_touches_one_field(self, transaction_type, expected):
        assert apply_balance_rule(Decimal("100"), Decimal("20"), transaction_type, Decimal("50")) == expected


class TestApplyTransaction:

    @pytest.mark.asyncio
    async def test_payment_received_clamps_at_zero(self, ledger_service, repos, customer_factory):
        """Test debt=100, payment_received 150 -> debt 0, not -50"""
        await customer_factory("C", debt="100")

        result = await ledger_service.apply_transaction("C", TransactionType.PAYMENT_RECEIVED, Decimal("150"), "Nakit")

        assert result.customer.debt == Decimal("0")
        assert (await repos.customers.get("C")).debt == Decimal("0")
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_payment_made_clamps_at_zero(self, ledger_service, customer_factory):
        await customer_factory("C", credit="30")

        result = await ledger_service.apply_transaction("C", TransactionType.PAYMENT_MADE, Decimal("45"))

        assert result.customer.credit == Decimal("0")

    @pytest.mark.asyncio
    async def test_transaction_is_logged(self, ledger_service, repos, customer_factory):
        await customer_factory("C")

        result = await ledger_service.apply_transaction("C", TransactionType.DEBT, Decimal("75.50"), "Kilif")

        stored = await repos.transactions.get(result.transaction.id)
        assert stored.customer_id == "C"
        assert stored.type == TransactionType.DEBT
        assert stored.amount == Decimal("75.50")
        assert stored.description == "Kilif"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    async def test_non_positive_amount_rejected(self, ledger_service, repos, customer_factory, amount):
        await customer_factory("C", debt="10")

        with pytest.raises(ValidationError):
            await ledger_service.apply_transaction("C", TransactionType.DEBT, amount)

        assert (await repos.customers.get("C")).debt == Decimal("10")
        assert await repos.transactions.list() == []

    @pytest.mark.asyncio
    async def test_unknown_customer(self, ledger_service, repos):
        with pytest.raises(CustomerNotFoundError):
            await ledger_service.apply_transaction("missing", TransactionType.DEBT, Decimal("10"))

        assert await repos.transactions.list() == []

    @pytest.mark.asyncio
    async def test_audit_write_failure_is_a_warning(self, ledger_service, repos, customer_factory):
        """Test the balance stays updated and the caller gets a warning"""
        await customer_factory("C")

        with patch.object(repos.transactions, "put", AsyncMock(side_effect=StoreError("log down"))):
            result = await ledger_service.apply_transaction("C", TransactionType.DEBT, Decimal("40"))

        assert (await repos.customers.get("C")).debt == Decimal("40")
        assert len(result.warnings) == 1
        assert not result.audit_recorded
        assert await repos.transactions.list() == []

    @pytest.mark.asyncio
    async def test_balance_write_failure_records_nothing(self, ledger_service, repos, customer_factory):
        await customer_factory("C")

        with patch.object(repos.customers, "put", AsyncMock(side_effect=StoreError("down"))):
            with pytest.raises(StoreError):
                await ledger_service.apply_transaction("C", TransactionType.DEBT, Decimal("40"))

        assert await repos.transactions.list() == []

    @pytest.mark.asyncio
    async def test_concurrent_debts_all_counted(self, ledger_service, repos, customer_factory):
        """Test version checks keep every concurrent increment"""
        await customer_factory("C")

        await asyncio.gather(*[
            ledger_service.apply_transaction("C", TransactionType.DEBT, Decimal("10"))
            for _ in range(4)
        ])

        assert (await repos.customers.get("C")).debt == Decimal("40")
        assert len(await repos.transactions.list()) == 4


class TestCustomerAccounts:

    @pytest.mark.asyncio
    async def test_create_with_opening_balance(self, ledger_service, repos):
        result = await ledger_service.create_customer(CreateCustomerRequest(
            name="Ayse Yilmaz", phone="05551234567", opening_debt=Decimal("250")
        ))

        assert result.customer.debt == Decimal("250")
        assert result.customer.credit == Decimal("0")
        transactions = await ledger_service.list_transactions(result.customer.id)
        assert [t.type for t in transactions] == [TransactionType.DEBT]

    @pytest.mark.asyncio
    async def test_create_without_opening_balance(self, ledger_service):
        result = await ledger_service.create_customer(CreateCustomerRequest(name="Ali"))

        assert result.customer.debt == Decimal("0")
        assert result.transaction is None

    @pytest.mark.asyncio
    async def test_contact_edit_preserves_balances(self, ledger_service, repos, customer_factory):
        await customer_factory("C", debt="120", credit="15")

        updated = await ledger_service.update_customer("C", UpdateCustomerRequest(name="Yeni Isim", phone="0555"))

        assert updated.name == "Yeni Isim"
        assert updated.debt == Decimal("120")
        assert updated.credit == Decimal("15")
        assert (await repos.customers.get("C")).debt == Decimal("120")

    @pytest.mark.asyncio
    async def test_delete_keeps_transactions(self, ledger_service, repos, customer_factory):
        await customer_factory("C")
        await ledger_service.apply_transaction("C", TransactionType.DEBT, Decimal("10"))

        await ledger_service.delete_customer("C")

        assert await repos.customers.get("C") is None
        assert len(await repos.transactions.list()) == 1
