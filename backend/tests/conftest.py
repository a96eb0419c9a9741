"""
Dukkan Test Configuration and Fixtures

This module provides:
- Test environment variables (set before the application is imported)
- In-memory key-value store, repositories and services
- FastAPI test client bound to the same store
- Factories for products, customers and repairs
"""

import os
import sys
from decimal import Decimal
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["STORE_BACKEND"] = "memory"
os.environ["AWS_REGION"] = "eu-central-1"
os.environ["DYNAMODB_KV_TABLE"] = "dukkan-kv-test"
os.environ["OPTIMISTIC_LOCK_MAX_ATTEMPTS"] = "5"
os.environ["OPTIMISTIC_LOCK_BASE_DELAY"] = "0.001"
os.environ["LOG_FORMAT"] = "text"

from fastapi.testclient import TestClient

from dukkan.database.kv_store import InMemoryKeyValueStore
from dukkan.models.customer import Customer
from dukkan.models.inventory import Product
from dukkan.models.repair import RepairRecord, RepairStatus
from dukkan.repositories.entity_repository import Repositories
from dukkan.services.category_service import CategoryService
from dukkan.services.customer_ledger_service import CustomerLedgerService
from dukkan.services.expense_service import ExpenseService
from dukkan.services.phone_sales_service import PhoneSalesService
from dukkan.services.product_service import ProductService
from dukkan.services.purchase_service import PurchaseService
from dukkan.services.repair_service import RepairService
from dukkan.services.sale_transaction_service import SaleTransactionService
from dukkan.services.stock_ledger import StockLedger


# =============================================================================
# Store / Service Fixtures
# =============================================================================

@pytest.fixture
def store() -> InMemoryKeyValueStore:
    """Fresh in-memory store per test"""
    return InMemoryKeyValueStore()


@pytest.fixture
def repos(store) -> Repositories:
    return Repositories(store)


@pytest.fixture
def stock_ledger(repos) -> StockLedger:
    return StockLedger(repos)


@pytest.fixture
def sale_service(repos, stock_ledger) -> SaleTransactionService:
    return SaleTransactionService(repos, stock_ledger)


@pytest.fixture
def ledger_service(repos) -> CustomerLedgerService:
    return CustomerLedgerService(repos)


@pytest.fixture
def repair_service(repos) -> RepairService:
    return RepairService(repos)


@pytest.fixture
def purchase_service(repos, stock_ledger) -> PurchaseService:
    return PurchaseService(repos, stock_ledger)


@pytest.fixture
def phone_service(repos) -> PhoneSalesService:
    return PhoneSalesService(repos)


@pytest.fixture
def product_service(repos) -> ProductService:
    return ProductService(repos)


@pytest.fixture
def category_service(repos) -> CategoryService:
    return CategoryService(repos)


@pytest.fixture
def expense_service(repos) -> ExpenseService:
    return ExpenseService(repos)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def app(store):
    """Test application sharing the test's in-memory store"""
    from dukkan.main import create_app
    return create_app(store=store)


@pytest.fixture
def client(app) -> Generator:
    """Create synchronous test client."""
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_dynamodb_table():
    """Mock DynamoDB Table resource"""
    table = MagicMock()
    table.get_item = MagicMock(return_value={})
    table.put_item = MagicMock(return_value={})
    table.delete_item = MagicMock(return_value={})
    table.scan = MagicMock(return_value={"Items": []})
    table.load = MagicMock(return_value=None)
    return table


# =============================================================================
# Test Data Factories
# =============================================================================

@pytest.fixture
def product_factory(repos):
    """Persist a product and return it"""
    async def _create(product_id: str = "P1", stock: int = 5, sale_price: str = "100",
                      purchase_price: str = "60", **kwargs) -> Product:
        product = Product(
            id=product_id,
            name=kwargs.pop("name", f"Product {product_id}"),
            category_id=kwargs.pop("category_id", "cat-1"),
            stock=stock,
            sale_price=Decimal(sale_price),
            purchase_price=Decimal(purchase_price),
            **kwargs,
        )
        await repos.products.put(product)
        return product
    return _create


@pytest.fixture
def customer_factory(repos):
    async def _create(customer_id: str = "C1", debt: str = "0", credit: str = "0") -> Customer:
        customer = Customer(
            id=customer_id,
            name=f"Customer {customer_id}",
            phone="05550000000",
            debt=Decimal(debt),
            credit=Decimal(credit),
        )
        await repos.customers.put(customer)
        return customer
    return _create


@pytest.fixture
def repair_factory(repos):
    async def _create(repair_id: str = "R1", status: RepairStatus = RepairStatus.COMPLETED,
                      repair_cost: str = "200", parts_cost: str = "80") -> RepairRecord:
        repair = RepairRecord(
            id=repair_id,
            customer_name="Mehmet Demir",
            customer_phone="05551112233",
            device_info="iPhone 11",
            problem_description="Ekran kirik",
            repair_cost=Decimal(repair_cost),
            parts_cost=Decimal(parts_cost),
            profit=Decimal(repair_cost) - Decimal(parts_cost),
            status=status,
        )
        await repos.repairs.put(repair)
        return repair
    return _create
