"""
Request-scoped dependencies

The store handle is created once in the application lifespan and kept on
app.state; every request builds its own Repositories/service objects
around it.
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, Request
from fastapi.encoders import jsonable_encoder

from dukkan.database.kv_store import KeyValueStore
from dukkan.models.base import DocumentModel
from dukkan.repositories.entity_repository import Repositories
from dukkan.services.category_service import CategoryService
from dukkan.services.customer_ledger_service import CustomerLedgerService
from dukkan.services.expense_service import ExpenseService
from dukkan.services.phone_sales_service import PhoneSalesService
from dukkan.services.product_service import ProductService
from dukkan.services.purchase_service import PurchaseService
from dukkan.services.repair_service import RepairService
from dukkan.services.sale_transaction_service import SaleTransactionService


def get_store(request: Request) -> KeyValueStore:
    return request.app.state.store


def get_repositories(store: KeyValueStore = Depends(get_store)) -> Repositories:
    return Repositories(store)


def get_product_service(repos: Repositories = Depends(get_repositories)) -> ProductService:
    return ProductService(repos)


def get_category_service(repos: Repositories = Depends(get_repositories)) -> CategoryService:
    return CategoryService(repos)


def get_expense_service(repos: Repositories = Depends(get_repositories)) -> ExpenseService:
    return ExpenseService(repos)


def get_sale_service(repos: Repositories = Depends(get_repositories)) -> SaleTransactionService:
    return SaleTransactionService(repos)


def get_customer_ledger(repos: Repositories = Depends(get_repositories)) -> CustomerLedgerService:
    return CustomerLedgerService(repos)


def get_repair_service(repos: Repositories = Depends(get_repositories)) -> RepairService:
    return RepairService(repos)


def get_purchase_service(repos: Repositories = Depends(get_repositories)) -> PurchaseService:
    return PurchaseService(repos)


def get_phone_sales_service(repos: Repositories = Depends(get_repositories)) -> PhoneSalesService:
    return PhoneSalesService(repos)


def _dump(value: Any) -> Any:
    if isinstance(value, DocumentModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if isinstance(value, dict):
        return {key: _dump(item) for key, item in value.items()}
    return value


def success_response(data: Any = None, warnings: Optional[List[str]] = None, **extra: Any) -> Dict[str, Any]:
    """`{"success": true, "data": ...}` with camelCase entity documents"""
    response: Dict[str, Any] = {"success": True, "data": _dump(data)}
    if warnings:
        response["warnings"] = warnings
    response.update({key: _dump(value) for key, value in extra.items()})
    return jsonable_encoder(response)
