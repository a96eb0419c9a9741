"""
Customer Ledger API Endpoints

Customer accounts plus the debt/credit transaction log:
- POST /customer-transactions applies one transaction to a balance
- GET  /customers/{id}/transactions lists a customer's ledger

Balances are never edited directly.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dukkan.api.deps import get_customer_ledger, success_response
from dukkan.models.customer import (
    CreateCustomerRequest,
    CustomerTransactionRequest,
    UpdateCustomerRequest,
)
from dukkan.services.customer_ledger_service import CustomerLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customers", tags=["customers"])
transactions_router = APIRouter(prefix="/customer-transactions", tags=["customers"])


@router.get("")
async def list_customers(service: CustomerLedgerService = Depends(get_customer_ledger)):
    customers = await service.list_customers()
    return success_response(customers, count=len(customers))


@router.get("/{customer_id}")
async def get_customer(customer_id: str, service: CustomerLedgerService = Depends(get_customer_ledger)):
    return success_response(await service.get_customer(customer_id))


@router.post("")
async def create_customer(
    request: CreateCustomerRequest,
    service: CustomerLedgerService = Depends(get_customer_ledger),
):
    result = await service.create_customer(request)
    return success_response(result.customer, warnings=result.warnings)


@router.put("/{customer_id}")
async def update_customer(
    customer_id: str,
    request: UpdateCustomerRequest,
    service: CustomerLedgerService = Depends(get_customer_ledger),
):
    return success_response(await service.update_customer(customer_id, request))


@router.delete("/{customer_id}")
async def delete_customer(customer_id: str, service: CustomerLedgerService = Depends(get_customer_ledger)):
    await service.delete_customer(customer_id)
    return success_response()


@router.get("/{customer_id}/transactions")
async def customer_ledger(customer_id: str, service: CustomerLedgerService = Depends(get_customer_ledger)):
    """Customer with its ledger entries, newest first"""
    customer = await service.get_customer(customer_id)
    transactions = await service.list_transactions(customer_id)
    return success_response(transactions, customer=customer, count=len(transactions))


@transactions_router.get("")
async def list_transactions(
    customer_id: Optional[str] = Query(None, alias="customerId"),
    service: CustomerLedgerService = Depends(get_customer_ledger),
):
    transactions = await service.list_transactions(customer_id)
    return success_response(transactions, count=len(transactions))


@transactions_router.post("")
async def apply_transaction(
    request: CustomerTransactionRequest,
    service: CustomerLedgerService = Depends(get_customer_ledger),
):
    """
    Apply a debt / credit / payment_received / payment_made transaction.

    If the balance was updated but the log entry could not be written the
    response still succeeds and carries a warning.
    """
    result = await service.apply_transaction(
        request.customer_id, request.type, request.amount, request.description
    )
    return success_response(
        {
            "customer": result.customer,
            "transaction": result.transaction,
        },
        warnings=result.warnings,
    )
