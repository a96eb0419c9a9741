"""
Expense API Endpoints
"""

from fastapi import APIRouter, Depends

from dukkan.api.deps import get_expense_service, success_response
from dukkan.models.catalog import CreateExpenseRequest, UpdateExpenseRequest
from dukkan.services.expense_service import ExpenseService

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("")
async def list_expenses(service: ExpenseService = Depends(get_expense_service)):
    """Newest first, with the running total"""
    expenses = await service.list_expenses()
    return success_response(expenses, count=len(expenses), total=ExpenseService.total(expenses))


@router.get("/{expense_id}")
async def get_expense(expense_id: str, service: ExpenseService = Depends(get_expense_service)):
    return success_response(await service.get_expense(expense_id))


@router.post("")
async def create_expense(request: CreateExpenseRequest, service: ExpenseService = Depends(get_expense_service)):
    return success_response(await service.create_expense(request))


@router.put("/{expense_id}")
async def update_expense(
    expense_id: str,
    request: UpdateExpenseRequest,
    service: ExpenseService = Depends(get_expense_service),
):
    return success_response(await service.update_expense(expense_id, request))


@router.delete("/{expense_id}")
async def delete_expense(expense_id: str, service: ExpenseService = Depends(get_expense_service)):
    await service.delete_expense(expense_id)
    return success_response()
