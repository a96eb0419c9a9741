"""
Expense Service

Shop expenses are plain records; the sales summary subtracts them from
profit for the same period.
"""

import logging
from decimal import Decimal
from typing import List

from dukkan.core.exceptions import ExpenseNotFoundError, ValidationError
from dukkan.models.base import utc_now
from dukkan.models.catalog import CreateExpenseRequest, Expense, UpdateExpenseRequest
from dukkan.repositories.entity_repository import Repositories

logger = logging.getLogger(__name__)


def _check_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Expense amount must be positive", {"field": "amount", "value": str(amount)})


class ExpenseService:

    def __init__(self, repos: Repositories):
        self.repos = repos

    async def create_expense(self, request: CreateExpenseRequest) -> Expense:
        _check_amount(request.amount)
        expense = Expense(
            name=request.name,
            amount=request.amount,
            created_at=request.created_at or utc_now(),
            notes=request.notes,
        )
        await self.repos.expenses.put(expense)
        logger.info(f"Expense {expense.id} recorded: {expense.name} {expense.amount}")
        return expense

    async def get_expense(self, expense_id: str) -> Expense:
        expense = await self.repos.expenses.get(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    async def list_expenses(self) -> List[Expense]:
        expenses = await self.repos.expenses.list()
        return sorted(expenses, key=lambda e: e.created_at, reverse=True)

    async def update_expense(self, expense_id: str, request: UpdateExpenseRequest) -> Expense:
        expense = await self.get_expense(expense_id)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "amount" in changes:
            _check_amount(changes["amount"])
        updated = expense.model_copy(update=changes)
        await self.repos.expenses.put(updated)
        return updated

    async def delete_expense(self, expense_id: str) -> None:
        await self.get_expense(expense_id)
        await self.repos.expenses.delete(expense_id)
        logger.info(f"Expense {expense_id} deleted")

    @staticmethod
    def total(expenses: List[Expense]) -> Decimal:
        return sum((e.amount for e in expenses), Decimal("0"))
