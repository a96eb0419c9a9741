"""
Customer Ledger Models

Stored documents:
- customer:<id>     Customer with derived debt/credit balances
- transaction:<id>  Append-only CustomerTransaction log entry

debt   - money the customer owes the shop
credit - money the shop owes the customer
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from dukkan.models.base import DocumentModel, Money, new_id, utc_now


class TransactionType(str, Enum):
    """Customer ledger transaction kinds"""
    DEBT = "debt"
    CREDIT = "credit"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_MADE = "payment_made"


class Customer(DocumentModel):
    """Customer account; balances are written only by the customer ledger"""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    phone: str = ""
    email: Optional[str] = None
    debt: Money = Field(Decimal("0"), ge=0)
    credit: Money = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    version: int = Field(1, ge=0)


class CustomerTransaction(DocumentModel):
    """Ledger entry"""
    id: str = Field(default_factory=new_id)
    customer_id: str
    type: TransactionType
    amount: Money = Field(..., gt=0)
    description: str = ""
    created_at: str = Field(default_factory=utc_now)


# =============================================================================
# Request Models
# =============================================================================

class CustomerTransactionRequest(DocumentModel):
    """POST /customer-transactions"""
    customer_id: str = Field(..., min_length=1)
    type: TransactionType
    amount: Money
    description: str = Field("", max_length=500)

    model_config = {
        "json_schema_extra": {
            "example": {
                "customerId": "1734512345678",
                "type": "payment_received",
                "amount": 150.0,
                "description": "Nakit tahsilat"
            }
        }
    }


class CreateCustomerRequest(DocumentModel):
    """POST /customers; opening balances are booked as ledger transactions"""
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field("", max_length=20)
    email: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
    opening_debt: Money = Field(Decimal("0"), ge=0)
    opening_credit: Money = Field(Decimal("0"), ge=0)


class UpdateCustomerRequest(DocumentModel):
    """PUT /customers/{id}; balances are not editable here"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)
