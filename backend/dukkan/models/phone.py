"""
Second-hand Phone Models

Stored documents:
- phonestock:<id>  Single IMEI-tracked handset in stock
- phonesale:<id>   Sale of a handset
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from dukkan.models.base import DocumentModel, Money, PaymentDetails, PaymentMethod, new_id, utc_now


class PhoneStockStatus(str, Enum):
    IN_STOCK = "in_stock"
    SOLD = "sold"


class PhoneStock(DocumentModel):
    """Handset waiting to be sold"""
    id: str = Field(default_factory=new_id)
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    imei: str = ""
    purchase_price: Money = Field(Decimal("0"), ge=0)
    sale_price: Money = Field(Decimal("0"), ge=0)
    notes: str = ""
    status: PhoneStockStatus = PhoneStockStatus.IN_STOCK
    created_at: str = Field(default_factory=utc_now)
    version: int = Field(1, ge=0)


class PhoneSale(DocumentModel):
    """Handset sale"""
    id: str = Field(default_factory=new_id)
    phone_stock_id: Optional[str] = None
    brand: str
    model: str
    imei: str = ""
    purchase_price: Money = Field(Decimal("0"), ge=0)
    sale_price: Money = Field(Decimal("0"), ge=0)
    profit: Money = Decimal("0")
    customer_name: str = ""
    customer_phone: str = ""
    notes: str = ""
    date: str = Field(default_factory=utc_now)
    created_at: str = Field(default_factory=utc_now)
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None


# =============================================================================
# Request Models
# =============================================================================

class CreatePhoneStockRequest(DocumentModel):
    """POST /phone-stocks"""
    brand: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    imei: str = ""
    purchase_price: Money = Field(Decimal("0"), ge=0)
    sale_price: Money = Field(Decimal("0"), ge=0)
    notes: str = ""


class UpdatePhoneStockRequest(DocumentModel):
    """PUT /phone-stocks/{id}; status follows sales and is not editable here"""
    brand: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    imei: Optional[str] = None
    purchase_price: Optional[Money] = Field(None, ge=0)
    sale_price: Optional[Money] = Field(None, ge=0)
    notes: Optional[str] = None


class PhoneSaleRequest(DocumentModel):
    """
    POST /phone-sales

    With phone_stock_id the handset details come from stock; without it
    brand/model/prices describe a handset that was never stocked.
    """
    phone_stock_id: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    imei: Optional[str] = None
    purchase_price: Optional[Money] = Field(None, ge=0)
    sale_price: Optional[Money] = Field(None, ge=0)
    customer_name: str = ""
    customer_phone: str = ""
    notes: str = ""
    date: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None
