"""
Supplier and Purchase Models

Stored documents:
- supplier:<id>         Supplier with derived totals
- purchase:<id>         Purchase with embedded line items
- supplierpayment:<id>  Payment made to a supplier

A purchase is the mirror image of a sale: each line increments
Product.stock and the purchase total is added to the supplier's balance.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from dukkan.models.base import DocumentModel, Money, new_id, utc_now


class PaymentTerms(str, Enum):
    """Supplier payment terms"""
    CASH = "pesin"
    DEFERRED = "vadeli"
    CONSIGNMENT = "konsinyasyon"


class Currency(str, Enum):
    TRY = "TRY"
    USD = "USD"
    EUR = "EUR"


class PurchaseStatus(str, Enum):
    """Settlement state of a purchase invoice"""
    UNPAID = "odenmedi"
    PARTIALLY_PAID = "kismi_odendi"
    PAID = "odendi"


class SupplierPaymentMethod(str, Enum):
    CASH = "nakit"
    BANK_TRANSFER = "havale"
    CARD = "kart"


class PurchasePaymentMethod(str, Enum):
    CASH = "nakit"
    BANK_TRANSFER = "havale"
    CARD = "kart"
    DEFERRED = "vadeli"


class Supplier(DocumentModel):
    """Supplier account"""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    currency: Currency = Currency.TRY
    is_active: bool = True
    total_purchased: Money = Decimal("0")
    total_paid: Money = Decimal("0")
    balance: Money = Decimal("0")
    created_at: str = Field(default_factory=utc_now)
    version: int = Field(1, ge=0)


class PurchaseItem(DocumentModel):
    """Received line"""
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_cost: Money = Field(..., ge=0)
    total_cost: Money = Decimal("0")
    notes: Optional[str] = None


class Purchase(DocumentModel):
    """Goods received from a supplier"""
    id: str = Field(default_factory=new_id)
    supplier_id: str
    purchase_date: str = Field(default_factory=utc_now)
    invoice_number: Optional[str] = None
    status: PurchaseStatus = PurchaseStatus.UNPAID
    payment_method: Optional[PurchasePaymentMethod] = None
    payment_due_date: Optional[str] = None
    subtotal: Money = Decimal("0")
    discount: Money = Decimal("0")
    total: Money = Decimal("0")
    paid_amount: Money = Decimal("0")
    remaining: Money = Decimal("0")
    currency: Currency = Currency.TRY
    exchange_rate: Money = Decimal("1")
    total_try: Optional[Money] = None
    notes: Optional[str] = None
    items: List[PurchaseItem] = Field(default_factory=list)
    created_at: str = Field(default_factory=utc_now)

    @staticmethod
    def status_for(paid_amount: Decimal, total: Decimal) -> PurchaseStatus:
        if paid_amount >= total:
            return PurchaseStatus.PAID
        if paid_amount > 0:
            return PurchaseStatus.PARTIALLY_PAID
        return PurchaseStatus.UNPAID


class SupplierPayment(DocumentModel):
    """Money paid to a supplier, optionally against one purchase"""
    id: str = Field(default_factory=new_id)
    supplier_id: str
    purchase_id: Optional[str] = None
    amount: Money = Field(..., gt=0)
    payment_date: str = Field(default_factory=utc_now)
    payment_method: SupplierPaymentMethod = SupplierPaymentMethod.CASH
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


# =============================================================================
# Request Models
# =============================================================================

class CreateSupplierRequest(DocumentModel):
    """POST /suppliers"""
    name: str = Field(..., min_length=1)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: PaymentTerms = PaymentTerms.CASH
    currency: Currency = Currency.TRY


class UpdateSupplierRequest(DocumentModel):
    """PUT /suppliers/{id}; totals are derived and not editable"""
    name: Optional[str] = Field(None, min_length=1)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None
    payment_terms: Optional[PaymentTerms] = None
    currency: Optional[Currency] = None
    is_active: Optional[bool] = None


class PurchaseItemRequest(DocumentModel):
    product_id: str = Field(..., min_length=1)
    quantity: int
    unit_cost: Money = Field(..., ge=0)
    notes: Optional[str] = None


class CreatePurchaseRequest(DocumentModel):
    """POST /purchases"""
    supplier_id: str = Field(..., min_length=1)
    items: List[PurchaseItemRequest]
    purchase_date: Optional[str] = None
    invoice_number: Optional[str] = None
    payment_method: Optional[PurchasePaymentMethod] = None
    payment_due_date: Optional[str] = None
    discount: Money = Field(Decimal("0"), ge=0)
    paid_amount: Money = Field(Decimal("0"), ge=0)
    currency: Currency = Currency.TRY
    exchange_rate: Money = Field(Decimal("1"), gt=0)
    notes: Optional[str] = None


class SupplierPaymentRequest(DocumentModel):
    """POST /supplier-payments"""
    supplier_id: str = Field(..., min_length=1)
    purchase_id: Optional[str] = None
    amount: Money
    payment_method: SupplierPaymentMethod = SupplierPaymentMethod.CASH
    payment_date: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
