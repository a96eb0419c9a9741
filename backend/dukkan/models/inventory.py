"""
Product and Sale Models

Stored documents:
- product:<id>  Product (stock mutated only through the stock ledger)
- sale:<id>     Sale with embedded SaleItem snapshots

Request models for the sale and product endpoints live here as well.
"""

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator

from dukkan.models.base import (
    CustomerInfo,
    DocumentModel,
    Money,
    PaymentDetails,
    PaymentMethod,
    new_id,
    utc_now,
)

# Synthetic sale items produced from delivered repairs carry this prefix
REPAIR_PRODUCT_PREFIX = "repair-"


class Product(DocumentModel):
    """Sellable product with a tracked stock level"""
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    category_id: str = ""
    stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    purchase_price: Money = Field(Decimal("0"), ge=0)
    sale_price: Money = Field(Decimal("0"), ge=0)
    barcode: Optional[str] = None
    description: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    version: int = Field(1, ge=0)

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock


class SaleItem(DocumentModel):
    """Line item snapshot taken at sale time"""
    product_id: str
    product_name: str
    quantity: int = Field(..., gt=0)
    sale_price: Money = Field(..., ge=0)
    purchase_price: Money = Field(..., ge=0)
    profit: Money
    category_id: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.sale_price * self.quantity

    @property
    def is_repair(self) -> bool:
        return self.product_id.startswith(REPAIR_PRODUCT_PREFIX)

    @staticmethod
    def compute_profit(sale_price: Decimal, purchase_price: Decimal, quantity: int) -> Decimal:
        return (sale_price - purchase_price) * quantity


class SaleStatus(str, Enum):
    """Committed until a delete claims the sale for reversal"""
    COMMITTED = "committed"
    REVERSING = "reversing"


class Sale(DocumentModel):
    """Completed sale"""
    id: str = Field(default_factory=new_id)
    items: List[SaleItem]
    total_price: Money
    total_profit: Money
    date: str = Field(default_factory=utc_now)
    status: SaleStatus = SaleStatus.COMMITTED
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None
    customer_info: Optional[CustomerInfo] = None
    version: int = Field(1, ge=0)

    @property
    def is_repair_sale(self) -> bool:
        return any(item.is_repair for item in self.items)

    @staticmethod
    def totals_for(items: List[SaleItem]):
        """Sum unrounded line totals and profits"""
        total_price = sum((item.line_total for item in items), Decimal("0"))
        total_profit = sum((item.profit for item in items), Decimal("0"))
        return total_price, total_profit


# =============================================================================
# Request Models
# =============================================================================

class SaleItemRequest(DocumentModel):
    """Item in a sale request; prices default to the product's current prices"""
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., description="Units sold, must be positive")
    sale_price: Optional[Money] = Field(None, ge=0, description="Override of the product's sale price")


class CreateSaleRequest(DocumentModel):
    """POST /sales"""
    items: List[SaleItemRequest]
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None
    customer_info: Optional[CustomerInfo] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "items": [{"productId": "1734512345678", "quantity": 2}],
                "paymentMethod": "cash",
                "customerInfo": {"name": "Ayse Yilmaz", "phone": "05551234567"}
            }
        }
    }


class UpdateSaleItem(DocumentModel):
    """Edited line item; profit is recomputed from prices and quantity"""
    product_id: str
    product_name: str
    quantity: int = Field(..., gt=0)
    sale_price: Money = Field(..., ge=0)
    purchase_price: Money = Field(..., ge=0)
    category_id: Optional[str] = None


class UpdateSaleRequest(DocumentModel):
    """PUT /sales/{id} - financial correction, stock is not reconciled"""
    items: Optional[List[UpdateSaleItem]] = None
    date: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None
    customer_info: Optional[CustomerInfo] = None

    @field_validator("items")
    @classmethod
    def items_not_empty(cls, v):
        if v is not None and len(v) == 0:
            raise ValueError("a sale needs at least one item")
        return v


class CreateProductRequest(DocumentModel):
    """POST /products"""
    name: str = Field(..., min_length=1)
    category_id: str = ""
    stock: int = Field(0, ge=0, description="Opening stock")
    min_stock: int = Field(0, ge=0)
    purchase_price: Money = Field(Decimal("0"), ge=0)
    sale_price: Money = Field(Decimal("0"), ge=0)
    barcode: Optional[str] = None
    description: Optional[str] = None


class UpdateProductRequest(DocumentModel):
    """PUT /products/{id} - descriptive and pricing fields only"""
    name: Optional[str] = Field(None, min_length=1)
    category_id: Optional[str] = None
    min_stock: Optional[int] = Field(None, ge=0)
    purchase_price: Optional[Money] = Field(None, ge=0)
    sale_price: Optional[Money] = Field(None, ge=0)
    barcode: Optional[str] = None
    description: Optional[str] = None


class SummaryPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL = "all"


class SalesSummary(DocumentModel):
    """Revenue/profit over a period; repair sales are included and broken out, expenses subtracted"""
    period: SummaryPeriod
    start_date: Optional[str] = None
    total_sales: int
    total_revenue: Money
    total_profit: Money
    repair_sales: int
    repair_revenue: Money
    repair_profit: Money
    total_expenses: Money = Decimal("0")
    net_profit: Money = Decimal("0")
