"""
API v1 Router Initialization
Exports all routers for the Dukkan back-office API v1
"""

from fastapi import APIRouter

from dukkan.core.config import settings

from .categories import router as categories_router
from .customers import router as customers_router, transactions_router as customer_transactions_router
from .expenses import router as expenses_router
from .phones import sales_router as phone_sales_router, stock_router as phone_stock_router
from .products import router as products_router
from .purchases import (
    payments_router as supplier_payments_router,
    purchases_router,
    suppliers_router,
)
from .repairs import router as repairs_router
from .sales import router as sales_router

# Create main v1 router
api_v1_router = APIRouter(prefix=settings.API_V1_STR)

# Include all routers
api_v1_router.include_router(categories_router)
api_v1_router.include_router(products_router)
api_v1_router.include_router(sales_router)
api_v1_router.include_router(customers_router)
api_v1_router.include_router(customer_transactions_router)
api_v1_router.include_router(repairs_router)
api_v1_router.include_router(suppliers_router)
api_v1_router.include_router(purchases_router)
api_v1_router.include_router(supplier_payments_router)
api_v1_router.include_router(phone_stock_router)
api_v1_router.include_router(phone_sales_router)
api_v1_router.include_router(expenses_router)

# Export the main router
__all__ = ["api_v1_router"]
