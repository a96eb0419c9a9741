"""
Entity Repositories

Typed CRUD wrappers over the key-value store. Each entity kind lives under
its own key prefix (`<kind>:<id>`). No business rules are enforced here;
store failures surface unchanged as StoreError.
"""

import logging
from typing import Generic, List, Optional, Type, TypeVar

from dukkan.database.kv_store import KeyValueStore
from dukkan.models.base import DocumentModel
from dukkan.models.catalog import Category, Expense
from dukkan.models.customer import Customer, CustomerTransaction
from dukkan.models.inventory import Product, Sale
from dukkan.models.phone import PhoneSale, PhoneStock
from dukkan.models.purchase import Purchase, Supplier, SupplierPayment
from dukkan.models.repair import RepairRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=DocumentModel)


class EntityRepository(Generic[ModelT]):
    """CRUD for one entity kind"""

    def __init__(self, store: KeyValueStore, kind: str, model: Type[ModelT]):
        self.store = store
        self.kind = kind
        self.model = model

    def key(self, entity_id: str) -> str:
        return f"{self.kind}:{entity_id}"

    async def get(self, entity_id: str) -> Optional[ModelT]:
        document = await self.store.get(self.key(entity_id))
        if document is None:
            return None
        return self.model.model_validate(document)

    async def list(self) -> List[ModelT]:
        documents = await self.store.get_by_prefix(f"{self.kind}:")
        return [self.model.model_validate(document) for document in documents]

    async def put(self, entity: ModelT, expected_version: Optional[int] = None) -> ModelT:
        """
        Write the entity document.

        With expected_version the write only lands if the stored version
        still matches; VersionConflictError otherwise.
        """
        await self.store.set(self.key(entity.id), entity.to_document(), expected_version=expected_version)
        return entity

    async def delete(self, entity_id: str) -> None:
        await self.store.delete(self.key(entity_id))


class Repositories:
    """
    Per-request bundle of repositories bound to one store handle.

    Key prefixes match the persisted layout: product:, sale:, repair:,
    customer:, transaction:, phonestock:, phonesale:, supplier:, purchase:,
    supplierpayment:, category:, expense:
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.products = EntityRepository(store, "product", Product)
        self.sales = EntityRepository(store, "sale", Sale)
        self.repairs = EntityRepository(store, "repair", RepairRecord)
        self.customers = EntityRepository(store, "customer", Customer)
        self.transactions = EntityRepository(store, "transaction", CustomerTransaction)
        self.phone_stocks = EntityRepository(store, "phonestock", PhoneStock)
        self.phone_sales = EntityRepository(store, "phonesale", PhoneSale)
        self.suppliers = EntityRepository(store, "supplier", Supplier)
        self.purchases = EntityRepository(store, "purchase", Purchase)
        self.supplier_payments = EntityRepository(store, "supplierpayment", SupplierPayment)
        self.categories = EntityRepository(store, "category", Category)
        self.expenses = EntityRepository(store, "expense", Expense)
