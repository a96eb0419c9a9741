"""
Shared building blocks for entity documents

Entity documents are stored and served with camelCase keys
(`productId`, `salePrice`, ...) while Python code uses snake_case
attributes. Money is Decimal in memory and a JSON number on the wire.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


def new_id() -> str:
    """Server-assigned entity id"""
    return uuid.uuid4().hex


def utc_now() -> str:
    """ISO-8601 UTC timestamp"""
    return datetime.now(timezone.utc).isoformat()


class DocumentModel(BaseModel):
    """Base for documents stored in the key-value store"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        """JSON document as persisted under `<kind>:<id>`"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PaymentMethod(str, Enum):
    """How the customer paid"""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    MIXED = "mixed"


class PaymentDetails(DocumentModel):
    """Split amounts for mixed payments"""
    cash: Optional[Money] = Field(None, ge=0)
    card: Optional[Money] = Field(None, ge=0)
    transfer: Optional[Money] = Field(None, ge=0)


class CustomerInfo(DocumentModel):
    """Walk-in customer snapshot attached to a sale"""
    name: str
    phone: str = ""
