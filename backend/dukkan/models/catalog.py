"""
Category and Expense Models

Stored documents:
- category:<id>  Product category; one level of subcategories via parentId
- expense:<id>   Shop expense (rent, bills, ...) set against sales profit
"""

from typing import Optional

from pydantic import Field

from dukkan.models.base import DocumentModel, Money, new_id, utc_now


class Category(DocumentModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)
    version: int = Field(1, ge=0)

    @property
    def is_main(self) -> bool:
        return not self.parent_id


class Expense(DocumentModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0)
    created_at: str = Field(default_factory=utc_now)
    notes: Optional[str] = None


# =============================================================================
# Request Models
# =============================================================================

class CreateCategoryRequest(DocumentModel):
    """POST /categories"""
    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = Field(None, description="Main category this one is nested under")


class UpdateCategoryRequest(DocumentModel):
    """PUT /categories/{id}; an empty parentId moves the category to the top level"""
    name: Optional[str] = Field(None, min_length=1)
    parent_id: Optional[str] = None


class CreateExpenseRequest(DocumentModel):
    """POST /expenses"""
    name: str = Field(..., min_length=1)
    amount: Money
    created_at: Optional[str] = None
    notes: Optional[str] = None


class UpdateExpenseRequest(DocumentModel):
    """PUT /expenses/{id}"""
    name: Optional[str] = Field(None, min_length=1)
    amount: Optional[Money] = None
    created_at: Optional[str] = None
    notes: Optional[str] = None
