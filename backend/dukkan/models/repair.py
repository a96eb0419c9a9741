"""
Repair Models

Stored documents:
- repair:<id>  RepairRecord

Status is a forward-only state machine:
    in_progress -> completed -> delivered
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from dukkan.models.base import DocumentModel, Money, PaymentDetails, PaymentMethod, new_id, utc_now


class RepairStatus(str, Enum):
    """Repair workflow states, in order"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELIVERED = "delivered"

# Allowed single-step transitions
REPAIR_TRANSITIONS = {
    RepairStatus.IN_PROGRESS: {RepairStatus.COMPLETED},
    RepairStatus.COMPLETED: {RepairStatus.DELIVERED},
    RepairStatus.DELIVERED: set(),
}


class RepairRecord(DocumentModel):
    """Device repair job"""
    id: str = Field(default_factory=new_id)
    customer_id: Optional[str] = None
    customer_name: str
    customer_phone: str = ""
    device_info: str
    imei: str = ""
    problem_description: str = ""
    repair_cost: Money = Field(Decimal("0"), ge=0)
    parts_cost: Money = Field(Decimal("0"), ge=0)
    profit: Money = Decimal("0")
    status: RepairStatus = RepairStatus.IN_PROGRESS
    created_at: str = Field(default_factory=utc_now)
    delivered_at: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None
    version: int = Field(1, ge=0)

    @staticmethod
    def compute_profit(repair_cost: Decimal, parts_cost: Decimal) -> Decimal:
        return repair_cost - parts_cost


# =============================================================================
# Request Models
# =============================================================================

class CreateRepairRequest(DocumentModel):
    """POST /repairs"""
    customer_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    customer_phone: str = ""
    device_info: str = Field(..., min_length=1)
    imei: str = ""
    problem_description: str = ""
    repair_cost: Money = Field(Decimal("0"), ge=0)
    parts_cost: Money = Field(Decimal("0"), ge=0)
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None


class UpdateRepairRequest(DocumentModel):
    """PUT /repairs/{id}; status changes go through /repairs/{id}/status"""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_phone: Optional[str] = None
    device_info: Optional[str] = Field(None, min_length=1)
    imei: Optional[str] = None
    problem_description: Optional[str] = None
    repair_cost: Optional[Money] = Field(None, ge=0)
    parts_cost: Optional[Money] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    payment_details: Optional[PaymentDetails] = None


class RepairStatusRequest(DocumentModel):
    """PUT /repairs/{id}/status"""
    status: RepairStatus
