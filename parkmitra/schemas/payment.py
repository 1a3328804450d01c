from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from parkmitra.models.enums import PaymentRecordStatus, PaymentType


class PaymentCreate(BaseModel):
    booking_id: int
    amount: float = Field(ge=0)
    payment_method: str = "upi"
    payment_type: PaymentType = PaymentType.BOOKING
    transaction_id: Optional[str] = None


class PaymentOut(BaseModel):
    id: int
    booking_id: int
    amount: float
    payment_method: str
    transaction_id: str
    payment_status: PaymentRecordStatus
    payment_type: PaymentType
    watchman_id: Optional[int] = None
    payment_timestamp: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RevenueOut(BaseModel):
    organization_id: int
    booking_revenue: float
    penalty_revenue: float
    pending_penalties: float
    total_revenue: float
    completed_payments: int
