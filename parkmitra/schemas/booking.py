from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Optional

from parkmitra.models.enums import BookingStatus, PaymentStatus
from parkmitra.schemas.payment import PaymentOut


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored times are naive UTC; offset-aware input is converted first."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BookingCreate(BaseModel):
    organization_id: int
    vehicle_number: str
    booking_start_time: datetime
    booking_end_time: datetime

    @field_validator("booking_start_time", "booking_end_time")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)


class BookingOut(BaseModel):
    id: int
    user_id: int
    organization_id: int
    parking_lot_id: Optional[int] = None
    vehicle_number: str
    slot_number: str
    booking_start_time: datetime
    booking_end_time: datetime
    duration_hours: int
    amount: float
    payment_status: PaymentStatus
    booking_status: BookingStatus
    entry_time: Optional[datetime] = None
    exit_time: Optional[datetime] = None
    overstay_minutes: Optional[int] = None
    penalty_amount: Optional[float] = None

    model_config = {"from_attributes": True}


class ExtensionRequest(BaseModel):
    extension_hours: int = Field(gt=0)


class ExtensionQuoteOut(BaseModel):
    booking_id: int
    slot_number: str
    current_end_time: datetime
    new_end_time: datetime
    extension_hours: int
    additional_amount: float
    can_extend_same_slot: bool

    model_config = {"from_attributes": True}


class EntryRequest(BaseModel):
    entry_time: Optional[datetime] = None

    @field_validator("entry_time")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)


class ExitRequest(BaseModel):
    exit_time: Optional[datetime] = None
    payment_method: str = "cash"

    @field_validator("exit_time")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)


class SettleRequest(BaseModel):
    payment_method: str = "upi"
    new_booking_start_time: Optional[datetime] = None
    new_booking_end_time: Optional[datetime] = None

    @field_validator("new_booking_start_time", "new_booking_end_time")
    @classmethod
    def naive_utc(cls, value):
        return to_naive_utc(value)


class SettlementOut(BaseModel):
    booking: BookingOut
    penalty_payment: PaymentOut
    overstay_minutes: int
    overstay_hours: int
    penalty_amount: float
    new_booking: Optional[BookingOut] = None


class SweepOut(BaseModel):
    activated: int
    overstayed: int
    failed: int = 0

    model_config = {"from_attributes": True}
