from pydantic import BaseModel, Field
from typing import List, Optional


class LotBase(BaseModel):
    lot_name: str
    lot_description: Optional[str] = None
    total_slots: int = Field(ge=1)
    priority_order: int = 1


class LotCreate(LotBase):
    pass


class LotUpdate(BaseModel):
    lot_name: Optional[str] = None
    lot_description: Optional[str] = None
    total_slots: Optional[int] = Field(default=None, ge=1)
    priority_order: Optional[int] = None
    is_active: Optional[bool] = None


class LotOut(LotBase):
    lot_id: int
    organization_id: int
    available_slots: int
    is_active: bool

    model_config = {"from_attributes": True}


class LotAvailability(BaseModel):
    lot_id: int
    lot_name: str
    total_slots: int
    available_slots: int


class OrganizationAvailability(BaseModel):
    organization_id: int
    total_slots: int
    occupied_slots: int
    available_slots: int
    lots: List[LotAvailability] = []
