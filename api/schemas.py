from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Literal, Optional
from decimal import Decimal
from datetime import datetime

VehicleType = Literal["E-Rickshaw", "EV Bike", "EV Car"]


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# User Schemas
class UserBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    vehicle_type: VehicleType


class UserCreate(UserBase):
    email: EmailStr
    rc_image_id: Optional[str] = None


class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    vehicle_type: Optional[VehicleType] = None
    rc_image_id: Optional[str] = None

    @field_validator("name", "vehicle_type")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class UserResponse(UserBase):
    id: int
    email: str
    rc_image_id: Optional[str] = None
    carbon_credits: Decimal
    balance_inr: Decimal = Field(..., serialization_alias="balanceINR")
    created_at: datetime


# Upload Schemas
class UploadResponse(CamelModel):
    id: int
    user_id: int
    image_id: str
    estimated_km: int
    carbon_saved_kg: Decimal
    carbon_credits: Decimal
    reward_inr: Decimal = Field(..., serialization_alias="rewardINR")
    created_at: datetime


class StatsResponse(CamelModel):
    total_uploads: int
    total_km: int
    total_earned: Decimal
    total_carbon_saved: Decimal


# Wallet Schemas
class WithdrawRequest(CamelModel):
    user_id: int
    amount: Decimal = Field(..., gt=0)
    method: str = Field(..., min_length=1)


class WithdrawResponse(CamelModel):
    success: bool
    message: str
    transaction_id: str
