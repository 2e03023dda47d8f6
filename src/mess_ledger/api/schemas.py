"""Pydantic models for request bodies."""

import datetime

from pydantic import BaseModel, Field

from mess_ledger.domain.meals import MealType


class CreateMessRequest(BaseModel):
    name: str
    display_name: str


class JoinMessRequest(BaseModel):
    invite_code: str
    display_name: str


class TransferManagerRequest(BaseModel):
    member_id: str


class MealSettingsRequest(BaseModel):
    """Partial meal settings update; omitted fields are kept."""

    breakfast_cutoff: str | None = None
    lunch_cutoff: str | None = None
    dinner_cutoff: str | None = None
    is_breakfast_on: bool | None = None
    is_lunch_on: bool | None = None
    is_dinner_on: bool | None = None
    is_cutoff_enabled: bool | None = None
    timezone: str | None = None


class ToggleMealRequest(BaseModel):
    meal: MealType
    enabled: bool


class MealStatusRequest(BaseModel):
    """Full meal record written by a manager override."""

    breakfast: float = Field(default=0.0, ge=0)
    lunch: float = Field(default=0.0, ge=0)
    dinner: float = Field(default=0.0, ge=0)
    guest_breakfast: float = Field(default=0.0, ge=0)
    guest_lunch: float = Field(default=0.0, ge=0)
    guest_dinner: float = Field(default=0.0, ge=0)


class GuestMealsRequest(BaseModel):
    date: datetime.date | None = None
    breakfast: float = 0.0
    lunch: float = 0.0
    dinner: float = 0.0


class SubmitTransactionRequest(BaseModel):
    """Deposit or expense submission."""

    amount: float
    description: str | None = None
    date: datetime.datetime | None = None
    receipt_url: str | None = None
    member_id: str | None = None


class EditTransactionRequest(BaseModel):
    amount: float | None = None
    description: str | None = None
    date: datetime.datetime | None = None


class RegisterTokenRequest(BaseModel):
    token: str
