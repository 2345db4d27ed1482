from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class BalanceSchema(BaseModel):
    user_id: str
    balance: Decimal


class DepositRequestSchema(BaseModel):
    passenger_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class WithdrawalRequestSchema(BaseModel):
    driver_id: str
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class WithdrawalOptionsSchema(BaseModel):
    driver_id: str
    options: list[Decimal]


class WithdrawalSchema(BaseModel):
    driver_id: str
    amount: Decimal
    status: Literal["requested"] = "requested"


class PassengerCountsSchema(BaseModel):
    adults: int = Field(0, ge=0)
    children: int = Field(0, ge=0)
    students: int = Field(0, ge=0)


class TicketPaymentRequestSchema(BaseModel):
    passenger_id: str
    bus_id: str
    passengers: PassengerCountsSchema


class SingleTicketRequestSchema(BaseModel):
    passenger_id: str
    bus_id: str
    passenger_type: Literal["adult", "child", "student", "driver"]


class PaymentSchema(BaseModel):
    passenger_id: str
    bus_id: str
    amount: Decimal


class FareTransactionSchema(BaseModel):
    id: str
    amount: Decimal
    bus_id: str | None = None
    passengers: PassengerCountsSchema | None = None
    created_at: datetime | None = None


class DriverEarningsSchema(BaseModel):
    type: Literal["snapshot", "update"] = "snapshot"
    driver_id: str
    total: Decimal
    recent: list[FareTransactionSchema]
