from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class PassengerType(str, Enum):
    ADULT = "adult"
    CHILD = "child"
    STUDENT = "student"
    DRIVER = "driver"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# Per-passenger prices in soles.
FARE_PRICES: dict[PassengerType, Decimal] = {
    PassengerType.ADULT: Decimal("2.30"),
    PassengerType.STUDENT: Decimal("1.00"),
    PassengerType.CHILD: Decimal("0.50"),
}


@dataclass(frozen=True, slots=True)
class PassengerCounts:
    adults: int = 0
    children: int = 0
    students: int = 0

    def __post_init__(self) -> None:
        for name in ("adults", "children", "students"):
            if getattr(self, name) < 0:
                raise ValueError(f"Passenger count '{name}' must be >= 0")

    @property
    def total_passengers(self) -> int:
        return self.adults + self.children + self.students

    def as_payload(self) -> dict[str, int]:
        return {
            "adults": self.adults,
            "children": self.children,
            "students": self.students,
        }


@dataclass(frozen=True, slots=True)
class FareTransaction:
    id: str
    driver_id: str
    amount: Decimal
    status: TransactionStatus
    created_at: datetime | None = None
    passenger_id: str | None = None
    bus_id: str | None = None
    passenger_count: PassengerCounts | None = None
