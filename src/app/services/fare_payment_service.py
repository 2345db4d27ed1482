from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from src.app.ports.output import IWalletGateway
from src.domain.exceptions.wallet import InsufficientBalance, InvalidAmount
from src.domain.models import FARE_PRICES, PassengerCounts, PassengerType


def fare_total(counts: PassengerCounts) -> Decimal:
    total = (
        counts.adults * FARE_PRICES[PassengerType.ADULT]
        + counts.children * FARE_PRICES[PassengerType.CHILD]
        + counts.students * FARE_PRICES[PassengerType.STUDENT]
    )
    return total.quantize(Decimal("0.01"))


def single_ticket_counts(passenger_type: PassengerType) -> PassengerCounts:
    """One ticket for the user's own fare category (none for drivers)."""

    return PassengerCounts(
        adults=int(passenger_type is PassengerType.ADULT),
        children=int(passenger_type is PassengerType.CHILD),
        students=int(passenger_type is PassengerType.STUDENT),
    )


@dataclass(slots=True)
class FarePaymentService:
    gateway: IWalletGateway

    async def pay(
        self, *, passenger_id: str, bus_id: str, counts: PassengerCounts
    ) -> Decimal:
        amount = fare_total(counts)
        if amount <= 0:
            raise InvalidAmount("Select at least one passenger")

        balance = await self.gateway.get_balance(passenger_id)
        if balance < amount:
            raise InsufficientBalance(f"Fare {amount} exceeds balance {balance}")

        await self.gateway.process_ticket_payment(
            passenger_id=passenger_id,
            bus_id=bus_id,
            amount=amount,
            passenger_count=counts,
        )
        return amount

    async def pay_single(
        self, *, passenger_id: str, bus_id: str, passenger_type: PassengerType
    ) -> Decimal:
        counts = single_ticket_counts(passenger_type)
        if counts.total_passengers == 0:
            raise InvalidAmount(f"No fare is defined for '{passenger_type.value}'")
        return await self.pay(passenger_id=passenger_id, bus_id=bus_id, counts=counts)
