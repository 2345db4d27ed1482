from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from src.domain.models import PassengerCounts


class IWalletGateway(ABC):
    """Port for the backend's balance procedures.

    Each mutation is a single all-or-nothing remote call; atomicity is the
    backend's concern.
    """

    @abstractmethod
    async def get_balance(self, user_id: str) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    async def update_passenger_balance(
        self, *, passenger_id: str, amount: Decimal
    ) -> Decimal:
        """Credit a passenger and return the new balance."""

    @abstractmethod
    async def process_ticket_payment(
        self,
        *,
        passenger_id: str,
        bus_id: str,
        amount: Decimal,
        passenger_count: PassengerCounts,
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def request_withdrawal(self, *, driver_id: str, amount: Decimal) -> None:
        raise NotImplementedError
