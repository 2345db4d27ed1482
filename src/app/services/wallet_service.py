from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from src.app.ports.output import IWalletGateway
from src.domain.exceptions.wallet import InsufficientBalance, InvalidAmount

DEPOSIT_AMOUNTS: tuple[Decimal, ...] = tuple(
    Decimal(v) for v in (10, 20, 50, 100, 200, 500)
)
WITHDRAWAL_AMOUNTS: tuple[Decimal, ...] = tuple(
    Decimal(v) for v in (50, 100, 200, 500, 1000)
)


def _require_positive(amount: Decimal) -> Decimal:
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


@dataclass(slots=True)
class WalletService:
    """Deposits and withdrawals against the backend balance procedures.

    Client-side checks only guard obvious mistakes; the backend remains the
    source of truth for whether a mutation succeeds.
    """

    gateway: IWalletGateway

    async def balance(self, user_id: str) -> Decimal:
        return await self.gateway.get_balance(user_id)

    async def deposit(self, *, passenger_id: str, amount: Decimal) -> Decimal:
        _require_positive(amount)
        return await self.gateway.update_passenger_balance(
            passenger_id=passenger_id, amount=amount
        )

    async def withdrawal_options(self, driver_id: str) -> tuple[Decimal, ...]:
        available = await self.gateway.get_balance(driver_id)
        options = [a for a in WITHDRAWAL_AMOUNTS if a <= available]
        if available > 0 and available not in options:
            options.append(available)
        return tuple(options)

    async def withdraw(self, *, driver_id: str, amount: Decimal) -> Decimal:
        _require_positive(amount)
        available = await self.gateway.get_balance(driver_id)
        if amount > available:
            raise InsufficientBalance(
                f"Requested {amount} but only {available} is available"
            )
        await self.gateway.request_withdrawal(driver_id=driver_id, amount=amount)
        return amount
