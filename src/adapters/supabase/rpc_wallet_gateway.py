from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

import httpx

from src.adapters.supabase.errors import translate_http_error
from src.adapters.supabase.rows import balance_from_value
from src.app.ports.output import IWalletGateway
from src.domain.exceptions.backend import BackendUnavailable, MalformedEvent
from src.domain.models import PassengerCounts

logger = logging.getLogger(__name__)


def _amount(value: Decimal) -> float:
    # PostgREST takes JSON numbers; two decimal places is the ledger's unit.
    return float(value.quantize(Decimal("0.01")))


@dataclass(slots=True)
class RpcWalletGateway(IWalletGateway):
    """Calls the backend's balance procedures through PostgREST `/rpc`.

    The procedures themselves (and their atomicity) live in the database.
    """

    client: httpx.AsyncClient
    users_table: str = "users"

    async def _rpc(self, name: str, args: Mapping[str, Any]) -> Any:
        try:
            resp = await self.client.post(f"/rpc/{name}", json=dict(args))
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("RPC %s failed: %s", name, e)
            raise translate_http_error(e, label=name) from e

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    async def get_balance(self, user_id: str) -> Decimal:
        try:
            resp = await self.client.get(
                f"/{self.users_table}",
                params={"select": "balance", "id": f"eq.{user_id}"},
                headers={"Accept": "application/vnd.pgrst.object+json"},
            )
            resp.raise_for_status()
            row = resp.json()
        except httpx.HTTPError as e:
            raise translate_http_error(e, label="balance query") from e
        except ValueError as e:
            raise BackendUnavailable("balance query returned invalid JSON") from e

        try:
            return balance_from_value(row.get("balance") if isinstance(row, dict) else None)
        except MalformedEvent as e:
            raise BackendUnavailable(f"Unreadable balance for {user_id}") from e

    async def update_passenger_balance(
        self, *, passenger_id: str, amount: Decimal
    ) -> Decimal:
        result = await self._rpc(
            "update_passenger_balance",
            {"passenger_id": passenger_id, "amount": _amount(amount)},
        )
        if result is None:
            # Older procedure versions return void; read the balance back.
            return await self.get_balance(passenger_id)
        try:
            return balance_from_value(result)
        except MalformedEvent as e:
            raise BackendUnavailable("update_passenger_balance returned garbage") from e

    async def process_ticket_payment(
        self,
        *,
        passenger_id: str,
        bus_id: str,
        amount: Decimal,
        passenger_count: PassengerCounts,
    ) -> None:
        await self._rpc(
            "process_ticket_payment",
            {
                "p_passenger_id": passenger_id,
                "p_bus_id": bus_id,
                "p_amount": _amount(amount),
                "p_passenger_count": passenger_count.as_payload(),
            },
        )

    async def request_withdrawal(self, *, driver_id: str, amount: Decimal) -> None:
        await self._rpc(
            "request_withdrawal",
            {"p_driver_id": driver_id, "p_amount": _amount(amount)},
        )
