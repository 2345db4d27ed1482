from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from src.adapters.supabase.errors import translate_http_error
from src.adapters.supabase.rows import transaction_from_row
from src.app.ports.output import ITransactionRepository
from src.domain.exceptions.backend import BackendUnavailable, MalformedEvent
from src.domain.models import FareTransaction

logger = logging.getLogger(__name__)


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


@dataclass(slots=True)
class PostgrestTransactionRepository(ITransactionRepository):
    client: httpx.AsyncClient
    table: str = "transactions"

    async def list_completed_for_driver(
        self, *, driver_id: str, start: datetime, end: datetime
    ) -> tuple[FareTransaction, ...]:
        # Two filters on one column need a list of tuples, not a dict.
        params = [
            ("select", "id,driver_id,amount,status,passenger_count,created_at,bus_id"),
            ("driver_id", f"eq.{driver_id}"),
            ("status", "eq.completed"),
            ("created_at", f"gte.{_iso(start)}"),
            ("created_at", f"lte.{_iso(end)}"),
            ("order", "created_at.desc"),
        ]
        try:
            resp = await self.client.get(f"/{self.table}", params=params)
            resp.raise_for_status()
            rows = resp.json()
        except httpx.HTTPError as e:
            raise translate_http_error(e, label="transactions query") from e
        except ValueError as e:
            raise BackendUnavailable("transactions query returned invalid JSON") from e

        out: list[FareTransaction] = []
        for row in rows if isinstance(rows, list) else ():
            try:
                out.append(transaction_from_row(row))
            except MalformedEvent as e:
                logger.debug("Skipping malformed transaction row: %s", e)
        return tuple(out)
