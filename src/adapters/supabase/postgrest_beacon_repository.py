from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from src.adapters.supabase.errors import translate_http_error
from src.adapters.supabase.rows import beacon_from_row
from src.app.ports.output import IBeaconRepository
from src.domain.exceptions.backend import BackendUnavailable, MalformedEvent
from src.domain.models import BusBeacon

logger = logging.getLogger(__name__)

BUS_SELECT = "*,users!buses_driver_id_fkey(full_name)"


@dataclass(slots=True)
class PostgrestBeaconRepository(IBeaconRepository):
    """Reads the `buses` table through PostgREST.

    The client is injected and owned by the caller (see `rest_client`).
    Rows that cannot be decoded are skipped.
    """

    client: httpx.AsyncClient
    table: str = "buses"

    async def query_active_beacons(self, since: datetime) -> tuple[BusBeacon, ...]:
        params = {
            "select": BUS_SELECT,
            "is_active": "eq.true",
            "updated_at": f"gte.{since.astimezone(timezone.utc).isoformat()}",
        }
        try:
            resp = await self.client.get(f"/{self.table}", params=params)
            resp.raise_for_status()
            rows = resp.json()
        except httpx.HTTPError as e:
            err = translate_http_error(e, label="buses query")
            raise BackendUnavailable(str(err)) from e
        except ValueError as e:
            raise BackendUnavailable("buses query returned invalid JSON") from e

        if not isinstance(rows, list):
            raise BackendUnavailable("buses query returned a non-list body")

        out: list[BusBeacon] = []
        for row in rows:
            try:
                out.append(beacon_from_row(row))
            except MalformedEvent as e:
                logger.debug("Skipping malformed bus row: %s", e)
        return tuple(out)
