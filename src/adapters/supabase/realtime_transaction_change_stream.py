from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from src.adapters.supabase.realtime_channel import RealtimeChannel
from src.adapters.supabase.rows import transaction_from_payload
from src.app.ports.output import ITransactionChangeStream
from src.domain.models import FareTransaction


@dataclass(slots=True)
class RealtimeTransactionChangeStream(RealtimeChannel, ITransactionChangeStream):
    """Inserted and updated rows of the transactions table.

    Narrow it to one driver with `for_driver`; deletes are dropped.
    """

    table: str = "transactions"

    @classmethod
    def for_driver(
        cls, url: str, driver_id: str, *, access_token: str | None = None
    ) -> "RealtimeTransactionChangeStream":
        return cls(
            url=url, access_token=access_token, row_filter=f"driver_id=eq.{driver_id}"
        )

    def _decode_data(self, data: Mapping[str, Any]) -> FareTransaction | None:
        return transaction_from_payload(data)
