from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from src.adapters.supabase.realtime_channel import RealtimeChannel
from src.adapters.supabase.rows import change_from_payload
from src.app.ports.output import IBeaconChangeStream
from src.domain.models import BeaconChange


@dataclass(slots=True)
class RealtimeBeaconChangeStream(RealtimeChannel, IBeaconChangeStream):
    """Insert/update/delete feed of the buses table."""

    table: str = "buses"

    def _decode_data(self, data: Mapping[str, Any]) -> BeaconChange:
        return change_from_payload(data)
