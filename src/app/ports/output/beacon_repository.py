from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.domain.models import BusBeacon


class IBeaconRepository(ABC):
    """Port for reading bus state from the remote buses table."""

    @abstractmethod
    async def query_active_beacons(self, since: datetime) -> tuple[BusBeacon, ...]:
        """Return beacons with active=true and updated_at >= since.

        Raises BackendUnavailable when the store cannot be reached.
        """
