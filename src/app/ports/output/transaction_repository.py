from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.domain.models import FareTransaction


class ITransactionRepository(ABC):
    """Port for reading fare transactions."""

    @abstractmethod
    async def list_completed_for_driver(
        self, *, driver_id: str, start: datetime, end: datetime
    ) -> tuple[FareTransaction, ...]:
        """Completed transactions created in [start, end], newest first."""
