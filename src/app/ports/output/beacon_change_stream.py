from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import AsyncIterator

from src.domain.models import BeaconChange


class IBeaconChangeStream(ABC):
    """Port for the live insert/update/delete feed of the buses table.

    Events arrive in commit order per row, with no ordering across rows.
    """

    @abstractmethod
    def subscribe(self) -> AbstractAsyncContextManager[AsyncIterator[BeaconChange]]:
        """Open a subscription; leaving the context closes it."""
