from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import AsyncIterator

from src.domain.models import FareTransaction


class ITransactionChangeStream(ABC):
    """Port for the live feed of new or updated fare transactions."""

    @abstractmethod
    def subscribe(
        self,
    ) -> AbstractAsyncContextManager[AsyncIterator[FareTransaction]]:
        """Open a subscription; leaving the context closes it."""
