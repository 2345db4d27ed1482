from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import Coordinate


class ILocationProvider(ABC):
    """Port for the viewer's position (e.g. the device GPS)."""

    @abstractmethod
    async def current_position(self) -> Coordinate | None:
        """Return the current position, or None if unavailable."""
