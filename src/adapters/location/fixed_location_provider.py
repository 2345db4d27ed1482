from __future__ import annotations

from dataclasses import dataclass

from src.app.ports.output import ILocationProvider
from src.domain.models import Coordinate


@dataclass(slots=True)
class FixedLocationProvider(ILocationProvider):
    """Reports a position pushed in from outside (e.g. the client's last GPS fix).

    `position` stays None until the first fix arrives, which is how a denied
    location permission looks to the tracker.
    """

    position: Coordinate | None = None

    def update(self, position: Coordinate | None) -> None:
        self.position = position

    async def current_position(self) -> Coordinate | None:
        return self.position
