from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .geo import Coordinate


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class BusBeacon:
    """A driver's bus as last reported to the buses table."""

    id: str
    driver_id: str
    license_plate: str
    route: str
    position: Coordinate
    active: bool
    updated_at: datetime | None = None
    driver_name: str | None = None


@dataclass(frozen=True, slots=True)
class RankedBeacon:
    beacon: BusBeacon
    distance_km: float

    @property
    def id(self) -> str:
        return self.beacon.id


@dataclass(frozen=True, slots=True)
class BeaconChange:
    kind: ChangeKind
    beacon_id: str
    beacon: BusBeacon | None = None
