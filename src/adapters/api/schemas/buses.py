from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CoordinateSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class NearbyBusSchema(BaseModel):
    id: str
    driver_id: str
    driver_name: str | None = None
    license_plate: str
    route: str
    position: CoordinateSchema
    updated_at: datetime | None = None
    distance_km: float


class NearbyBusesSchema(BaseModel):
    type: Literal["snapshot", "update"] = "snapshot"
    fetched_at: datetime
    viewer: CoordinateSchema
    buses: list[NearbyBusSchema]
