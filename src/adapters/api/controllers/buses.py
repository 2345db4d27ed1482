from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, WebSocket
from pydantic import ValidationError

from src.adapters.api.dependencies import (
    get_beacon_change_stream,
    get_bus_tracker,
    get_location_provider,
)
from src.adapters.api.schemas.buses import (
    CoordinateSchema,
    NearbyBusesSchema,
    NearbyBusSchema,
)
from src.adapters.api.streaming import client_frames, serve_until_done
from src.adapters.location.fixed_location_provider import FixedLocationProvider
from src.app.ports.output import IBeaconChangeStream
from src.app.services.bus_proximity_tracker import BusProximityTracker
from src.domain.models import Coordinate, RankedBeacon

logger = logging.getLogger(__name__)

router = APIRouter(tags=["buses"])


def _to_schema(
    buses: tuple[RankedBeacon, ...], viewer: Coordinate, *, kind: str = "snapshot"
) -> NearbyBusesSchema:
    return NearbyBusesSchema(
        type=kind,
        fetched_at=datetime.now(timezone.utc),
        viewer=CoordinateSchema(lat=viewer.latitude, lon=viewer.longitude),
        buses=[
            NearbyBusSchema(
                id=r.beacon.id,
                driver_id=r.beacon.driver_id,
                driver_name=r.beacon.driver_name,
                license_plate=r.beacon.license_plate,
                route=r.beacon.route,
                position=CoordinateSchema(
                    lat=r.beacon.position.latitude, lon=r.beacon.position.longitude
                ),
                updated_at=r.beacon.updated_at,
                distance_km=r.distance_km,
            )
            for r in buses
        ],
    )


@router.get("/buses/nearby", response_model=NearbyBusesSchema)
async def nearby_buses(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lon: float = Query(..., ge=-180.0, le=180.0),
    tracker: BusProximityTracker = Depends(get_bus_tracker),
) -> NearbyBusesSchema:
    viewer = Coordinate(latitude=lat, longitude=lon)
    buses = await tracker.refresh(viewer, raise_errors=True)
    return _to_schema(buses, viewer)




@router.websocket("/ws/buses/nearby")
async def nearby_buses_ws(
    websocket: WebSocket,
    lat: float = Query(..., ge=-90.0, le=90.0),
    lon: float = Query(..., ge=-180.0, le=180.0),
    tracker: BusProximityTracker = Depends(get_bus_tracker),
    location: FixedLocationProvider = Depends(get_location_provider),
    stream: IBeaconChangeStream = Depends(get_beacon_change_stream),
) -> None:
    """Stream the ranked list: a snapshot, then one update per change.

    The client may send `{"lat": .., "lon": ..}` to move the viewer; any
    other frame is ignored.
    """

    await websocket.accept()

    viewer = Coordinate(latitude=lat, longitude=lon)
    location.update(viewer)
    tracker.set_viewer_position(viewer)
    buses = await tracker.refresh()
    await websocket.send_json(_to_schema(buses, viewer).model_dump(mode="json"))

    async def push(buses: tuple[RankedBeacon, ...]) -> None:
        current = tracker.viewer_position or viewer
        msg = _to_schema(buses, current, kind="update")
        await websocket.send_json(msg.model_dump(mode="json"))

    async def read_viewer_updates() -> None:
        async for raw in client_frames(websocket):
            try:
                point = CoordinateSchema.model_validate_json(raw)
            except ValidationError:
                logger.debug("Ignoring invalid viewer update: %r", raw)
                continue
            moved = Coordinate(latitude=point.lat, longitude=point.lon)
            location.update(moved)
            tracker.set_viewer_position(moved)
            await push(tracker.beacons)

    await serve_until_done(
        websocket,
        watcher=tracker.watch(stream, on_update=push),
        reader=read_viewer_updates(),
        label="Bus",
    )
