from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from src.app.ports.output import (
    IBeaconChangeStream,
    IBeaconRepository,
    ILocationProvider,
)
from src.domain.algorithms.freshness import FRESHNESS_WINDOW, is_fresh
from src.domain.algorithms.geo_utils import haversine_distance_km
from src.domain.exceptions.backend import BackendUnavailable
from src.domain.models import (
    BeaconChange,
    BusBeacon,
    ChangeKind,
    Coordinate,
    RankedBeacon,
)

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[tuple[RankedBeacon, ...]], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rank_key(item: RankedBeacon) -> tuple[float, str]:
    return (item.distance_km, item.id)


@dataclass(slots=True)
class BusProximityTracker:
    """Keeps a distance-ranked list of online buses near the viewer.

    - `refresh` replaces the list from a full query (fail-soft).
    - `on_change` applies a single insert/update/delete event.
    - `watch` feeds a change stream into `on_change` until it ends.

    Staleness is only evaluated when one of these runs; entries are not
    expired on a timer between refreshes.
    """

    repository: IBeaconRepository
    location_provider: ILocationProvider | None = None
    freshness_window: timedelta = FRESHNESS_WINDOW
    clock: Callable[[], datetime] = _utcnow

    last_error: BackendUnavailable | None = field(default=None, init=False)
    _viewer: Coordinate | None = field(default=None, init=False, repr=False)
    _ranked: tuple[RankedBeacon, ...] = field(default=(), init=False, repr=False)

    @property
    def beacons(self) -> tuple[RankedBeacon, ...]:
        return self._ranked

    @property
    def viewer_position(self) -> Coordinate | None:
        return self._viewer

    def set_viewer_position(self, position: Coordinate | None) -> None:
        self._viewer = position
        if position is None or not self._ranked:
            return
        self._ranked = tuple(
            sorted(
                (
                    replace(r, distance_km=self._distance_to(position, r.beacon))
                    for r in self._ranked
                ),
                key=_rank_key,
            )
        )

    def _is_online(self, beacon: BusBeacon, now: datetime) -> bool:
        return beacon.active and is_fresh(
            beacon.updated_at, now=now, window=self.freshness_window
        )

    @staticmethod
    def _distance_to(viewer: Coordinate, beacon: BusBeacon) -> float:
        return haversine_distance_km(viewer, beacon.position)

    async def _resolve_viewer(
        self, viewer_position: Coordinate | None
    ) -> Coordinate | None:
        if viewer_position is not None:
            return viewer_position
        if self.location_provider is not None:
            try:
                position = await self.location_provider.current_position()
            except Exception:
                logger.exception("Location provider failed; using last position")
                position = None
            if position is not None:
                return position
        return self._viewer

    async def refresh(
        self,
        viewer_position: Coordinate | None = None,
        *,
        raise_errors: bool = False,
    ) -> tuple[RankedBeacon, ...]:
        viewer = await self._resolve_viewer(viewer_position)
        if viewer is None:
            logger.debug("No viewer position; refresh skipped")
            return self._ranked

        since = self.clock() - self.freshness_window
        try:
            beacons = await self.repository.query_active_beacons(since)
        except BackendUnavailable as exc:
            logger.warning(
                "Bus refresh failed, keeping %d buses: %s", len(self._ranked), exc
            )
            self.last_error = exc
            if raise_errors:
                raise
            return self._ranked

        # Evaluate freshness after the query returns, not at issue time.
        now = self.clock()
        latest: dict[str, RankedBeacon] = {}
        for beacon in beacons:
            if not self._is_online(beacon, now):
                continue
            latest[beacon.id] = RankedBeacon(
                beacon=beacon, distance_km=self._distance_to(viewer, beacon)
            )

        self._viewer = viewer
        self.last_error = None
        self._ranked = tuple(sorted(latest.values(), key=_rank_key))
        logger.debug("Refreshed nearby buses: %d online", len(self._ranked))
        return self._ranked

    def _without(self, beacon_id: str) -> tuple[RankedBeacon, ...]:
        return tuple(r for r in self._ranked if r.id != beacon_id)

    def on_change(self, event: BeaconChange) -> tuple[RankedBeacon, ...]:
        if not event.beacon_id:
            logger.debug("Dropping change event without id: %r", event)
            return self._ranked

        if event.kind is ChangeKind.DELETE:
            self._ranked = self._without(event.beacon_id)
            return self._ranked

        beacon = event.beacon
        if beacon is None or beacon.id != event.beacon_id:
            logger.debug(
                "Dropping malformed %s event for %s", event.kind.value, event.beacon_id
            )
            return self._ranked

        if not self._is_online(beacon, self.clock()):
            self._ranked = self._without(beacon.id)
            return self._ranked

        if self._viewer is None:
            # Nothing to measure against yet; the next refresh picks it up.
            return self._ranked

        ranked = RankedBeacon(
            beacon=beacon, distance_km=self._distance_to(self._viewer, beacon)
        )
        self._ranked = tuple(
            sorted((*self._without(beacon.id), ranked), key=_rank_key)
        )
        return self._ranked

    async def watch(
        self,
        stream: IBeaconChangeStream,
        *,
        on_update: UpdateCallback | None = None,
    ) -> None:
        """Apply events from `stream` until it ends or the task is cancelled."""

        async with stream.subscribe() as changes:
            async for event in changes:
                before = self._ranked
                after = self.on_change(event)
                if on_update is not None and after != before:
                    await on_update(after)
