from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncIterator

import httpx
import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from src.adapters.api.dependencies import (
    get_beacon_change_stream,
    get_bus_tracker,
    get_fare_payment_service,
    get_freshness_window,
    get_location_provider,
    get_transaction_change_stream,
    get_transaction_repository,
    get_wallet_service,
)
from src.app.services.bus_proximity_tracker import BusProximityTracker
from src.app.services.fare_payment_service import FarePaymentService
from src.app.services.wallet_service import WalletService
from src.domain.exceptions.backend import BackendUnavailable, PaymentRejected
from src.domain.models import (
    BeaconChange,
    BusBeacon,
    ChangeKind,
    Coordinate,
    FareTransaction,
    PassengerCounts,
    TransactionStatus,
)
from src.main import app

NOW = datetime.now(timezone.utc)


def make_beacon(beacon_id: str, *, lon: float = 0.0, active: bool = True) -> BusBeacon:
    return BusBeacon(
        id=beacon_id,
        driver_id=f"d-{beacon_id}",
        license_plate=f"BUS-{beacon_id}",
        route="Ruta 3",
        position=Coordinate(latitude=0.0, longitude=lon),
        active=active,
        updated_at=NOW,
    )


@dataclass(slots=True)
class FakeBeaconRepository:
    beacons: tuple[BusBeacon, ...] = ()
    error: Exception | None = None

    async def query_active_beacons(self, since: datetime) -> tuple[BusBeacon, ...]:
        if self.error is not None:
            raise self.error
        return self.beacons


@dataclass(slots=True)
class FakeChangeStream:
    events: list
    hold: bool = False
    closed: int = 0

    @contextlib.asynccontextmanager
    async def subscribe(self) -> AsyncIterator[AsyncIterator[object]]:
        async def _gen() -> AsyncIterator[object]:
            for e in self.events:
                yield e
            if self.hold:
                await asyncio.Event().wait()

        try:
            yield _gen()
        finally:
            self.closed += 1


@dataclass(slots=True)
class FakeWalletGateway:
    balance: Decimal = Decimal("0")
    reject_with: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def get_balance(self, user_id: str) -> Decimal:
        return self.balance

    async def update_passenger_balance(
        self, *, passenger_id: str, amount: Decimal
    ) -> Decimal:
        self.calls.append("deposit")
        return self.balance + amount

    async def process_ticket_payment(
        self,
        *,
        passenger_id: str,
        bus_id: str,
        amount: Decimal,
        passenger_count: PassengerCounts,
    ) -> None:
        if self.reject_with is not None:
            raise self.reject_with
        self.calls.append("pay")

    async def request_withdrawal(self, *, driver_id: str, amount: Decimal) -> None:
        self.calls.append("withdraw")


@dataclass(slots=True)
class FakeTransactionRepository:
    txs: tuple[FareTransaction, ...] = ()
    error: Exception | None = None

    async def list_completed_for_driver(
        self, *, driver_id: str, start: datetime, end: datetime
    ) -> tuple[FareTransaction, ...]:
        if self.error is not None:
            raise self.error
        return self.txs


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def override_tracker(repo: FakeBeaconRepository) -> None:
    app.dependency_overrides[get_bus_tracker] = lambda: BusProximityTracker(
        repository=repo
    )


def override_wallet(gw: FakeWalletGateway) -> None:
    app.dependency_overrides[get_wallet_service] = lambda: WalletService(gateway=gw)
    app.dependency_overrides[get_fare_payment_service] = lambda: FarePaymentService(
        gateway=gw
    )


async def request(method: str, url: str, **kwargs) -> httpx.Response:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, url, **kwargs)


@pytest.mark.unit
@pytest.mark.anyio
async def test_get_nearby_buses_returns_ranked_list() -> None:
    override_tracker(
        FakeBeaconRepository(
            beacons=(make_beacon("far", lon=0.5), make_beacon("near", lon=0.01))
        )
    )

    resp = await request("GET", "/buses/nearby", params={"lat": 0.0, "lon": 0.0})

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["type"] == "snapshot"
    assert [b["id"] for b in payload["buses"]] == ["near", "far"]
    assert payload["buses"][0]["distance_km"] == pytest.approx(1.11, abs=0.01)


@pytest.mark.unit
@pytest.mark.anyio
async def test_get_nearby_buses_reports_backend_outage() -> None:
    override_tracker(FakeBeaconRepository(error=BackendUnavailable("down")))

    resp = await request("GET", "/buses/nearby", params={"lat": 0.0, "lon": 0.0})

    assert resp.status_code == 503


@pytest.mark.unit
@pytest.mark.anyio
async def test_get_nearby_buses_validates_coordinates() -> None:
    override_tracker(FakeBeaconRepository())

    resp = await request("GET", "/buses/nearby", params={"lat": 95.0, "lon": 0.0})

    assert resp.status_code == 422


@pytest.mark.unit
@pytest.mark.anyio
async def test_post_ticket_payment() -> None:
    gw = FakeWalletGateway(balance=Decimal("10"))
    override_wallet(gw)

    resp = await request(
        "POST",
        "/payments/tickets",
        json={
            "passenger_id": "p1",
            "bus_id": "bus-1",
            "passengers": {"adults": 1, "students": 1},
        },
    )

    assert resp.status_code == 200
    assert Decimal(resp.json()["amount"]) == Decimal("3.30")
    assert gw.calls == ["pay"]


@pytest.mark.unit
@pytest.mark.anyio
async def test_post_ticket_payment_with_low_balance_is_conflict() -> None:
    override_wallet(FakeWalletGateway(balance=Decimal("1")))

    resp = await request(
        "POST",
        "/payments/tickets/single",
        json={"passenger_id": "p1", "bus_id": "bus-1", "passenger_type": "adult"},
    )

    assert resp.status_code == 409


@pytest.mark.unit
@pytest.mark.anyio
async def test_post_ticket_payment_rejected_by_backend() -> None:
    override_wallet(
        FakeWalletGateway(balance=Decimal("10"), reject_with=PaymentRejected("no"))
    )

    resp = await request(
        "POST",
        "/payments/tickets/single",
        json={"passenger_id": "p1", "bus_id": "bus-1", "passenger_type": "student"},
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "no"


@pytest.mark.unit
@pytest.mark.anyio
async def test_post_ticket_payment_without_passengers_is_unprocessable() -> None:
    override_wallet(FakeWalletGateway(balance=Decimal("10")))

    resp = await request(
        "POST",
        "/payments/tickets",
        json={"passenger_id": "p1", "bus_id": "bus-1", "passengers": {}},
    )

    assert resp.status_code == 422


@pytest.mark.unit
@pytest.mark.anyio
async def test_wallet_deposit_and_withdrawal() -> None:
    gw = FakeWalletGateway(balance=Decimal("120"))
    override_wallet(gw)

    dep = await request(
        "POST", "/wallet/deposits", json={"passenger_id": "p1", "amount": 20}
    )
    opts = await request("GET", "/wallet/d1/withdrawal-options")
    wd = await request(
        "POST", "/wallet/withdrawals", json={"driver_id": "d1", "amount": 100}
    )
    too_much = await request(
        "POST", "/wallet/withdrawals", json={"driver_id": "d1", "amount": 500}
    )

    assert dep.status_code == 200
    assert Decimal(dep.json()["balance"]) == Decimal("140")
    assert [Decimal(v) for v in opts.json()["options"]] == [
        Decimal("50"),
        Decimal("100"),
        Decimal("120"),
    ]
    assert wd.status_code == 200
    assert wd.json()["status"] == "requested"
    assert too_much.status_code == 409
    assert gw.calls == ["deposit", "withdraw"]


@pytest.mark.unit
@pytest.mark.anyio
async def test_driver_earnings_today() -> None:
    now = datetime.now().astimezone()
    repo = FakeTransactionRepository(
        txs=(
            FareTransaction(
                id="t1",
                driver_id="d1",
                amount=Decimal("2.30"),
                status=TransactionStatus.COMPLETED,
                created_at=now,
                passenger_count=PassengerCounts(adults=1),
            ),
            FareTransaction(
                id="t2",
                driver_id="d1",
                amount=Decimal("0.50"),
                status=TransactionStatus.COMPLETED,
                created_at=now - timedelta(seconds=1),
            ),
        )
    )
    app.dependency_overrides[get_transaction_repository] = lambda: repo

    resp = await request("GET", "/drivers/d1/earnings/today")

    assert resp.status_code == 200
    payload = resp.json()
    assert Decimal(payload["total"]) == Decimal("2.80")
    assert [t["id"] for t in payload["recent"]] == ["t1", "t2"]
    assert payload["recent"][0]["passengers"]["adults"] == 1


@pytest.mark.unit
def test_websocket_streams_snapshot_then_updates() -> None:
    stream = FakeChangeStream(
        events=[
            BeaconChange(
                kind=ChangeKind.INSERT,
                beacon_id="b",
                beacon=make_beacon("b", lon=0.2),
            ),
            BeaconChange(
                kind=ChangeKind.UPDATE,
                beacon_id="a",
                beacon=make_beacon("a", active=False),
            ),
        ]
    )
    override_tracker(FakeBeaconRepository(beacons=(make_beacon("a", lon=0.1),)))
    app.dependency_overrides[get_beacon_change_stream] = lambda: stream

    with TestClient(app) as client:
        with client.websocket_connect("/ws/buses/nearby?lat=0&lon=0") as ws:
            snapshot = ws.receive_json()
            first = ws.receive_json()
            second = ws.receive_json()

    assert snapshot["type"] == "snapshot"
    assert [b["id"] for b in snapshot["buses"]] == ["a"]
    assert first["type"] == "update"
    assert [b["id"] for b in first["buses"]] == ["a", "b"]
    assert [b["id"] for b in second["buses"]] == ["b"]
    assert stream.closed == 1


@pytest.mark.unit
def test_websocket_skips_garbage_frames_and_keeps_following_the_viewer() -> None:
    stream = FakeChangeStream(events=[], hold=True)
    override_tracker(
        FakeBeaconRepository(
            beacons=(make_beacon("a", lon=0.1), make_beacon("b", lon=0.2))
        )
    )
    app.dependency_overrides[get_beacon_change_stream] = lambda: stream

    with TestClient(app) as client:
        with client.websocket_connect("/ws/buses/nearby?lat=0&lon=0") as ws:
            snapshot = ws.receive_json()
            ws.send_text("not json")
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"lat": 0.0})
            ws.send_json({"lat": 0.0, "lon": 0.2})
            moved = ws.receive_json()

    assert [b["id"] for b in snapshot["buses"]] == ["a", "b"]
    assert moved["type"] == "update"
    assert moved["viewer"] == {"lat": 0.0, "lon": 0.2}
    assert [b["id"] for b in moved["buses"]] == ["b", "a"]


def completed(tx_id: str, amount: str, **kwargs) -> FareTransaction:
    return FareTransaction(
        id=tx_id,
        driver_id="d1",
        amount=Decimal(amount),
        status=kwargs.pop("status", TransactionStatus.COMPLETED),
        created_at=datetime.now().astimezone(),
        **kwargs,
    )


@pytest.mark.unit
def test_earnings_websocket_streams_live_fares_once() -> None:
    stream = FakeChangeStream(
        events=[
            completed("t1", "2.30"),
            completed("t2", "1.00", status=TransactionStatus.PENDING),
            completed("t2", "1.00"),
        ]
    )
    app.dependency_overrides[get_transaction_repository] = lambda: (
        FakeTransactionRepository(txs=(completed("t1", "2.30"),))
    )
    app.dependency_overrides[get_transaction_change_stream] = lambda: stream

    with TestClient(app) as client:
        with client.websocket_connect("/ws/drivers/d1/earnings") as ws:
            snapshot = ws.receive_json()
            update = ws.receive_json()

    assert snapshot["type"] == "snapshot"
    assert Decimal(snapshot["total"]) == Decimal("2.30")
    assert update["type"] == "update"
    assert Decimal(update["total"]) == Decimal("3.30")
    assert {t["id"] for t in update["recent"]} == {"t1", "t2"}
    assert stream.closed == 1


@pytest.mark.unit
def test_earnings_websocket_closes_when_resync_fails() -> None:
    app.dependency_overrides[get_transaction_repository] = lambda: (
        FakeTransactionRepository(error=BackendUnavailable("down"))
    )
    app.dependency_overrides[get_transaction_change_stream] = lambda: (
        FakeChangeStream(events=[])
    )

    with TestClient(app) as client:
        with client.websocket_connect("/ws/drivers/d1/earnings") as ws:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

    assert exc_info.value.code == 1011


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "seconds"), [("45", 45.0), ("soon", 90.0), ("-5", 90.0)]
)
def test_freshness_window_env_override(monkeypatch, raw: str, seconds: float) -> None:
    monkeypatch.setenv("BUS_FRESHNESS_WINDOW_S", raw)
    get_freshness_window.cache_clear()
    try:
        assert get_freshness_window() == timedelta(seconds=seconds)
    finally:
        get_freshness_window.cache_clear()


@pytest.mark.unit
@pytest.mark.anyio
async def test_bus_tracker_dependency_reads_the_location_provider() -> None:
    row = {
        "id": "bus-1",
        "driver_id": "d1",
        "license_plate": "BUS-1",
        "route": "Ruta 3",
        "latitude": 0.0,
        "longitude": 0.1,
        "is_active": True,
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[row]))
    location = get_location_provider()
    location.update(Coordinate(latitude=0.0, longitude=0.1))

    async with httpx.AsyncClient(
        transport=transport, base_url="https://demo.supabase.co/rest/v1"
    ) as client:
        tracker = get_bus_tracker(
            client=client,
            location_provider=location,
            freshness_window=timedelta(seconds=90),
        )
        out = await tracker.refresh()

    assert [r.id for r in out] == ["bus-1"]
    assert out[0].distance_km == 0.0
