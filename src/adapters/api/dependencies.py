from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import AsyncIterator

import httpx
from fastapi import Depends

from src.adapters.location.fixed_location_provider import FixedLocationProvider
from src.adapters.supabase.config import SupabaseRuntimeConfig, env_float, rest_client
from src.adapters.supabase.postgrest_beacon_repository import (
    PostgrestBeaconRepository,
)
from src.adapters.supabase.postgrest_transaction_repository import (
    PostgrestTransactionRepository,
)
from src.adapters.supabase.realtime_beacon_change_stream import (
    RealtimeBeaconChangeStream,
)
from src.adapters.supabase.realtime_transaction_change_stream import (
    RealtimeTransactionChangeStream,
)
from src.adapters.supabase.rpc_wallet_gateway import RpcWalletGateway
from src.app.ports.output import (
    IBeaconChangeStream,
    ITransactionChangeStream,
    ITransactionRepository,
)
from src.app.services.bus_proximity_tracker import BusProximityTracker
from src.app.services.fare_payment_service import FarePaymentService
from src.app.services.wallet_service import WalletService
from src.domain.algorithms.freshness import FRESHNESS_WINDOW


def get_supabase_config() -> SupabaseRuntimeConfig:
    return SupabaseRuntimeConfig.from_env()


@lru_cache(maxsize=1)
def get_freshness_window() -> timedelta:
    default_s = FRESHNESS_WINDOW.total_seconds()
    seconds = env_float("BUS_FRESHNESS_WINDOW_S", default_s)
    if seconds <= 0:
        seconds = default_s
    return timedelta(seconds=seconds)


async def get_rest_client(
    cfg: SupabaseRuntimeConfig = Depends(get_supabase_config),
) -> AsyncIterator[httpx.AsyncClient]:
    async with rest_client(cfg) as client:
        yield client


def get_location_provider() -> FixedLocationProvider:
    # One per request; websocket clients feed it their position.
    return FixedLocationProvider()


def get_bus_tracker(
    client: httpx.AsyncClient = Depends(get_rest_client),
    location_provider: FixedLocationProvider = Depends(get_location_provider),
    freshness_window: timedelta = Depends(get_freshness_window),
) -> BusProximityTracker:
    return BusProximityTracker(
        repository=PostgrestBeaconRepository(client),
        location_provider=location_provider,
        freshness_window=freshness_window,
    )


def get_beacon_change_stream(
    cfg: SupabaseRuntimeConfig = Depends(get_supabase_config),
) -> IBeaconChangeStream:
    return RealtimeBeaconChangeStream(
        url=cfg.realtime_url(), access_token=cfg.access_token
    )


def get_wallet_service(
    client: httpx.AsyncClient = Depends(get_rest_client),
) -> WalletService:
    return WalletService(gateway=RpcWalletGateway(client))


def get_fare_payment_service(
    client: httpx.AsyncClient = Depends(get_rest_client),
) -> FarePaymentService:
    return FarePaymentService(gateway=RpcWalletGateway(client))


def get_transaction_repository(
    client: httpx.AsyncClient = Depends(get_rest_client),
) -> ITransactionRepository:
    return PostgrestTransactionRepository(client)


def get_transaction_change_stream(
    driver_id: str,
    cfg: SupabaseRuntimeConfig = Depends(get_supabase_config),
) -> ITransactionChangeStream:
    return RealtimeTransactionChangeStream.for_driver(
        cfg.realtime_url(), driver_id, access_token=cfg.access_token
    )
