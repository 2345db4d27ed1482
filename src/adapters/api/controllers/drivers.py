from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, WebSocket

from src.adapters.api.dependencies import (
    get_transaction_change_stream,
    get_transaction_repository,
)
from src.adapters.api.schemas.wallet import (
    DriverEarningsSchema,
    FareTransactionSchema,
    PassengerCountsSchema,
)
from src.adapters.api.streaming import drain_client, serve_until_done
from src.app.ports.output import ITransactionChangeStream, ITransactionRepository
from src.app.services.driver_earnings_service import DriverEarningsService
from src.domain.exceptions.backend import BackendUnavailable
from src.domain.models import FareTransaction

logger = logging.getLogger(__name__)

router = APIRouter(tags=["drivers"])


def _today() -> datetime:
    # "Today" follows the server's local calendar day.
    return datetime.now().astimezone()


def _to_schema(
    service: DriverEarningsService, *, kind: str = "snapshot"
) -> DriverEarningsSchema:
    return DriverEarningsSchema(
        type=kind,
        driver_id=service.driver_id,
        total=service.total,
        recent=[
            FareTransactionSchema(
                id=t.id,
                amount=t.amount,
                bus_id=t.bus_id,
                passengers=(
                    PassengerCountsSchema(**t.passenger_count.as_payload())
                    if t.passenger_count is not None
                    else None
                ),
                created_at=t.created_at,
            )
            for t in service.recent
        ],
    )


@router.get("/drivers/{driver_id}/earnings/today", response_model=DriverEarningsSchema)
async def earnings_today(
    driver_id: str,
    repository: ITransactionRepository = Depends(get_transaction_repository),
) -> DriverEarningsSchema:
    service = DriverEarningsService(repository=repository, driver_id=driver_id)
    await service.resync(_today())
    return _to_schema(service)


@router.websocket("/ws/drivers/{driver_id}/earnings")
async def earnings_today_ws(
    websocket: WebSocket,
    driver_id: str,
    repository: ITransactionRepository = Depends(get_transaction_repository),
    stream: ITransactionChangeStream = Depends(get_transaction_change_stream),
) -> None:
    """Today's earnings as a snapshot, then an update per newly counted fare."""

    await websocket.accept()

    service = DriverEarningsService(repository=repository, driver_id=driver_id)
    try:
        await service.resync(_today())
    except BackendUnavailable as exc:
        logger.warning("Earnings resync for %s failed: %s", driver_id, exc)
        await websocket.close(code=1011)
        return
    await websocket.send_json(_to_schema(service).model_dump(mode="json"))

    async def push(tx: FareTransaction) -> None:
        logger.debug("Counted live fare %s for driver %s", tx.id, driver_id)
        msg = _to_schema(service, kind="update")
        await websocket.send_json(msg.model_dump(mode="json"))

    await serve_until_done(
        websocket,
        watcher=service.watch(stream, on_counted=push),
        reader=drain_client(websocket),
        label="Transaction",
    )
