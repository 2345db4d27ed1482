from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Awaitable, Callable

from src.app.ports.output import ITransactionChangeStream, ITransactionRepository
from src.domain.models import FareTransaction, TransactionStatus

logger = logging.getLogger(__name__)

RECENT_LIMIT = 20

CountedCallback = Callable[[FareTransaction], Awaitable[None]]


def day_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Start and end of `now`'s calendar day, in `now`'s timezone."""

    start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end


@dataclass(slots=True)
class DriverEarningsService:
    """Today's completed fares for one driver.

    `resync` is authoritative and replaces everything counted so far. Live
    events only add transactions whose id has not been counted, so a
    transaction seen both by a resync and by the change feed (or first as
    pending, then completed) is summed once.
    """

    repository: ITransactionRepository
    driver_id: str

    _counted: dict[str, FareTransaction] = field(
        default_factory=dict, init=False, repr=False
    )
    _day: tuple[datetime, datetime] | None = field(
        default=None, init=False, repr=False
    )

    @property
    def total(self) -> Decimal:
        return sum((t.amount for t in self._counted.values()), Decimal("0"))

    @property
    def recent(self) -> tuple[FareTransaction, ...]:
        ordered = sorted(
            self._counted.values(),
            key=lambda t: (t.created_at is not None, t.created_at or datetime.min),
            reverse=True,
        )
        return tuple(ordered[:RECENT_LIMIT])

    async def resync(self, now: datetime) -> Decimal:
        start, end = day_bounds(now)
        txs = await self.repository.list_completed_for_driver(
            driver_id=self.driver_id, start=start, end=end
        )
        self._day = (start, end)
        self._counted = {
            t.id: t
            for t in txs
            if t.status is TransactionStatus.COMPLETED and t.driver_id == self.driver_id
        }
        logger.debug(
            "Resynced earnings for driver %s: %d transactions",
            self.driver_id,
            len(self._counted),
        )
        return self.total

    def on_transaction(self, tx: FareTransaction) -> bool:
        """Count a live transaction; returns True if the total changed."""

        if tx.driver_id != self.driver_id or tx.status is not TransactionStatus.COMPLETED:
            return False
        if tx.id in self._counted:
            return False
        if self._day is not None and tx.created_at is not None:
            start, end = self._day
            if not (start <= tx.created_at <= end):
                return False
        self._counted[tx.id] = tx
        return True

    async def watch(
        self,
        stream: ITransactionChangeStream,
        *,
        on_counted: CountedCallback | None = None,
    ) -> None:
        """Count live transactions from `stream` until it ends or is cancelled."""

        async with stream.subscribe() as changes:
            async for tx in changes:
                if self.on_transaction(tx) and on_counted is not None:
                    await on_counted(tx)
