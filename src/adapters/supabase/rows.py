"""Decoding of PostgREST rows and Realtime payloads into domain models."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from src.domain.algorithms.freshness import parse_timestamp
from src.domain.exceptions.backend import MalformedEvent
from src.domain.models import (
    BeaconChange,
    BusBeacon,
    ChangeKind,
    Coordinate,
    FareTransaction,
    PassengerCounts,
    TransactionStatus,
)


def _required_str(row: Mapping[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None or str(value).strip() == "":
        raise MalformedEvent(f"Missing '{key}'")
    return str(value)


def _to_decimal(raw: Any) -> Decimal:
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError) as e:
        raise MalformedEvent(f"Invalid amount: {raw!r}") from e
    if not value.is_finite():
        raise MalformedEvent(f"Invalid amount: {raw!r}")
    return value


def _driver_name(row: Mapping[str, Any]) -> str | None:
    # Embedded resource from `users!buses_driver_id_fkey(full_name)`.
    for key in ("users", "driver"):
        embedded = row.get(key)
        if isinstance(embedded, Mapping) and embedded.get("full_name"):
            return str(embedded["full_name"])
    return None


def beacon_from_row(row: Mapping[str, Any]) -> BusBeacon:
    beacon_id = _required_str(row, "id")

    lat = row.get("latitude")
    lon = row.get("longitude")
    if lat is None or lon is None:
        raise MalformedEvent(f"Bus {beacon_id} has no coordinates")
    try:
        position = Coordinate(latitude=float(lat), longitude=float(lon))
    except (TypeError, ValueError) as e:
        raise MalformedEvent(f"Bus {beacon_id} has invalid coordinates") from e

    return BusBeacon(
        id=beacon_id,
        driver_id=str(row.get("driver_id") or ""),
        license_plate=str(row.get("license_plate") or ""),
        route=str(row.get("route") or ""),
        position=position,
        active=row.get("is_active") is True,
        updated_at=parse_timestamp(row.get("updated_at")),
        driver_name=_driver_name(row),
    )


def _change_kind(data: Mapping[str, Any]) -> ChangeKind:
    try:
        return ChangeKind(str(data.get("type") or data.get("eventType") or ""))
    except ValueError as e:
        raise MalformedEvent(f"Unknown change type in {dict(data)!r}") from e


def _new_record(data: Mapping[str, Any], kind: ChangeKind) -> Mapping[str, Any]:
    record = data.get("record") or data.get("new")
    if not isinstance(record, Mapping):
        raise MalformedEvent(f"{kind.value} without record")
    return record


def change_from_payload(data: Mapping[str, Any]) -> BeaconChange:
    """Decode the `data` object of a Realtime `postgres_changes` message."""

    kind = _change_kind(data)
    if kind is ChangeKind.DELETE:
        old = data.get("old_record") or data.get("old") or {}
        if not isinstance(old, Mapping):
            raise MalformedEvent("DELETE without old record")
        return BeaconChange(kind=kind, beacon_id=_required_str(old, "id"))

    beacon = beacon_from_row(_new_record(data, kind))
    return BeaconChange(kind=kind, beacon_id=beacon.id, beacon=beacon)


def passenger_counts_from_payload(raw: Any) -> PassengerCounts | None:
    if not isinstance(raw, Mapping):
        return None
    try:
        return PassengerCounts(
            adults=int(raw.get("adults") or 0),
            children=int(raw.get("children") or 0),
            students=int(raw.get("students") or 0),
        )
    except (TypeError, ValueError):
        return None


def transaction_from_row(row: Mapping[str, Any]) -> FareTransaction:
    try:
        status = TransactionStatus(str(row.get("status") or "completed"))
    except ValueError as e:
        raise MalformedEvent(f"Unknown status {row.get('status')!r}") from e

    return FareTransaction(
        id=_required_str(row, "id"),
        driver_id=str(row.get("driver_id") or ""),
        amount=_to_decimal(row.get("amount")),
        status=status,
        created_at=parse_timestamp(row.get("created_at")),
        passenger_id=row.get("passenger_id"),
        bus_id=row.get("bus_id"),
        passenger_count=passenger_counts_from_payload(row.get("passenger_count")),
    )


def balance_from_value(raw: Any) -> Decimal:
    if raw is None:
        return Decimal("0")
    return _to_decimal(raw)


def transaction_from_payload(data: Mapping[str, Any]) -> FareTransaction | None:
    """Decode a `postgres_changes` payload of the transactions table.

    Deletes carry nothing to count and decode to None.
    """

    kind = _change_kind(data)
    if kind is ChangeKind.DELETE:
        return None
    return transaction_from_row(_new_record(data, kind))
