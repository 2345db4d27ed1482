from .beacon import BeaconChange, BusBeacon, ChangeKind, RankedBeacon
from .fares import (
    FARE_PRICES,
    FareTransaction,
    PassengerCounts,
    PassengerType,
    TransactionStatus,
)
from .geo import Coordinate

__all__ = [
    "BeaconChange",
    "BusBeacon",
    "ChangeKind",
    "Coordinate",
    "FARE_PRICES",
    "FareTransaction",
    "PassengerCounts",
    "PassengerType",
    "RankedBeacon",
    "TransactionStatus",
]
