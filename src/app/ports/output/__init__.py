from .beacon_change_stream import IBeaconChangeStream
from .beacon_repository import IBeaconRepository
from .location_provider import ILocationProvider
from .transaction_change_stream import ITransactionChangeStream
from .transaction_repository import ITransactionRepository
from .wallet_gateway import IWalletGateway

__all__ = [
    "IBeaconChangeStream",
    "IBeaconRepository",
    "ILocationProvider",
    "ITransactionChangeStream",
    "ITransactionRepository",
    "IWalletGateway",
]
