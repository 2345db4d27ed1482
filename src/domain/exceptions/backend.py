class BackendError(Exception):
    """Base exception for failures talking to the remote backend."""


class BackendUnavailable(BackendError):
    """Raised when the backend cannot be reached or fails to answer."""


class PaymentRejected(BackendError):
    """Raised when a backend procedure refuses the requested operation."""


class MalformedEvent(ValueError):
    """Raised when a row or change payload cannot be decoded."""
