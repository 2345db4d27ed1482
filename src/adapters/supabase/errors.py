from __future__ import annotations

import httpx

from src.domain.exceptions.backend import (
    BackendError,
    BackendUnavailable,
    PaymentRejected,
)


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("hint") or body)
    return str(body)


def translate_http_error(exc: httpx.HTTPError, *, label: str) -> BackendError:
    """Map an httpx failure to the domain's backend errors.

    4xx answers from the backend are refusals; everything else (5xx,
    timeouts, connection failures) is treated as unavailability.
    """

    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _error_detail(exc.response)
        if 400 <= status < 500:
            return PaymentRejected(f"{label} rejected ({status}): {detail}")
        return BackendUnavailable(f"{label} failed ({status}): {detail}")
    return BackendUnavailable(f"{label} failed: {type(exc).__name__}: {exc}")
