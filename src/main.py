from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.adapters.api.controllers.buses import router as buses_router
from src.adapters.api.controllers.drivers import router as drivers_router
from src.adapters.api.controllers.payments import router as payments_router
from src.adapters.api.controllers.wallet import router as wallet_router
from src.domain.exceptions.backend import BackendUnavailable, PaymentRejected
from src.domain.exceptions.wallet import InsufficientBalance, InvalidAmount

app = FastAPI(title="Jichi Pay")
app.include_router(buses_router)
app.include_router(wallet_router)
app.include_router(payments_router)
app.include_router(drivers_router)

_STATUS_BY_ERROR: dict[type[Exception], int] = {
    InvalidAmount: 422,
    InsufficientBalance: 409,
    PaymentRejected: 400,
    BackendUnavailable: 503,
}


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)), 500
    )
    if status >= 500:
        logging.getLogger("uvicorn.error").warning(
            "Backend error on %s: %s", request.url.path, exc
        )
    return JSONResponse(status_code=status, content={"detail": str(exc)})


for _error_cls in _STATUS_BY_ERROR:
    app.add_exception_handler(_error_cls, domain_error_handler)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Ensure API errors are JSON so the mobile client can display them."""

    logging.getLogger("uvicorn.error").exception(
        "Unhandled exception", extra={"path": str(request.url.path)}
    )

    reveal = (os.getenv("JICHI_REVEAL_ERRORS") or "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }

    if reveal or isinstance(exc, (RuntimeError, ValueError)):
        detail = str(exc) or exc.__class__.__name__
    else:
        detail = "Internal Server Error"

    return JSONResponse(status_code=500, content={"detail": detail})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
