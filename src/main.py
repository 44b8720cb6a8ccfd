from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.adapters.api.controllers.fleet import router as fleet_router
from src.adapters.api.controllers.trips import router as trips_router
from src.domain.exceptions import (
    ConflictError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)

app = FastAPI(title="FleetBook")
app.include_router(trips_router)
app.include_router(fleet_router)


def _domain_error_handler(status_code: int, error: str):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code, content={"detail": str(exc), "error": error}
        )

    return handler


for _kind, _status, _error in (
    (ValidationError, 400, "validation_error"),
    (NotFoundError, 404, "not_found"),
    (ConflictError, 409, "conflict"),
    # Same status as a conflict; clients tell them apart by `error`.
    (UnavailableError, 409, "unavailable"),
):
    app.add_exception_handler(_kind, _domain_error_handler(_status, _error))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Keep server errors JSON-shaped like every other response."""

    logging.getLogger("uvicorn.error").exception(
        "Unhandled exception", extra={"path": str(request.url.path)}
    )

    reveal = (os.getenv("FLEETBOOK_REVEAL_ERRORS") or "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }

    detail = (str(exc) or exc.__class__.__name__) if reveal else "Internal Server Error"
    return JSONResponse(status_code=500, content={"detail": detail, "error": "internal"})


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
