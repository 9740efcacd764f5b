"""Exception handlers mapping scheduling errors to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from showings.services.errors import ConflictError, SchedulingError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        if isinstance(exc, ConflictError):
            logger.info("Conflict on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
