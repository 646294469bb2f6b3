"""Render domain errors as fixed-shape JSON responses."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from fastapi.responses import JSONResponse

from brandcontext.exceptions import DomainError

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = structlog.get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.info("domain_error", kind=exc.kind, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": "invalid_request", "message": str(exc)},
        )
