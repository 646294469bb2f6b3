"""FastAPI middleware: request ID injection and tenant resolution."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from brandcontext.models.domain import RequestSignals
from brandcontext.tenancy.resolver import TenantResolver

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from brandcontext.tenancy.switcher import StorageSwitcher

logger = structlog.get_logger(__name__)

BRAND_HEADER = "x-brand-key"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class TenantMiddleware(BaseHTTPMiddleware):
    """Resolves the request's brand and switches storage before any handler runs.

    The resulting StorageContext is stored on ``request.state.storage``.
    """

    def __init__(self, app: object, switcher: StorageSwitcher) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._switcher = switcher
        self._resolver = TenantResolver(switcher.registry)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session = request.scope.get("session") or {}
        signals = RequestSignals(
            host=request.headers.get("host"),
            brand_header=request.headers.get(BRAND_HEADER),
            session_brand=session.get("brand"),
        )
        brand = self._resolver.resolve(signals)
        request.state.storage = self._switcher.apply_brand(brand)
        response = await call_next(request)
        response.headers[BRAND_HEADER] = brand
        return response
