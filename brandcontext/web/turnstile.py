"""Cloudflare Turnstile verification gate.

Fails open: an unreachable verification service counts as a pass.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog
from fastapi import HTTPException

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings

logger = structlog.get_logger(__name__)


class TurnstileVerifier:
    def __init__(
        self,
        *,
        enabled: bool,
        secret_key: str | None,
        verify_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._enabled = enabled
        self._secret_key = secret_key or ""
        self._verify_url = verify_url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> TurnstileVerifier:
        return cls(
            enabled=settings.turnstile_enabled,
            secret_key=settings.turnstile_secret_key,
            verify_url=settings.turnstile_verify_url,
            timeout=settings.turnstile_timeout_seconds,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def verify(self, token: str | None, remote_ip: str | None = None) -> bool:
        if not self._enabled:
            return True
        if not token:
            return False

        data = {"secret": self._secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._verify_url, data=data)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("turnstile_unreachable", error=str(exc))
            return True

        if not isinstance(body, dict):
            logger.warning("turnstile_unreachable", error="unexpected response body")
            return True

        success = bool(body.get("success", False))
        if not success:
            logger.info("turnstile_rejected", error_codes=body.get("error-codes", []))
        return success


async def ensure_turnstile(
    verifier: TurnstileVerifier, token: str | None, remote_ip: str | None
) -> None:
    """Raise 422 when the Turnstile check fails."""
    if not await verifier.verify(token, remote_ip):
        raise HTTPException(
            status_code=422,
            detail={"success": False, "error": "turnstile_failed"},
        )
