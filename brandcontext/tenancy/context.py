"""Active brand for the current unit of work.

Every unit of work (request or job execution) overwrites this before it
touches storage; nothing clears it in between.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

_current_brand: ContextVar[str | None] = ContextVar("brandcontext_current_brand", default=None)


def current_brand() -> str | None:
    """Return the brand key published for this unit of work, if any."""
    return _current_brand.get()


def set_current_brand(brand_key: str) -> Token[str | None]:
    return _current_brand.set(brand_key)


def reset_current_brand(token: Token[str | None]) -> None:
    _current_brand.reset(token)
