from __future__ import annotations

import asyncio
from enum import Enum

import discord


class LookupKind(str, Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    UNAVAILABLE = "unavailable"


class LookupFailed(Exception):
    """A directory/channel lookup did not produce an object.

    Helpers raise this; callers decide between a fallback value and
    "treat as absent".
    """

    def __init__(self, kind: LookupKind, detail: str = ""):
        self.kind = kind
        self.detail = str(detail or "")
        super().__init__(f"{kind.value}: {self.detail}" if self.detail else kind.value)


def classify_http_error(exc: BaseException) -> LookupKind:
    if isinstance(exc, discord.NotFound):
        return LookupKind.NOT_FOUND
    if isinstance(exc, discord.Forbidden):
        return LookupKind.FORBIDDEN
    return LookupKind.UNAVAILABLE


# A send can fail inside discord.py's HTTP layer (HTTPException) or below it,
# when the connection drops or times out before a response arrives.
DELIVERY_ERRORS: tuple[type[BaseException], ...] = (discord.HTTPException, OSError, asyncio.TimeoutError)
