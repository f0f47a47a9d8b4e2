from __future__ import annotations

import logging

import discord

from modmail_errors import DELIVERY_ERRORS, LookupFailed, LookupKind, classify_http_error

log = logging.getLogger("modmail")

FALLBACK_DISPLAY_NAME = "user"


async def lookup_member_name(guild: discord.Guild, user_id: int) -> str:
    """Guild member display name (server nickname first). Raises LookupFailed."""
    if guild is None:
        raise LookupFailed(LookupKind.UNAVAILABLE, "guild not available")
    member = guild.get_member(int(user_id))
    if member is None:
        try:
            member = await guild.fetch_member(int(user_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"member {user_id}") from e
    name = str(getattr(member, "display_name", "") or getattr(member, "name", "") or "").strip()
    if not name:
        raise LookupFailed(LookupKind.NOT_FOUND, f"member {user_id} has no name")
    return name


async def lookup_user_name(client: discord.Client, user_id: int) -> str:
    """Platform-wide account username. Raises LookupFailed."""
    user = client.get_user(int(user_id))
    if user is None:
        try:
            user = await client.fetch_user(int(user_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"user {user_id}") from e
    name = str(getattr(user, "name", "") or "").strip()
    if not name:
        raise LookupFailed(LookupKind.NOT_FOUND, f"user {user_id} has no name")
    return name


async def resolve_display_name(guild: discord.Guild, client: discord.Client, user_id: int) -> str:
    """Best-effort display name: member -> user -> "user". Never raises."""
    try:
        return await lookup_member_name(guild, user_id)
    except LookupFailed as e:
        log.debug(f"[Identity] member lookup failed for {user_id} ({e.kind.value})")
    try:
        return await lookup_user_name(client, user_id)
    except LookupFailed as e:
        log.debug(f"[Identity] user lookup failed for {user_id} ({e.kind.value})")
    return FALLBACK_DISPLAY_NAME
