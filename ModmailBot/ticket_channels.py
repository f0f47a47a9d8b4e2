from __future__ import annotations

import logging

import discord

from modmail_errors import DELIVERY_ERRORS, LookupFailed, LookupKind, classify_http_error

log = logging.getLogger("modmail")


async def fetch_text_channel(guild: discord.Guild, channel_id: int) -> discord.TextChannel:
    """Cache-first text channel fetch. Raises LookupFailed."""
    if guild is None:
        raise LookupFailed(LookupKind.UNAVAILABLE, "guild not available")
    ch = guild.get_channel(int(channel_id))
    if ch is None:
        try:
            ch = await guild.fetch_channel(int(channel_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"channel {channel_id}") from e
    if not isinstance(ch, discord.TextChannel):
        raise LookupFailed(LookupKind.NOT_FOUND, f"channel {channel_id} is not a text channel")
    return ch


def slug_channel_name(s: str, *, max_len: int = 90) -> str:
    """Discord channel name slug (lowercase, alnum + hyphen)."""
    raw = str(s or "").lower()
    out: list[str] = []
    last_dash = False
    for ch in raw:
        ok = ("a" <= ch <= "z") or ("0" <= ch <= "9")
        if ok:
            out.append(ch)
            last_dash = False
        else:
            if not last_dash:
                out.append("-")
                last_dash = True
    slug = "".join(out).strip("-")
    # Truncation can expose a hyphen at the cut point.
    return slug[: int(max_len or 90)].rstrip("-")


def ticket_channel_name(display_name: str) -> str:
    return slug_channel_name(f"ticket-{display_name}", max_len=90)


def build_ticket_overwrites(
    *,
    guild: discord.Guild,
    staff_role_id: int,
) -> dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
    overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {}
    overwrites[guild.default_role] = discord.PermissionOverwrite(view_channel=False)

    me = getattr(guild, "me", None)
    if isinstance(me, discord.Member):
        overwrites[me] = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            read_message_history=True,
            manage_channels=True,
            embed_links=True,
            attach_files=True,
        )

    role = guild.get_role(int(staff_role_id or 0))
    if role:
        overwrites[role] = discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)
    else:
        log.warning(f"[Tickets] Staff role not found (ID: {staff_role_id}); ticket channel will be staff-invisible")
    return overwrites


async def create_ticket_channel(
    *,
    guild: discord.Guild,
    category_id: int,
    staff_role_id: int,
    display_name: str,
    user_id: int,
) -> discord.TextChannel:
    """Create a staff-only ticket channel under the ticket category.

    Raises LookupFailed if the category is gone; errors from channel
    creation itself propagate.
    """
    cat = guild.get_channel(int(category_id))
    if cat is None:
        try:
            cat = await guild.fetch_channel(int(category_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"ticket category {category_id}") from e
    if not isinstance(cat, discord.CategoryChannel):
        raise LookupFailed(LookupKind.NOT_FOUND, f"ticket category {category_id}")

    return await guild.create_text_channel(
        name=ticket_channel_name(display_name),
        category=cat,
        overwrites=build_ticket_overwrites(guild=guild, staff_role_id=staff_role_id),
        reason=f"Modmail ticket for {display_name} ({user_id})",
    )
