from __future__ import annotations

import tempfile
import logging
from datetime import datetime, timezone
from pathlib import Path

import discord

from modmail_errors import DELIVERY_ERRORS, LookupFailed
from ticket_channels import fetch_text_channel

log = logging.getLogger("modmail")

# Discord returns at most 100 messages per history page; longer tickets are
# archived as their most recent 100 messages.
HISTORY_PAGE_LIMIT = 100
NO_TEXT = "[no text]"


def _iso_utc(dt: datetime | None) -> str:
    dt = dt or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _message_text(m: discord.Message) -> str:
    content = str(getattr(m, "content", "") or "")
    if content:
        return content
    # Forwarded DMs/replies are posted as embeds with an empty body.
    for e in (getattr(m, "embeds", None) or []):
        desc = str(getattr(e, "description", "") or "")
        if desc:
            return desc
    return NO_TEXT


def render_transcript_line(m: discord.Message) -> str:
    return f"[{_iso_utc(getattr(m, 'created_at', None))}] {getattr(m, 'author', 'unknown')}: {_message_text(m)}"


def build_transcript_text(messages: list[discord.Message]) -> str:
    return "\n".join(render_transcript_line(m) for m in messages)


async def fetch_transcript_messages(channel: discord.TextChannel, *, limit: int = HISTORY_PAGE_LIMIT) -> list[discord.Message]:
    """Most recent `limit` messages, oldest first."""
    limit = max(1, min(int(limit or HISTORY_PAGE_LIMIT), HISTORY_PAGE_LIMIT))
    newest_first = [m async for m in channel.history(limit=limit)]
    newest_first.reverse()
    return newest_first


async def send_transcript(
    guild: discord.Guild,
    ticket_channel: discord.TextChannel,
    display_name: str,
    *,
    archive_channel_id: int,
    limit: int = HISTORY_PAGE_LIMIT,
) -> bool:
    """Archive the ticket's recent history as a .txt attachment.

    Returns True if the transcript was delivered. Never raises; a missing
    archive channel skips the archive.
    """
    try:
        messages = await fetch_transcript_messages(ticket_channel, limit=limit)
    except DELIVERY_ERRORS as e:
        log.warning(f"[Transcript] Could not read history of #{ticket_channel.name}: {e}")
        return False

    filename = f"transcript-{ticket_channel.id}.txt"

    try:
        # The temp dir (and the file in it) is removed on every exit path.
        with tempfile.TemporaryDirectory(prefix="modmail-") as tmp:
            path = Path(tmp) / filename
            path.write_text(build_transcript_text(messages), encoding="utf-8", errors="replace")
            delivered = await _deliver(guild, ticket_channel, display_name, path, archive_channel_id=archive_channel_id)
    except OSError as e:
        log.warning(f"[Transcript] Could not stage transcript file for #{ticket_channel.name}: {e}")
        return False
    if delivered:
        log.info(f"[Transcript] Archived {len(messages)} message(s) from #{ticket_channel.name}")
    return delivered


async def _deliver(
    guild: discord.Guild,
    ticket_channel: discord.TextChannel,
    display_name: str,
    path: Path,
    *,
    archive_channel_id: int,
) -> bool:
    try:
        archive = await fetch_text_channel(guild, archive_channel_id)
    except LookupFailed as e:
        log.info(f"[Transcript] Archive channel unavailable ({e.kind.value}); skipping transcript for #{ticket_channel.name}")
        return False

    file = discord.File(str(path), filename=path.name)
    try:
        await archive.send(
            content=f"Transcript for **{display_name}** ({ticket_channel.name})",
            file=file,
            allowed_mentions=discord.AllowedMentions.none(),
        )
    except DELIVERY_ERRORS as e:
        log.warning(f"[Transcript] Delivery to archive channel failed for #{ticket_channel.name}: {e}")
        return False
    finally:
        file.close()
    return True
