"""Minimal discord.py stand-ins for router/transcript tests (no Discord connection).

Objects the code isinstance-checks are MagicMock(spec=...) so they pass as the
real discord.py types; coroutine methods are explicit AsyncMocks.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord

GUILD_ID = 100
STAFF_ROLE_ID = 200
CATEGORY_ID = 300
TRANSCRIPTS_ID = 400


def http_error(cls: type[discord.HTTPException] = discord.NotFound, status: int = 404, text: str = "Unknown") -> discord.HTTPException:
    return cls(MagicMock(status=status, reason=text), text)


class FakeAuthor:
    """Message author with a discord-style tag for transcripts."""

    def __init__(self, name: str, *, user_id: int = 1, bot: bool = False):
        self.id = int(user_id)
        self.name = str(name)
        self.bot = bot

    def __str__(self) -> str:
        return self.name


def make_role(role_id: int) -> MagicMock:
    role = MagicMock(spec=discord.Role)
    role.id = int(role_id)
    return role


def make_member(user_id: int, display_name: str, *, staff: bool = False) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = int(user_id)
    member.bot = False
    member.name = display_name.lower()
    member.display_name = display_name
    member.roles = [make_role(STAFF_ROLE_ID)] if staff else [make_role(999)]
    member.send = AsyncMock()
    return member


def make_user(user_id: int, name: str) -> MagicMock:
    user = MagicMock(spec=discord.User)
    user.id = int(user_id)
    user.bot = False
    user.name = name
    user.send = AsyncMock()
    return user


def make_category(category_id: int = CATEGORY_ID) -> MagicMock:
    cat = MagicMock(spec=discord.CategoryChannel)
    cat.id = int(category_id)
    return cat


def make_text_channel(channel_id: int, name: str, *, category_id: int = CATEGORY_ID, history: list | None = None) -> MagicMock:
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = int(channel_id)
    ch.name = name
    ch.category_id = category_id
    ch.send = AsyncMock()
    ch.delete = AsyncMock()
    msgs = list(history or [])

    def _history(limit: int = 100):
        async def _gen():
            # Discord delivers newest first.
            for m in list(reversed(msgs))[:limit]:
                yield m
        return _gen()

    ch.history = _history
    return ch


def make_history(count: int, *, start: datetime | None = None) -> list[SimpleNamespace]:
    """Chronological (oldest first) fake messages."""
    t0 = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    return [
        SimpleNamespace(
            created_at=t0 + timedelta(minutes=i),
            author=FakeAuthor(f"author{i}"),
            content=f"message {i}",
            embeds=[],
        )
        for i in range(count)
    ]


class FakeGuild:
    """Guild with a channel/member directory and recorded channel creation."""

    def __init__(self):
        self.guild = MagicMock(spec=discord.Guild)
        self.guild.id = GUILD_ID
        self.guild.default_role = make_role(GUILD_ID)
        self.guild.me = None
        self.channels: dict[int, object] = {CATEGORY_ID: make_category()}
        self.members: dict[int, object] = {}
        self.roles: dict[int, object] = {STAFF_ROLE_ID: make_role(STAFF_ROLE_ID)}
        self.next_channel_id = 600

        self.guild.get_channel.side_effect = lambda cid: self.channels.get(int(cid))
        self.guild.get_member.side_effect = lambda uid: self.members.get(int(uid))
        self.guild.get_role.side_effect = lambda rid: self.roles.get(int(rid))
        self.guild.fetch_channel = AsyncMock(side_effect=self._fetch_channel)
        self.guild.fetch_member = AsyncMock(side_effect=self._fetch_member)
        self.guild.create_text_channel = AsyncMock(side_effect=self._create_text_channel)

    async def _fetch_channel(self, cid: int):
        ch = self.channels.get(int(cid))
        if ch is None:
            raise http_error(discord.NotFound, 404, "Unknown Channel")
        return ch

    async def _fetch_member(self, uid: int):
        raise http_error(discord.NotFound, 404, "Unknown Member")

    async def _create_text_channel(self, name: str, **kwargs):
        cid = self.next_channel_id
        self.next_channel_id += 1
        ch = make_text_channel(cid, name, category_id=int(kwargs["category"].id))
        self.channels[cid] = ch
        return ch


def make_bot(guild: FakeGuild, users: dict[int, object] | None = None) -> MagicMock:
    directory = dict(users or {})
    bot = MagicMock()
    bot.get_guild.side_effect = lambda gid: guild.guild if int(gid) == GUILD_ID else None
    bot.fetch_guild = AsyncMock(side_effect=http_error(discord.NotFound, 404, "Unknown Guild"))
    bot.get_user.side_effect = lambda uid: directory.get(int(uid))

    async def _fetch_user(uid: int):
        raise http_error(discord.NotFound, 404, "Unknown User")

    bot.fetch_user = AsyncMock(side_effect=_fetch_user)
    return bot


def make_dm(author: object, content: str) -> MagicMock:
    msg = MagicMock(spec=discord.Message)
    msg.id = 1
    msg.author = author
    msg.content = content
    msg.guild = None
    msg.channel = MagicMock(spec=discord.DMChannel)
    return msg


def make_guild_message(author: object, channel: object, content: str, guild: FakeGuild) -> MagicMock:
    msg = MagicMock(spec=discord.Message)
    msg.id = 2
    msg.author = author
    msg.content = content
    msg.guild = guild.guild
    msg.channel = channel
    return msg


def make_interaction(actor: object, channel: object, guild: FakeGuild) -> MagicMock:
    interaction = MagicMock()
    interaction.guild = guild.guild
    interaction.user = actor
    interaction.channel = channel
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.edit_original_response = AsyncMock()
    return interaction
