from __future__ import annotations

import discord
import pytest

from fakes import FakeGuild, http_error, make_bot, make_member, make_user
from identity import FALLBACK_DISPLAY_NAME, lookup_member_name, resolve_display_name
from modmail_errors import LookupFailed, LookupKind


@pytest.mark.asyncio
async def test_member_display_name_preferred():
    g = FakeGuild()
    g.members[42] = make_member(42, "Alice (Nick)")
    bot = make_bot(g, {42: make_user(42, "alice")})
    assert await resolve_display_name(g.guild, bot, 42) == "Alice (Nick)"
    bot.fetch_user.assert_not_awaited()


@pytest.mark.asyncio
async def test_falls_back_to_user_name():
    g = FakeGuild()
    bot = make_bot(g, {42: make_user(42, "alice")})
    assert await resolve_display_name(g.guild, bot, 42) == "alice"


@pytest.mark.asyncio
async def test_falls_back_to_literal_when_everything_fails():
    g = FakeGuild()
    bot = make_bot(g)
    assert await resolve_display_name(g.guild, bot, 42) == FALLBACK_DISPLAY_NAME == "user"


@pytest.mark.asyncio
async def test_unavailable_lookup_service_is_absorbed():
    g = FakeGuild()
    g.guild.fetch_member.side_effect = http_error(discord.HTTPException, 503, "Service Unavailable")
    bot = make_bot(g)
    bot.fetch_user.side_effect = http_error(discord.HTTPException, 503, "Service Unavailable")
    assert await resolve_display_name(g.guild, bot, 42) == "user"


@pytest.mark.asyncio
async def test_member_lookup_reports_failure_kind():
    g = FakeGuild()
    with pytest.raises(LookupFailed) as exc:
        await lookup_member_name(g.guild, 42)
    assert exc.value.kind is LookupKind.NOT_FOUND
