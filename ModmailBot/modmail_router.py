from __future__ import annotations

import logging
from contextlib import suppress

import discord
from discord.ext import commands

from identity import resolve_display_name
from modmail_config import ModmailConfig
from modmail_errors import DELIVERY_ERRORS, LookupFailed, classify_http_error
from ticket_channels import create_ticket_channel, fetch_text_channel
from ticket_registry import TicketRegistry
from transcripts import NO_TEXT, send_transcript

log = logging.getLogger("modmail")

CLOSE_BUTTON_CUSTOM_ID = "close_ticket"

MSG_NO_PERMISSION = "You don't have permission to close tickets."
MSG_NOT_FOUND = "Ticket not found."
MSG_CLOSED = "Ticket closed."
MSG_DELETE_FAILED = "Failed to delete the ticket channel."


def _record_embed(title: str, description: str, footer: str) -> discord.Embed:
    e = discord.Embed(title=title, description=(description or NO_TEXT)[:4096], timestamp=discord.utils.utcnow())
    e.set_footer(text=footer)
    return e


class CloseTicketView(discord.ui.View):
    """Persistent close control posted in every ticket channel."""

    def __init__(self, router: "ModmailRouter"):
        super().__init__(timeout=None)
        self.router = router

    @discord.ui.button(
        label="Close Ticket",
        style=discord.ButtonStyle.danger,
        custom_id=CLOSE_BUTTON_CUSTOM_ID,
    )
    async def close_ticket(self, interaction: discord.Interaction, _button: discord.ui.Button):
        await self.router.handle_close(interaction)


class ModmailRouter:
    """Routes user DMs into ticket channels and staff replies back to users.

    Per user there are two states: no ticket (no registry entry, or a stale
    one) and ticket open. All registry mutation happens here, always under
    the user's lock, and only after the matching channel create/delete has
    succeeded.
    """

    def __init__(self, bot: commands.Bot, config: ModmailConfig, registry: TicketRegistry | None = None):
        self.bot = bot
        self.config = config
        self.registry = registry if registry is not None else TicketRegistry()
        self._controls_view: CloseTicketView | None = None

    def controls_view(self) -> CloseTicketView:
        if self._controls_view is None:
            self._controls_view = CloseTicketView(self)
        return self._controls_view

    # -----------------------------
    # Platform helpers
    # -----------------------------
    async def _get_guild(self) -> discord.Guild:
        guild = self.bot.get_guild(int(self.config.guild_id))
        if guild is not None:
            return guild
        try:
            return await self.bot.fetch_guild(int(self.config.guild_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"guild {self.config.guild_id}") from e

    async def _get_user(self, user_id: int) -> discord.User:
        user = self.bot.get_user(int(user_id))
        if user is not None:
            return user
        try:
            return await self.bot.fetch_user(int(user_id))
        except DELIVERY_ERRORS as e:
            raise LookupFailed(classify_http_error(e), f"user {user_id}") from e

    def _is_staff(self, member: object) -> bool:
        if not isinstance(member, discord.Member):
            return False
        try:
            rids = {int(r.id) for r in (member.roles or [])}
        except Exception:
            rids = set()
        return int(self.config.staff_role_id) in rids

    def _in_ticket_category(self, channel: object) -> bool:
        return int(getattr(channel, "category_id", 0) or 0) == int(self.config.ticket_category_id)

    async def _live_ticket_channel(self, guild: discord.Guild, user_id: int) -> discord.TextChannel | None:
        """Registry channel for user_id, dropping the entry if it went stale."""
        channel_id = self.registry.lookup(user_id)
        if channel_id is None:
            return None
        try:
            ch = await fetch_text_channel(guild, channel_id)
        except LookupFailed as e:
            log.info(f"[Modmail] Stale ticket for {user_id} (channel {channel_id}: {e.kind.value}); reopening")
            self.registry.close(user_id)
            return None
        if not self._in_ticket_category(ch):
            log.info(f"[Modmail] Ticket channel {channel_id} for {user_id} left the ticket category; reopening")
            self.registry.close(user_id)
            return None
        return ch

    # -----------------------------
    # Events
    # -----------------------------
    async def handle_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        try:
            if isinstance(message.channel, discord.DMChannel):
                await self.handle_direct_message(message)
            elif message.guild is not None:
                await self.handle_staff_message(message)
        except Exception:
            log.exception(f"[Modmail] Failed to handle message {message.id}")

    async def handle_direct_message(self, message: discord.Message) -> None:
        """User DM: continue the open ticket, or open a new one."""
        try:
            guild = await self._get_guild()
        except LookupFailed as e:
            log.warning(f"[Modmail] Guild unavailable ({e.kind.value}); dropping DM from {message.author.id}")
            return

        user_id = int(message.author.id)
        async with self.registry.hold(user_id):
            ticket_channel = await self._live_ticket_channel(guild, user_id)
            if ticket_channel is not None:
                await self._forward_to_ticket(guild, ticket_channel, message)
                return
            await self._open_ticket(guild, message)

    async def _forward_to_ticket(self, guild: discord.Guild, ticket_channel: discord.TextChannel, message: discord.Message) -> None:
        user_id = int(message.author.id)
        display_name = await resolve_display_name(guild, self.bot, user_id)
        embed = _record_embed("User Message", message.content, f"{display_name} • {user_id}")
        try:
            await ticket_channel.send(embed=embed)
        except DELIVERY_ERRORS as e:
            log.warning(f"[Modmail] Could not forward DM from {user_id} to #{ticket_channel.name}: {e}")

    async def _open_ticket(self, guild: discord.Guild, message: discord.Message) -> None:
        user_id = int(message.author.id)
        display_name = await resolve_display_name(guild, self.bot, user_id)
        try:
            ticket_channel = await create_ticket_channel(
                guild=guild,
                category_id=self.config.ticket_category_id,
                staff_role_id=self.config.staff_role_id,
                display_name=display_name,
                user_id=user_id,
            )
        except LookupFailed as e:
            log.error(f"[Modmail] Cannot open ticket for {user_id}: {e}")
            return
        except DELIVERY_ERRORS as e:
            log.error(f"[Modmail] Ticket channel creation failed for {user_id}: {e}")
            return

        self.registry.open(user_id, ticket_channel.id)
        log.info(f"[Modmail] Opened #{ticket_channel.name} for {display_name} ({user_id})")

        try:
            await message.author.send(self.config.ticket_opened_message)
        except DELIVERY_ERRORS as e:
            log.warning(f"[Modmail] Could not DM ticket acknowledgement to {user_id}: {e}")

        first = _record_embed("New Ticket Opened", message.content, f"{display_name} • {user_id}")
        try:
            await ticket_channel.send(
                content=f"Ticket opened by **{display_name}** (<@{user_id}>)",
                embed=first,
                view=self.controls_view(),
            )
        except DELIVERY_ERRORS as e:
            log.warning(f"[Modmail] Could not post opening message in #{ticket_channel.name}: {e}")

    async def handle_staff_message(self, message: discord.Message) -> None:
        """Staff message in a ticket channel: relay it to the ticket owner."""
        guild = message.guild
        if guild is None or int(guild.id) != int(self.config.guild_id):
            return
        if not self._in_ticket_category(message.channel):
            return
        user_id = self.registry.reverse_lookup(message.channel.id)
        if user_id is None:
            return
        if not self._is_staff(message.author):
            return

        content = str(message.content or "")
        # Never DM the close command text.
        if content.strip().lower() == self.config.close_command:
            return

        try:
            user = await self._get_user(user_id)
        except LookupFailed as e:
            log.info(f"[Modmail] Ticket owner {user_id} unavailable ({e.kind.value}); reply not relayed")
            return

        embed = _record_embed("Support Reply", content, message.author.display_name)
        try:
            await user.send(embed=embed)
        except DELIVERY_ERRORS as e:
            log.warning(f"[Modmail] Could not DM staff reply to {user_id}: {e}")

    async def handle_close(self, interaction: discord.Interaction) -> None:
        """Close button: notify the user, archive, delete the channel, drop the entry."""
        if interaction.guild is None:
            return
        member = interaction.user
        if not self._is_staff(member):
            with suppress(discord.HTTPException):
                await interaction.response.send_message(MSG_NO_PERMISSION, ephemeral=True)
            return

        channel = interaction.channel
        user_id = self.registry.reverse_lookup(channel.id) if self._in_ticket_category(channel) else None
        if user_id is None:
            with suppress(discord.HTTPException):
                await interaction.response.send_message(MSG_NOT_FOUND, ephemeral=True)
            return

        await interaction.response.defer(ephemeral=True, thinking=True)

        async with self.registry.hold(user_id):
            # Another close may have finished while we waited for the lock.
            if self.registry.reverse_lookup(channel.id) != user_id:
                with suppress(discord.HTTPException):
                    await interaction.edit_original_response(content=MSG_NOT_FOUND)
                return

            guild = interaction.guild
            display_name = await resolve_display_name(guild, self.bot, user_id)
            closed_by = member.display_name

            try:
                user = await self._get_user(user_id)
                await user.send(self.config.closed_message_for(closed_by))
            except LookupFailed as e:
                log.info(f"[Modmail] Ticket owner {user_id} unavailable ({e.kind.value}); closing notice skipped")
            except DELIVERY_ERRORS as e:
                log.warning(f"[Modmail] Could not DM closing notice to {user_id}: {e}")

            await send_transcript(
                guild,
                channel,
                display_name,
                archive_channel_id=self.config.transcripts_channel_id,
                limit=self.config.transcript_history_limit,
            )

            try:
                await channel.delete(reason=f"Ticket closed by {closed_by}")
            except discord.NotFound:
                pass
            except DELIVERY_ERRORS as e:
                log.error(f"[Modmail] Could not delete #{channel.name} for {user_id}: {e}")
                with suppress(discord.HTTPException):
                    await interaction.edit_original_response(content=MSG_DELETE_FAILED)
                return

            self.registry.close(user_id)
            log.info(f"[Modmail] Closed ticket for {display_name} ({user_id}) by {closed_by}")

        with suppress(discord.HTTPException):
            await interaction.edit_original_response(content=MSG_CLOSED)
