"""Discord bridge for the ticket intake lifecycle."""

from __future__ import annotations

import logging
from typing import Optional

import discord
from discord.ext import commands

from modules.common import runtime as runtime_helpers
from modules.intake import IntakeController, IntakeSettings, StatusReporter, StatusSnapshot
from modules.intake.platform import DiscordPlatform, channel_event, message_event
from shared import health as healthmod
from shared.config import get_debug_mode, get_status_interval_sec
from shared.logfmt import LogTemplates, human_reason

log = logging.getLogger("intake.cog")

# Discord rejects messages over 2000 characters.
_REPLY_LIMIT = 1900


class IntakeTickets(commands.Cog):
    """Watch the ticket category and feed gateway events to the controller."""

    def __init__(
        self,
        bot: commands.Bot,
        settings: IntakeSettings,
        *,
        controller: Optional[IntakeController] = None,
        status_interval: Optional[float] = None,
    ) -> None:
        self.bot = bot
        self.settings = settings
        self.controller = controller or IntakeController(DiscordPlatform(bot), settings)
        interval = status_interval if status_interval is not None else get_status_interval_sec()
        self.reporter = StatusReporter(
            self.controller, interval_sec=interval, sink=self._post_status
        )
        self._announced = False

    @staticmethod
    def _status_text(snapshot: StatusSnapshot) -> str:
        return LogTemplates.status(
            uptime_s=snapshot.uptime_seconds,
            active=snapshot.active_tickets,
            pending_closures=snapshot.pending_closures,
            created=snapshot.tickets_created,
            completed=snapshot.tickets_completed,
            closed=snapshot.tickets_closed,
            errors=snapshot.errors,
        )

    async def _post_status(self, snapshot: StatusSnapshot) -> None:
        await runtime_helpers.send_log_message(self._status_text(snapshot))

    def _handler_failed(self, where: str, exc: Exception) -> None:
        self.controller.stats.errors += 1
        log.exception("intake handler failed", extra={"handler": where, "error": human_reason(exc)})

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self._announced:
            return
        self._announced = True
        await runtime_helpers.send_log_message(
            LogTemplates.startup(
                category_id=self.settings.category_id,
                close_delay_s=self.settings.close_delay,
                first_wait_s=self.settings.first_message_timeout,
                debug=get_debug_mode(),
            )
        )

    @commands.Cog.listener()
    async def on_guild_channel_create(self, channel: discord.abc.GuildChannel) -> None:
        try:
            await self.controller.handle_channel_created(channel_event(channel))
        except Exception as exc:
            self._handler_failed("channel_create", exc)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None:
            return
        try:
            await self.controller.handle_message(message_event(message))
        except Exception as exc:
            self._handler_failed("message", exc)

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        try:
            await self.controller.discard(int(channel.id))
        except Exception as exc:
            self._handler_failed("channel_delete", exc)

    @commands.command(
        name="tickets",
        hidden=True,
        help="List tickets the intake bot is currently tracking.",
    )
    @commands.guild_only()
    @commands.has_permissions(manage_channels=True)
    async def tickets(self, ctx: commands.Context) -> None:
        rows = [
            (
                info.channel_id,
                info.requester_tag,
                info.state,
                info.age_seconds,
                info.has_address,
                info.has_image,
            )
            for info in self.reporter.tickets()
        ]
        status = self._status_text(self.reporter.snapshot())
        content = f"{status}\n{LogTemplates.ticket_rows(rows)}"
        if len(content) > _REPLY_LIMIT:
            content = f"{content[: _REPLY_LIMIT - 1]}…"
        await ctx.reply(content, mention_author=False)

    async def shutdown(self) -> None:
        await self.controller.shutdown()

    async def cog_unload(self) -> None:
        await self.shutdown()


async def setup(bot: commands.Bot) -> None:
    try:
        settings = IntakeSettings.from_config()
    except Exception as exc:
        healthmod.set_component("intake", False, detail=human_reason(exc))
        raise

    cog = IntakeTickets(bot, settings)
    await bot.add_cog(cog)

    runtime = runtime_helpers.get_active_runtime()
    if runtime is not None:
        cog.reporter.start(runtime.scheduler)
    healthmod.set_component("intake", True)
    log.info(
        "ticket intake ready",
        extra={
            "category_id": settings.category_id,
            "close_delay_sec": settings.close_delay,
            "first_message_timeout_sec": settings.first_message_timeout,
        },
    )
