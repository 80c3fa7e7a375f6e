from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import discord
from discord.ext import commands

from modules.common.runtime import Runtime
from shared import health as healthmod
from shared.config import (
    get_bot_name,
    get_debug_mode,
    get_discord_token,
    get_env_name,
    get_log_level,
)
from shared.logfmt import human_reason
from shared.logging import setup_logging

setup_logging(
    level=get_log_level(),
    debug=get_debug_mode(),
    static_fields={"env": get_env_name(), "bot": get_bot_name()},
)
log = logging.getLogger("intake.app")

INTENTS = discord.Intents.default()
INTENTS.guilds = True
INTENTS.guild_messages = True
INTENTS.message_content = True

BANG_PREFIX = "!"

bot = commands.Bot(
    command_prefix=commands.when_mentioned_or(BANG_PREFIX),
    intents=INTENTS,
)
bot.remove_command("help")

runtime = Runtime(bot)

_STARTED_MONO = time.monotonic()


def uptime_seconds() -> float:
    return max(0.0, time.monotonic() - _STARTED_MONO)


def latency_seconds(client: commands.Bot) -> Optional[float]:
    latency = getattr(client, "latency", None)
    try:
        return float(latency) if latency is not None else None
    except (TypeError, ValueError):
        return None


@bot.event
async def on_ready():
    healthmod.set_component("discord", True)
    log.info(
        'Bot ready as %s | env=%s | prefixes=["%s", "@mention"]',
        bot.user,
        get_env_name(),
        BANG_PREFIX,
        extra={"latency_s": latency_seconds(bot), "uptime_s": round(uptime_seconds(), 1)},
    )


@bot.event
async def on_connect():
    healthmod.set_component("discord", True, detail="connected")


@bot.event
async def on_resumed():
    healthmod.set_component("discord", True, detail="resumed")


@bot.event
async def on_disconnect():
    healthmod.set_component("discord", False, detail="disconnected")


@bot.event
async def on_message(message: discord.Message):
    if bot.user and message.author.id == bot.user.id:
        return
    if message.author.bot:
        return
    await bot.process_commands(message)


@bot.event
async def on_command_error(ctx: commands.Context, error: Exception):
    if isinstance(error, commands.CommandNotFound):
        return
    log.warning(
        "cmd error: cmd=%s user=%s err=%s",
        getattr(ctx.command, "name", None),
        getattr(ctx.author, "id", None),
        human_reason(error),
    )
    if isinstance(error, (commands.MissingPermissions, commands.NoPrivateMessage)):
        try:
            await ctx.reply("You don't have access to that command here.", mention_author=False)
        except discord.HTTPException:
            log.debug("command error reply failed", exc_info=True)


async def main() -> None:
    token = get_discord_token()
    if not token:
        raise RuntimeError("DISCORD_TOKEN not set")
    try:
        await runtime.start(token)
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
