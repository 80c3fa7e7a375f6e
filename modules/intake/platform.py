"""Send/resolve port used by the intake controller and its discord.py adapter."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import discord
from discord.ext import commands

from shared.logfmt import human_reason

from .events import Attachment, ChannelCreated, MessageCreated

__all__ = [
    "ChannelNotFound",
    "DeliveryError",
    "DiscordPlatform",
    "IntakePlatform",
    "channel_event",
    "message_event",
]

log = logging.getLogger("intake.platform")


class DeliveryError(Exception):
    """A send or resolve call failed.

    ``transient`` marks failures worth retrying on a later event (rate
    limits, 5xx responses, network errors).
    """

    def __init__(self, message: str, *, channel_id: Optional[int] = None, transient: bool = True) -> None:
        super().__init__(message)
        self.channel_id = channel_id
        self.transient = transient


class ChannelNotFound(DeliveryError):
    def __init__(self, channel_id: int) -> None:
        super().__init__(f"channel {channel_id} not found", channel_id=channel_id, transient=False)


class IntakePlatform(Protocol):
    @property
    def bot_user_id(self) -> Optional[int]: ...

    async def send(self, channel_id: int, text: str) -> int: ...

    async def resolve(self, channel_id: int) -> Optional[Any]: ...


def _is_transient(exc: discord.HTTPException) -> bool:
    status = getattr(exc, "status", 0) or 0
    return status == 429 or status >= 500


class DiscordPlatform:
    """:class:`IntakePlatform` backed by a discord.py bot."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @property
    def bot_user_id(self) -> Optional[int]:
        user = getattr(self.bot, "user", None)
        return getattr(user, "id", None)

    async def resolve(self, channel_id: int) -> Optional[Any]:
        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        log.debug("channel cache miss; fetching", extra={"channel_id": channel_id})
        try:
            return await self.bot.fetch_channel(channel_id)
        except discord.NotFound:
            return None
        except discord.Forbidden as exc:
            raise DeliveryError(human_reason(exc), channel_id=channel_id, transient=False) from exc
        except discord.HTTPException as exc:
            raise DeliveryError(
                human_reason(exc), channel_id=channel_id, transient=_is_transient(exc)
            ) from exc

    async def send(self, channel_id: int, text: str) -> int:
        channel = await self.resolve(channel_id)
        if channel is None:
            raise ChannelNotFound(channel_id)
        try:
            message = await channel.send(text)
        except discord.NotFound as exc:
            raise ChannelNotFound(channel_id) from exc
        except discord.Forbidden as exc:
            raise DeliveryError(human_reason(exc), channel_id=channel_id, transient=False) from exc
        except discord.HTTPException as exc:
            raise DeliveryError(
                human_reason(exc), channel_id=channel_id, transient=_is_transient(exc)
            ) from exc
        return int(getattr(message, "id", 0) or 0)


def channel_event(channel: Any) -> ChannelCreated:
    """Convert a discord.py guild channel into :class:`ChannelCreated`."""

    parent_id = getattr(channel, "category_id", None)
    if parent_id is None:
        parent_id = getattr(channel, "parent_id", None)
    return ChannelCreated(
        channel_id=int(channel.id),
        parent_id=int(parent_id) if parent_id is not None else None,
        name=str(getattr(channel, "name", "") or ""),
    )


def message_event(message: Any) -> MessageCreated:
    """Convert a discord.py message into :class:`MessageCreated`."""

    author = getattr(message, "author", None)
    attachments = tuple(
        Attachment(
            content_type=getattr(item, "content_type", None),
            filename=str(getattr(item, "filename", "") or ""),
        )
        for item in (getattr(message, "attachments", None) or [])
    )
    mention_ids = tuple(
        int(user.id)
        for user in (getattr(message, "mentions", None) or [])
        if getattr(user, "id", None) is not None
    )
    return MessageCreated(
        message_id=int(getattr(message, "id", 0) or 0),
        channel_id=int(getattr(getattr(message, "channel", None), "id", 0) or 0),
        author_id=int(getattr(author, "id", 0) or 0),
        author_is_bot=bool(getattr(author, "bot", False)),
        content=str(getattr(message, "content", "") or ""),
        attachments=attachments,
        mention_ids=mention_ids,
    )
