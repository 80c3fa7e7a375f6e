"""Platform-neutral event payloads consumed by the intake controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

__all__ = ["Attachment", "ChannelCreated", "MessageCreated"]


@dataclass(frozen=True, slots=True)
class ChannelCreated:
    channel_id: int
    parent_id: Optional[int]
    name: str = ""


@dataclass(frozen=True, slots=True)
class Attachment:
    content_type: Optional[str]
    filename: str = ""


@dataclass(frozen=True, slots=True)
class MessageCreated:
    """A message posted in a guild channel."""

    message_id: int
    channel_id: int
    author_id: int
    author_is_bot: bool = False
    content: str = ""
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)
    mention_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def content_types(self) -> tuple[Optional[str], ...]:
        return tuple(item.content_type for item in self.attachments)
