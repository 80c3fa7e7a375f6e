"""Classify ticket messages against the intake evidence requirements."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

__all__ = [
    "ADDRESS_RE",
    "EvidenceScan",
    "find_addresses",
    "image_content_types",
    "scan_message",
]

ADDRESS_RE = re.compile(r"0x[a-fA-F0-9]{40}")
_IMAGE_PREFIX = "image/"


@dataclass(frozen=True, slots=True)
class EvidenceScan:
    """Evidence found in a single message."""

    addresses: tuple[str, ...] = ()
    image_types: tuple[str, ...] = ()

    @property
    def has_address(self) -> bool:
        return bool(self.addresses)

    @property
    def has_image(self) -> bool:
        return bool(self.image_types)

    @property
    def complete(self) -> bool:
        return self.has_address and self.has_image


def find_addresses(text: Optional[str]) -> tuple[str, ...]:
    """Return every wallet address in ``text`` (first occurrence order, no repeats)."""

    if not text:
        return ()
    seen: dict[str, None] = {}
    for match in ADDRESS_RE.finditer(str(text)):
        seen.setdefault(match.group(0), None)
    return tuple(seen)


def image_content_types(content_types: Optional[Iterable[Optional[str]]]) -> tuple[str, ...]:
    """Return the declared content types that describe an image."""

    if not content_types:
        return ()
    matches: list[str] = []
    for raw in content_types:
        value = (raw or "").strip()
        if value.lower().startswith(_IMAGE_PREFIX):
            matches.append(value)
    return tuple(matches)


def scan_message(
    text: Optional[str], content_types: Optional[Iterable[Optional[str]]] = None
) -> EvidenceScan:
    """Classify a message body and its attachment content types."""

    return EvidenceScan(
        addresses=find_addresses(text),
        image_types=image_content_types(content_types),
    )
