"""Controller settings resolved from the runtime configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from shared import config as shared_config

from . import messages

__all__ = ["IntakeConfigError", "IntakeSettings"]


class IntakeConfigError(RuntimeError):
    """Configuration that prevents the intake controller from starting."""


@dataclass(frozen=True, slots=True)
class IntakeSettings:
    category_id: int
    first_message_timeout: float = 10.0
    close_delay: float = 3600.0
    close_command: str = "$close"
    greeting_template: str = messages.INITIAL_MESSAGE
    notice_message: str = messages.FORM_MESSAGE
    fallback_message: str = messages.FALLBACK_CLOSURE_MESSAGE

    def __post_init__(self) -> None:
        if not isinstance(self.category_id, int) or self.category_id <= 0:
            raise IntakeConfigError("TICKET_CAT must be a positive channel category id")
        if self.first_message_timeout <= 0:
            raise IntakeConfigError("first-message timeout must be positive")
        if self.close_delay < 0:
            raise IntakeConfigError("close delay must not be negative")
        if not (self.close_command or "").strip():
            raise IntakeConfigError("CLOSE_COMMAND must not be empty")

    @classmethod
    def from_config(cls) -> "IntakeSettings":
        category_id: Optional[int] = shared_config.get_ticket_category_id()
        if category_id is None:
            raise IntakeConfigError("TICKET_CAT is missing or not a numeric id")
        return cls(
            category_id=category_id,
            first_message_timeout=shared_config.get_first_message_timeout_sec(),
            close_delay=shared_config.get_close_delay_sec(),
            close_command=shared_config.get_close_command(),
        )
