"""Message bodies posted into ticket channels."""

from __future__ import annotations

__all__ = [
    "FALLBACK_CLOSURE_MESSAGE",
    "FORM_MESSAGE",
    "INITIAL_MESSAGE",
    "render_greeting",
]

INITIAL_MESSAGE = """{user_tag}

Tickets in this category are handled automatically
Please paste your evm address, description and a screenshot displaying the issue"""

FORM_MESSAGE = """To get access to Mining SATs activity, fill out the google form:
@https://docs.google.com/forms/d/e/1FAIpQLSfsEm1xSQe4XBg7epvnXk093EuJwUjr1J7NkE3WkftbB8yk0A/viewform

**Please note: you need to have Human role to get access to the activity. To get the role, use !human command and follow the instructions**

The ticket will be automatically closed in one hour"""

FALLBACK_CLOSURE_MESSAGE = "\n".join(
    [
        "🤖 **Automated Ticket Closure**",
        "",
        "This ticket has completed processing and should now be closed.",
        "",
        "**Please:**",
        "• Use the `/close` slash command if available",
        '• Or click any "Close Ticket" button in this channel',
        "• This ticket contained all required information and has been processed",
        "",
        "_This is an automated message._",
    ]
)


def render_greeting(user_tag: str, template: str = INITIAL_MESSAGE) -> str:
    return template.replace("{user_tag}", user_tag)
