"""notify/messages.py -- Transactional message templates."""

from __future__ import annotations

from notify.transports import OutboundMessage


def welcome_message(to: str, name: str, app_name: str) -> OutboundMessage:
    """Message sent once, right after a successful sign-up."""
    body = (
        f"Hi {name},\n\n"
        f"Your {app_name} account for {to} has been created.\n\n"
        "If you did not sign up, you can ignore this email.\n"
    )
    return OutboundMessage(to=to, subject=f"Welcome to {app_name}", body=body)
