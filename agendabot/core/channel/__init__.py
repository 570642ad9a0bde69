"""
Channel module.

Inbound message routing and the outbound transport abstraction.
"""

from agendabot.core.channel.base import (
    InboundMessage,
    LoggingChannel,
    MessageChannel,
    SendOutcome,
    is_group_recipient,
)
from agendabot.core.channel.handler import ConversationHandler

__all__ = [
    "InboundMessage",
    "LoggingChannel",
    "MessageChannel",
    "SendOutcome",
    "is_group_recipient",
    "ConversationHandler",
]
