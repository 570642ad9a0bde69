"""
Message channel abstraction.

A channel delivers bot replies to a caller. The booking conversation never
talks to a transport directly; WhatsApp, SMS or a test double plug in here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

GROUP_SUFFIX = "@g.us"


def is_group_recipient(recipient: str) -> bool:
    """Group chats are never sent booking replies."""
    return recipient.endswith(GROUP_SUFFIX)


@dataclass
class SendOutcome:
    """Result of a delivery attempt."""

    success: bool
    error: Optional[str] = None


@dataclass
class InboundMessage:
    """A text message received from a caller."""

    sender: str
    text: str
    display_name: str = ""
    tenant_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_group(self) -> bool:
        return is_group_recipient(self.sender)


class MessageChannel(ABC):
    """
    Outbound transport for replies.

    Subclasses implement:
    - send(): deliver plain text

    send_choices() may be overridden by transports with native list or
    button messages; the default renders the options as numbered text.
    """

    @abstractmethod
    async def send(self, recipient: str, text: str) -> SendOutcome:
        """
        Deliver text to the recipient.

        Returns:
            SendOutcome; transport failures are reported, not raised
        """
        pass

    async def send_choices(
        self,
        recipient: str,
        text: str,
        options: list[str],
    ) -> SendOutcome:
        """Deliver a prompt with selectable options."""
        lines = [text, ""] if options else [text]
        lines.extend(f"{i}. {option}" for i, option in enumerate(options, 1))
        return await self.send(recipient, "\n".join(lines))


class LoggingChannel(MessageChannel):
    """Channel that logs replies instead of delivering them.

    Used in development and by the HTTP chat endpoint, where the reply is
    returned in the response body. Delivered messages are kept in `sent`.
    """

    def __init__(self, keep: int = 100):
        self._keep = keep
        self.sent: list[tuple[str, str]] = []

    async def send(self, recipient: str, text: str) -> SendOutcome:
        if is_group_recipient(recipient):
            return SendOutcome(success=False, error="Group recipients are not allowed")

        logger.info(f"Reply to {recipient}: {text[:100]}")
        self.sent.append((recipient, text))
        if len(self.sent) > self._keep:
            del self.sent[: len(self.sent) - self._keep]
        return SendOutcome(success=True)
