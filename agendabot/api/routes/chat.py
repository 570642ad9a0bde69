"""
Chat API Endpoint.

Text in, reply out. Lets any transport (or a developer with curl) drive
the same conversation a WhatsApp caller would have.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Header, status
from pydantic import BaseModel, Field

from agendabot.core.channel import ConversationHandler, InboundMessage, LoggingChannel
from agendabot.core.scheduling import get_booking_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])

_handler: Optional[ConversationHandler] = None


def get_conversation_handler() -> ConversationHandler:
    """Get singleton ConversationHandler wired to a logging channel."""
    global _handler
    if _handler is None:
        _handler = ConversationHandler(channel=LoggingChannel(), engine=get_booking_engine())
    return _handler


class ChatRequest(BaseModel):
    """Chat message request."""

    sender: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Caller identifier (phone number or chat id)",
        examples=["5511999990000"],
    )
    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Caller's message",
        examples=["agendar"],
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=120,
        description="Caller's display name",
        examples=["Maria"],
    )


class ChatResponse(BaseModel):
    """Chat response."""

    message: Optional[str] = Field(
        default=None,
        description="Bot's reply, or null when the message was ignored",
    )
    state: Optional[str] = Field(
        default=None,
        description="Booking state after this message, if a booking is open",
    )
    booking_id: Optional[str] = Field(
        default=None,
        description="Backend booking ID once the booking has been saved",
    )


@router.post(
    "",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a chat message",
)
async def chat(
    request: ChatRequest,
    x_tenant_id: Optional[str] = Header(
        default=None,
        alias="X-Tenant-ID",
        description="Tenant identifier; the configured default is used when absent",
    ),
    handler: ConversationHandler = Depends(get_conversation_handler),
) -> ChatResponse:
    """Process one caller message through the conversation handler."""
    message = InboundMessage(
        sender=request.sender,
        text=request.message,
        display_name=request.display_name or "",
        tenant_id=x_tenant_id,
    )

    try:
        reply = await handler.handle(message)
    except Exception as e:
        logger.exception(f"Error processing chat message: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process message",
        )

    session = None
    if reply is not None:
        session = await handler.engine.peek(request.sender)

    return ChatResponse(
        message=reply,
        state=session.state.value if session else None,
        booking_id=session.booking_id if session else None,
    )


@router.delete(
    "/session/{sender}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel a booking session",
)
async def cancel_session(
    sender: str,
    handler: ConversationHandler = Depends(get_conversation_handler),
) -> None:
    """Drop the caller's booking session."""
    if not await handler.engine.cancel(sender):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
