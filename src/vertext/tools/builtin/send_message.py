"""send_message tool: send a text through the messaging service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vertext.core.errors import ToolError, TransportError
from vertext.memory.models import now_ms
from vertext.tools.arguments import Arguments
from vertext.tools.base import ParameterType, ToolParameter, ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.messaging import MessagingService

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1600


class SendMessageTool:
    """Sends a message to a phone number.

    Implements the :class:`Tool` protocol.  Input is validated before
    the messaging service (and so the transport) is touched.
    """

    def __init__(
        self,
        messaging: MessagingService,
        *,
        max_length: int = MAX_MESSAGE_LENGTH,
    ) -> None:
        self._messaging = messaging
        self._max_length = max_length

    @property
    def name(self) -> str:
        return "send_message"

    @property
    def description(self) -> str:
        return "Sends an SMS message to a phone number. Returns the message ID when sent."

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        return (
            ToolParameter(
                name="phone_number",
                type=ParameterType.STRING,
                description="The recipient phone number (e.g. '+1234567890')",
                required=True,
            ),
            ToolParameter(
                name="text",
                type=ParameterType.STRING,
                description="The message text to send",
                required=True,
            ),
        )

    def _validated(self, arguments: Mapping[str, Any]) -> tuple[str, str]:
        """Return ``(phone_number, text)`` or raise :class:`ToolError`."""
        args = Arguments(arguments)
        phone_number = args.get_str("phone_number")
        text = args.get_str("text")
        if phone_number is None:
            msg = "Missing required parameter: phone_number"
            raise ToolError(msg)
        if text is None:
            msg = "Missing required parameter: text"
            raise ToolError(msg)
        if not phone_number.strip():
            msg = "Phone number cannot be empty"
            raise ToolError(msg)
        if not text.strip():
            msg = "Message text cannot be empty"
            raise ToolError(msg)
        if len(text) > self._max_length:
            msg = f"Message too long (max {self._max_length} characters)"
            raise ToolError(msg)
        return phone_number, text

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            phone_number, text = self._validated(arguments)
        except ToolError as e:
            return ToolResult.fail(str(e))

        logger.debug("Sending message to %s (%d chars)", phone_number, len(text))
        try:
            message_id = await self._messaging.send_message(phone_number, text)
        except TransportError as e:
            logger.warning("Transport rejected message to %s: %s", phone_number, e)
            return ToolResult.fail(f"Failed to send message: {e}")
        except Exception as e:
            logger.exception("Error sending message")
            return ToolResult.fail(f"Failed to send message: {e}")

        logger.debug("Message sent: message_id=%d", message_id)
        return ToolResult.ok(
            {
                "status": "sent",
                "message_id": message_id,
                "phone_number": phone_number,
                "text_length": len(text),
                "timestamp": now_ms(),
            }
        )
