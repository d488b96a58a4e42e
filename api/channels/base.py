"""
Abstract Channel Provider for the WhatsApp Concierge bot.

Base class for outbound messaging transports.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from bot.directives import Button

logger = logging.getLogger(__name__)


@dataclass
class ChannelResponse:
    """Response from channel send operation."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class ChannelProvider(ABC):
    """Abstract base class for messaging channels."""

    name = "channel"

    @abstractmethod
    async def send_text(self, to: str, body: str) -> ChannelResponse:
        """Send a plain text message."""
        ...

    @abstractmethod
    async def send_buttons(self, to: str, body: str, buttons: Sequence[Button]) -> ChannelResponse:
        """Send a message with up to three reply buttons."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if channel is operational."""
        ...
