"""
Messaging transports. The relay only talks to BaseTransport.
"""
from friendline.transport.base import BaseTransport, InboundEvent
from friendline.transport.telegram import TelegramTransport

__all__ = ["BaseTransport", "InboundEvent", "TelegramTransport"]
