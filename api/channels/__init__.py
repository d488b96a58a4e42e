"""
Outbound messaging channels.
"""

from .base import ChannelProvider, ChannelResponse
from .whatsapp import DryRunChannel, MetaCloudWhatsApp

__all__ = ["ChannelProvider", "ChannelResponse", "DryRunChannel", "MetaCloudWhatsApp"]
