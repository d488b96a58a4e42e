"""
API Routes for the WhatsApp Concierge bot.
"""

from . import admin, webhook

__all__ = ["admin", "webhook"]
