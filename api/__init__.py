"""
API Module for the WhatsApp Concierge bot.

FastAPI application with routes for:
- WhatsApp Cloud API webhook (verification and inbound messages)
- Admin inspection (records, sessions, tenants)
- Health and Prometheus metrics
"""

from .main import create_app, app

__all__ = ["create_app", "app"]
