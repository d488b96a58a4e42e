"""
Configuration for the WhatsApp Concierge bot.
"""
