"""
Conversation core for the WhatsApp Concierge bot.

This module provides the webhook-independent pieces of the bot:
- Tenant resolution and static tenant configuration
- Session store with TTL expiry, deduplication and per-sender locks
- Table-driven conversation state machine (menus, booking, leads, handover)
- Working-hours, lead-scoring, FAQ and email policies
- Message processor (dedupe, commit, deliver)
"""

from .states import ConversationState, InputKind
from .tenants import TenantConfig, TenantRegistry, build_registry, digit_parity_resolver
from .sessions import InMemorySessionStore, Session, SessionStore
from .inbound import InboundMessage, MalformedPayloadError, parse_webhook
from .engine import ConversationEngine, Transition
from .policies import LeadTemperature, classify_lead, is_within_working_hours
from .records import HandoverTicket, InMemoryRecordLog, LeadRecord, MeetingRecord, RecordForwarder
from .processor import MessageProcessor, ProcessResult

__all__ = [
    "ConversationState",
    "InputKind",
    "TenantConfig",
    "TenantRegistry",
    "build_registry",
    "digit_parity_resolver",
    "InMemorySessionStore",
    "Session",
    "SessionStore",
    "InboundMessage",
    "MalformedPayloadError",
    "parse_webhook",
    "ConversationEngine",
    "Transition",
    "LeadTemperature",
    "classify_lead",
    "is_within_working_hours",
    "HandoverTicket",
    "InMemoryRecordLog",
    "LeadRecord",
    "MeetingRecord",
    "RecordForwarder",
    "MessageProcessor",
    "ProcessResult",
]
