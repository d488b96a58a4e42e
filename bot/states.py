"""
Conversation states and input kinds.
"""

from enum import Enum


class ConversationState(str, Enum):
    """Position of a sender in the conversation."""
    LANGUAGE_SELECT = "language_select"
    MAIN_MENU = "main_menu"
    SERVICES_MENU = "services_menu"
    MORE_MENU = "more_menu"
    BOOK_MEETING_NAME = "book_meeting_name"
    BOOK_MEETING_EMAIL = "book_meeting_email"
    BOOK_MEETING_TOPIC = "book_meeting_topic"
    LEAD_SERVICE = "lead_service"
    LEAD_OTHER_SERVICE_TEXT = "lead_other_service_text"
    LEAD_BUDGET = "lead_budget"
    LEAD_TIMELINE = "lead_timeline"
    LEAD_NOTES = "lead_notes"
    HANDOVER_REASON = "handover_reason"


class InputKind(str, Enum):
    """How an inbound message is routed."""
    TEXT = "text"              # Free text typed by the user
    SELECTION = "selection"    # Button / list reply carrying an option id
    UNSUPPORTED = "unsupported"  # Media, location, stickers, ...


MENU_STATES = frozenset({
    ConversationState.MAIN_MENU,
    ConversationState.SERVICES_MENU,
    ConversationState.MORE_MENU,
})

# Fields each flow owns in Session.collected_data
FLOW_FIELDS = {
    "meeting": ("name", "email", "topic"),
    "lead": ("service", "budget", "timeline", "notes"),
    "handover": ("reason",),
}
