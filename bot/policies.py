"""
Decision rules used by the conversation engine.

Pure functions: working hours, lead temperature, FAQ matching, email
validation and the one-time language hint.
"""

import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

from .tenants import FaqEntry, WorkingHours

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

HIGH_BUDGET_KEYWORDS = ("high", "enterprise", "alto", "premium", "10k+")
URGENT_TIMELINE_KEYWORDS = (
    "asap", "urgent", "immediately", "this week", "today",
    "urgente", "esta semana", "inmediato",
)

SPANISH_MARKERS = (
    "hola", "gracias", "quiero", "necesito", "buenos", "buenas",
    "por favor", "información", "informacion", "ayuda",
)

WEEKDAY_NAMES = {
    "en": ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"),
    "es": ("Lun", "Mar", "Mié", "Jue", "Vie", "Sáb", "Dom"),
}


class LeadTemperature(Enum):
    """Lead qualification buckets."""
    HOT = "hot"    # High budget and urgent timeline
    WARM = "warm"  # Exactly one of the two
    COLD = "cold"


# ── Working hours ─────────────────────────────────────────────────

def tenant_local_time(hours: WorkingHours, now: datetime) -> datetime:
    """Shift an instant to the tenant's fixed UTC offset."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc) + timedelta(hours=hours.utc_offset_hours)


def is_within_working_hours(hours: WorkingHours, now: datetime) -> bool:
    """True when `now` falls inside the tenant's weekly window."""
    local = tenant_local_time(hours, now)
    if local.weekday() not in hours.weekdays:
        return False
    return hours.start_hour <= local.hour < hours.end_hour


def describe_working_hours(hours: WorkingHours, language: str = "en") -> str:
    """Render a window like 'Mon-Fri 09:00-18:00 (UTC-5)'."""
    names = WEEKDAY_NAMES.get(language, WEEKDAY_NAMES["en"])
    days = sorted(hours.weekdays)
    if not days:
        day_text = "-"
    elif days == list(range(days[0], days[-1] + 1)) and len(days) > 1:
        day_text = f"{names[days[0]]}-{names[days[-1]]}"
    else:
        day_text = ", ".join(names[d] for d in days)

    offset = hours.utc_offset_hours
    if offset == int(offset):
        offset_text = f"{int(offset):+d}" if offset else ""
    else:
        offset_text = f"{offset:+g}"
    return f"{day_text} {hours.start_hour:02d}:00-{hours.end_hour:02d}:00 (UTC{offset_text})"


# ── Lead scoring ──────────────────────────────────────────────────

def _contains_any(value: Optional[str], keywords: Iterable[str]) -> bool:
    if not value:
        return False
    lowered = value.lower()
    return any(keyword in lowered for keyword in keywords)


def classify_lead(budget: Optional[str], timeline: Optional[str]) -> LeadTemperature:
    """
    Classify a lead from its budget and timeline answers.

    Case-insensitive substring match: "enterprise-high" counts as high.
    """
    high_budget = _contains_any(budget, HIGH_BUDGET_KEYWORDS)
    urgent = _contains_any(timeline, URGENT_TIMELINE_KEYWORDS)
    if high_budget and urgent:
        return LeadTemperature.HOT
    if high_budget or urgent:
        return LeadTemperature.WARM
    return LeadTemperature.COLD


# ── FAQ ───────────────────────────────────────────────────────────

def match_faq(entries: Iterable[FaqEntry], text: str, language: str) -> Optional[FaqEntry]:
    """Return the first entry with a keyword contained in the text."""
    lowered = text.lower()
    for entry in entries:
        keywords = entry.keywords.get(language, ())
        if any(keyword.lower() in lowered for keyword in keywords):
            return entry
    return None


# ── Input validation ──────────────────────────────────────────────

def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip())) if value else False


def detect_language(text: Optional[str], default: str = "en") -> str:
    """One-time language hint from a first free-text message."""
    if not text:
        return default
    lowered = text.lower()
    if any(ch in lowered for ch in "¿¡ñ"):
        return "es"
    words = set(re.findall(r"[\wáéíóúñ]+", lowered))
    for marker in SPANISH_MARKERS:
        if (" " in marker and marker in lowered) or marker in words:
            return "es"
    return default
