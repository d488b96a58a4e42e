"""Shared fixtures for WhatsApp Concierge tests."""

import os
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient

# Ensure we use test settings (no real Cloud API credentials)
os.environ.setdefault("WHATSAPP_VERIFY_TOKEN", "verify-me")
os.environ.setdefault("WHATSAPP_ACCESS_TOKEN", "")
os.environ.setdefault("WHATSAPP_PHONE_NUMBER_ID", "")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from api.channels.base import ChannelProvider, ChannelResponse  # noqa: E402
from bot.engine import ConversationEngine  # noqa: E402
from bot.inbound import InboundMessage  # noqa: E402
from bot.processor import MessageProcessor  # noqa: E402
from bot.records import InMemoryRecordLog  # noqa: E402
from bot.sessions import InMemorySessionStore, Session  # noqa: E402
from bot.states import ConversationState, InputKind  # noqa: E402
from bot.tenant_catalog import builtin_tenants  # noqa: E402
from bot.tenants import build_registry  # noqa: E402
from config.settings import Settings  # noqa: E402

# Monday 2026-10-19 15:00 UTC: both built-in tenants are open
IN_HOURS = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
# Sunday 2026-10-18 12:00 UTC: both built-in tenants are closed
AFTER_HOURS = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

DEFAULT_SENDER = "15550001"  # odd last digit -> default tenant
PREMIUM_SENDER = "15550002"  # even last digit -> premium tenant

_message_ids = count(1)


class FakeClock:
    """Settable clock passed to the store and processor."""

    def __init__(self, now: datetime = IN_HOURS):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingChannel(ChannelProvider):
    """Channel that records outbound calls instead of sending them."""

    name = "recording"

    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.fail = fail
        self.raise_error = raise_error
        self.calls = []

    def _respond(self) -> ChannelResponse:
        if self.raise_error:
            raise RuntimeError("connection reset")
        if self.fail:
            return ChannelResponse(success=False, error="HTTP 500")
        return ChannelResponse(success=True, message_id=f"wamid.{len(self.calls)}")

    async def send_text(self, to, body):
        self.calls.append({"type": "text", "to": to, "body": body})
        return self._respond()

    async def send_buttons(self, to, body, buttons):
        self.calls.append({
            "type": "buttons",
            "to": to,
            "body": body,
            "buttons": [b.id for b in buttons],
        })
        return self._respond()

    async def health_check(self):
        return True

    @property
    def last_buttons(self):
        menus = [c for c in self.calls if c["type"] == "buttons"]
        return menus[-1]["buttons"] if menus else []


# ── Message helpers ───────────────────────────────────────────────

def text_message(body, sender=DEFAULT_SENDER, message_id=None) -> InboundMessage:
    return InboundMessage(
        sender_id=sender,
        message_id=message_id or f"wamid.in.{next(_message_ids)}",
        kind=InputKind.TEXT,
        message_type="text",
        text=body,
    )


def selection_message(selection_id, sender=DEFAULT_SENDER, message_id=None) -> InboundMessage:
    return InboundMessage(
        sender_id=sender,
        message_id=message_id or f"wamid.in.{next(_message_ids)}",
        kind=InputKind.SELECTION,
        message_type="interactive",
        selection_id=selection_id,
        selection_title=selection_id,
    )


def unsupported_message(sender=DEFAULT_SENDER) -> InboundMessage:
    return InboundMessage(
        sender_id=sender,
        message_id=f"wamid.in.{next(_message_ids)}",
        kind=InputKind.UNSUPPORTED,
        message_type="image",
    )


def make_session(state=ConversationState.MAIN_MENU, language="en", tenant_id="default",
                 sender=DEFAULT_SENDER, **data) -> Session:
    return Session(
        sender_id=sender,
        tenant_id=tenant_id,
        state=state,
        language=language,
        collected_data=dict(data),
        created_at=IN_HOURS,
        last_active_at=IN_HOURS,
    )


def webhook_body(message: dict, name: str = "Jane") -> dict:
    """Cloud API envelope around a single message object."""
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"display_phone_number": "15550000000", "phone_number_id": "123"},
                    "contacts": [{"wa_id": message.get("from", ""), "profile": {"name": name}}],
                    "messages": [message],
                },
            }],
        }],
    }


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return build_registry(builtin_tenants())


@pytest.fixture
def default_tenant(registry):
    return registry.get("default")


@pytest.fixture
def premium_tenant(registry):
    return registry.get("premium")


@pytest.fixture
def engine():
    return ConversationEngine(default_language="en")


@pytest.fixture
def store(registry, clock):
    return InMemorySessionStore(tenants=registry, require_language_selection=True, clock=clock)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def record_log():
    return InMemoryRecordLog()


@pytest.fixture
def processor(store, registry, engine, channel, record_log, clock):
    return MessageProcessor(
        store=store,
        tenants=registry,
        engine=engine,
        channel=channel,
        records=record_log,
        clock=clock,
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        whatsapp_verify_token="verify-me",
        whatsapp_access_token=None,
        whatsapp_phone_number_id=None,
        admin_api_key=None,
        records_webhook_url=None,
        tenants_file=None,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings, channel):
    from api.main import create_app
    return create_app(settings=settings, channel=channel)


@pytest.fixture
def client(app):
    """Create a FastAPI test client."""
    return TestClient(app)
