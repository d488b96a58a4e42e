"""Tests for the conversation state machine."""

from dataclasses import replace

import pytest

from bot.copy import MessageCatalog
from bot.directives import ButtonMenu, TextReply
from bot.engine import ConversationEngine, normalize, match_command, Command
from bot.records import HandoverTicket, LeadRecord, MeetingRecord
from bot.states import ConversationState as S
from bot.states import InputKind

from conftest import (
    AFTER_HOURS,
    IN_HOURS,
    PREMIUM_SENDER,
    make_session,
    selection_message,
    text_message,
    unsupported_message,
)


def advance(session, transition):
    """Apply a transition the way the processor commits it."""
    data = {} if transition.clear_data else {**session.collected_data, **transition.data}
    return replace(
        session,
        state=transition.state,
        language=transition.language or session.language,
        collected_data=data,
    )


def menu_ids(transition):
    return [b.id for r in transition.replies if isinstance(r, ButtonMenu) for b in r.buttons]


def texts(transition):
    return [r.body for r in transition.replies if isinstance(r, TextReply)]


# ── Table ─────────────────────────────────────────────────────────

def test_every_state_handles_text_and_selection(engine):
    table = engine.transition_table
    for state in S:
        for kind in (InputKind.TEXT, InputKind.SELECTION):
            assert (state, kind) in table, f"missing handler for {state.value}/{kind.value}"


def test_prompts_never_exceed_three_buttons(engine, premium_tenant):
    for state in S:
        session = make_session(state=state, tenant_id="premium", name="Jane")
        transition = engine.handle(session, premium_tenant, unsupported_message(), IN_HOURS)
        for reply in transition.replies:
            if isinstance(reply, ButtonMenu):
                assert 1 <= len(reply.buttons) <= 3


def test_handle_does_not_mutate_session(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_NAME)
    engine.handle(session, default_tenant, text_message("Jane Doe"), IN_HOURS)
    assert session.state == S.BOOK_MEETING_NAME
    assert session.collected_data == {}


# ── Commands ──────────────────────────────────────────────────────

@pytest.mark.parametrize("text,command", [
    ("menu", Command.MENU),
    ("  MENÚ ", Command.MENU),
    ("/start", Command.START),
    ("Hola!", Command.START),
    ("reiniciar", Command.RESET),
    ("Help?", Command.SUPPORT),
    ("talk to agent", Command.AGENT),
    ("cambiar idioma", Command.LANGUAGE),
    ("menu please", None),
])
def test_match_command(text, command):
    assert match_command(text) == command


def test_normalize():
    assert normalize("  ¿Hola?  ") == "hola"
    assert normalize(None) == ""


def test_menu_command_clears_flow(engine, default_tenant):
    session = make_session(state=S.LEAD_BUDGET, service="web")
    transition = engine.handle(session, default_tenant, text_message("menu"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert transition.clear_data
    assert menu_ids(transition) == ["services", "book_meeting", "more"]


def test_start_command_greets(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, text_message("hi"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert transition.replies[0].body == MessageCatalog.get("welcome", "en", brand="Brightline Studio")


def test_reset_command(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_EMAIL, name="Jane")
    transition = engine.handle(session, default_tenant, text_message("reset"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert transition.clear_data
    assert texts(transition) == [MessageCatalog.get("reset_done", "en")]


def test_support_command_shows_contact(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, text_message("help"), IN_HOURS)
    assert transition.state == S.MORE_MENU
    assert "+1 555 010 2000" in texts(transition)[0]
    assert "Mon-Fri 09:00-18:00 (UTC)" in texts(transition)[0]


def test_agent_command_starts_handover(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, text_message("human"), IN_HOURS)
    assert transition.state == S.HANDOVER_REASON
    assert texts(transition) == [MessageCatalog.get("ask_reason", "en")]


def test_language_command_reopens_gate(engine, default_tenant):
    transition = engine.handle(make_session(language="es"), default_tenant, text_message("idioma"), IN_HOURS)
    assert transition.state == S.LANGUAGE_SELECT
    assert menu_ids(transition) == ["lang_en", "lang_es"]


# ── Language gate ─────────────────────────────────────────────────

def test_gate_reprompts_until_explicit_pick(engine, default_tenant):
    session = make_session(state=S.LANGUAGE_SELECT, language=None)
    transition = engine.handle(session, default_tenant, text_message("hello"), IN_HOURS)
    assert transition.state == S.LANGUAGE_SELECT
    assert transition.language is None
    assert menu_ids(transition) == ["lang_en", "lang_es"]


def test_gate_selection_sets_language(engine, default_tenant):
    session = make_session(state=S.LANGUAGE_SELECT, language=None)
    transition = engine.handle(session, default_tenant, selection_message("lang_es"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert transition.language == "es"
    assert transition.replies[0].body == MessageCatalog.get("welcome", "es", brand="Estudio Brightline")


@pytest.mark.parametrize("text,language", [("English", "en"), ("español", "es"), ("2", "es")])
def test_gate_accepts_language_words(engine, default_tenant, text, language):
    session = make_session(state=S.LANGUAGE_SELECT, language=None)
    transition = engine.handle(session, default_tenant, text_message(text), IN_HOURS)
    assert transition.language == language


def test_change_language_menu_action(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, selection_message("change_language"), IN_HOURS)
    assert transition.state == S.LANGUAGE_SELECT


# ── Menus & FAQ ───────────────────────────────────────────────────

def test_services_menu_lists_tenant_services(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, selection_message("services"), IN_HOURS)
    assert transition.state == S.SERVICES_MENU
    assert "Website design" in texts(transition)[0]
    assert menu_ids(transition) == ["get_quote", "book_meeting", "main_menu"]


def test_more_menu(engine, default_tenant):
    transition = engine.handle(make_session(), default_tenant, selection_message("more"), IN_HOURS)
    assert transition.state == S.MORE_MENU
    assert menu_ids(transition) == ["get_quote", "talk_to_agent", "main_menu"]


def test_faq_hit_answers_and_keeps_menu(engine, default_tenant):
    session = make_session(state=S.SERVICES_MENU)
    transition = engine.handle(session, default_tenant, text_message("How much does it cost?"), IN_HOURS)
    assert transition.state == S.SERVICES_MENU
    assert texts(transition)[0].startswith("Our projects are quoted individually")
    assert menu_ids(transition) == ["get_quote", "book_meeting", "main_menu"]


def test_faq_miss_falls_back_to_main_menu(engine, default_tenant):
    session = make_session(state=S.MORE_MENU)
    transition = engine.handle(session, default_tenant, text_message("tell me a joke"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert texts(transition) == [MessageCatalog.get("fallback", "en")]


def test_unknown_selection_in_menu_goes_to_main_menu(engine, default_tenant):
    session = make_session(state=S.SERVICES_MENU)
    transition = engine.handle(session, default_tenant, selection_message("stale_button"), IN_HOURS)
    assert transition.state == S.MAIN_MENU
    assert menu_ids(transition) == ["services", "book_meeting", "more"]


def test_unknown_selection_in_capture_state_reprompts(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_NAME)
    transition = engine.handle(session, default_tenant, selection_message("book_meeting"), IN_HOURS)
    assert transition.state == S.BOOK_MEETING_NAME
    assert texts(transition) == [MessageCatalog.get("ask_name", "en")]


def test_unsupported_input_reprompts_current_step(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_EMAIL, name="Jane")
    transition = engine.handle(session, default_tenant, unsupported_message(), IN_HOURS)
    assert transition.state == S.BOOK_MEETING_EMAIL
    assert texts(transition) == [
        MessageCatalog.get("unsupported", "en"),
        MessageCatalog.get("ask_email", "en", name="Jane"),
    ]
    assert not transition.data


# ── Meeting booking ───────────────────────────────────────────────

def test_catalog_accepts_name_placeholder():
    assert "Jane" in MessageCatalog.get("ask_email", "en", name="Jane")
    body = MessageCatalog.get(
        "meeting_confirmed", "es", name="Jane", email="jane@x.com", topic="Pricing"
    )
    assert "Jane" in body and "jane@x.com" in body and "Pricing" in body


def test_booking_end_to_end(engine, default_tenant):
    session = make_session()

    t = engine.handle(session, default_tenant, selection_message("book_meeting"), IN_HOURS)
    assert t.state == S.BOOK_MEETING_NAME
    assert texts(t) == [MessageCatalog.get("ask_name", "en")]
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("Jane Doe"), IN_HOURS)
    assert t.state == S.BOOK_MEETING_EMAIL
    assert "Jane Doe" in texts(t)[0]
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("jane@x.com"), IN_HOURS)
    assert t.state == S.BOOK_MEETING_TOPIC
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("Pricing"), IN_HOURS)
    assert t.state == S.MAIN_MENU
    assert t.clear_data
    assert len(t.records) == 1
    record = t.records[0]
    assert isinstance(record, MeetingRecord)
    assert (record.name, record.email, record.topic) == ("Jane Doe", "jane@x.com", "Pricing")
    assert record.tenant_id == "default"
    assert "Pricing" in texts(t)[0]
    assert advance(session, t).collected_data == {}


def test_invalid_email_is_not_stored(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_EMAIL, name="Jane")
    t = engine.handle(session, default_tenant, text_message("jane at x dot com"), IN_HOURS)
    assert t.state == S.BOOK_MEETING_EMAIL
    assert t.data == {}
    assert not t.clear_data
    assert texts(t) == [MessageCatalog.get("invalid_email", "en")]


def test_blank_name_reprompts(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_NAME)
    t = engine.handle(session, default_tenant, text_message("   "), IN_HOURS)
    assert t.state == S.BOOK_MEETING_NAME
    assert texts(t)[0] == MessageCatalog.get("blank_input", "en")


def test_booking_after_hours_adds_notice(engine, default_tenant):
    t = engine.handle(make_session(), default_tenant, selection_message("book_meeting"), AFTER_HOURS)
    assert t.state == S.BOOK_MEETING_NAME
    assert texts(t)[0] == MessageCatalog.get("after_hours", "en", hours="Mon-Fri 09:00-18:00 (UTC)")
    assert texts(t)[1] == MessageCatalog.get("ask_name", "en")


def test_record_ignores_fields_of_other_flows(engine, default_tenant):
    session = make_session(state=S.BOOK_MEETING_TOPIC, name="Jane", email="jane@x.com", budget="high")
    t = engine.handle(session, default_tenant, text_message("Roadmap"), IN_HOURS)
    data = t.records[0].to_dict()
    assert data["kind"] == "meeting"
    assert "budget" not in data


def test_spanish_copy(engine, default_tenant):
    t = engine.handle(make_session(language="es"), default_tenant, selection_message("book_meeting"), IN_HOURS)
    assert texts(t) == [MessageCatalog.get("ask_name", "es")]


# ── Lead qualification ────────────────────────────────────────────

def test_lead_flow_with_other_service(engine, premium_tenant):
    session = make_session(tenant_id="premium", sender=PREMIUM_SENDER)

    t = engine.handle(session, premium_tenant, selection_message("get_quote", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.LEAD_SERVICE
    menus = [r for r in t.replies if isinstance(r, ButtonMenu)]
    assert [[b.id for b in m.buttons] for m in menus] == [
        ["svc_web", "svc_apps", "svc_consulting"],
        ["svc_other"],
    ]
    session = advance(session, t)

    t = engine.handle(session, premium_tenant, selection_message("svc_other", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.LEAD_OTHER_SERVICE_TEXT
    session = advance(session, t)

    t = engine.handle(session, premium_tenant, text_message("Chatbot", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.LEAD_BUDGET
    assert menu_ids(t) == ["budget_low", "budget_mid", "budget_high"]
    session = advance(session, t)

    t = engine.handle(session, premium_tenant, selection_message("budget_high", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.LEAD_TIMELINE
    session = advance(session, t)

    t = engine.handle(session, premium_tenant, selection_message("timeline_asap", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.LEAD_NOTES
    assert menu_ids(t) == ["notes_skip"]
    session = advance(session, t)

    t = engine.handle(session, premium_tenant, selection_message("notes_skip", PREMIUM_SENDER), IN_HOURS)
    assert t.state == S.MAIN_MENU
    record = t.records[0]
    assert isinstance(record, LeadRecord)
    assert (record.service, record.budget, record.timeline, record.notes) == ("Chatbot", "high", "asap", "")
    assert record.temperature == "hot"
    assert record.tenant_id == "premium"
    assert texts(t)[0] == MessageCatalog.get("lead_confirmed_hot", "en")


def test_lead_free_text_answers_and_cold_lead(engine, default_tenant):
    session = make_session(state=S.LEAD_SERVICE)

    t = engine.handle(session, default_tenant, selection_message("svc_web"), IN_HOURS)
    assert t.data == {"service": "web"}
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("around 2k"), IN_HOURS)
    assert t.data == {"budget": "around 2k"}
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("next year"), IN_HOURS)
    session = advance(session, t)

    t = engine.handle(session, default_tenant, text_message("Need a shop"), IN_HOURS)
    record = t.records[0]
    assert record.temperature == "cold"
    assert record.notes == "Need a shop"
    assert texts(t)[0] == MessageCatalog.get("lead_confirmed", "en")


def test_lead_service_text_reprompts(engine, default_tenant):
    session = make_session(state=S.LEAD_SERVICE)
    t = engine.handle(session, default_tenant, text_message("a website"), IN_HOURS)
    assert t.state == S.LEAD_SERVICE
    assert menu_ids(t) == ["svc_web", "svc_marketing", "svc_other"]


def test_unknown_budget_selection_reprompts(engine, default_tenant):
    session = make_session(state=S.LEAD_BUDGET, service="web")
    t = engine.handle(session, default_tenant, selection_message("budget_huge"), IN_HOURS)
    assert t.state == S.LEAD_BUDGET
    assert t.data == {}


# ── Handover ──────────────────────────────────────────────────────

def test_handover_within_hours(engine, default_tenant):
    session = make_session(state=S.HANDOVER_REASON)
    t = engine.handle(session, default_tenant, text_message("Need an invoice"), IN_HOURS)
    assert t.state == S.MAIN_MENU
    ticket = t.records[0]
    assert isinstance(ticket, HandoverTicket)
    assert ticket.reason == "Need an invoice"
    assert ticket.within_hours is True
    assert ticket.status == "open"
    assert texts(t)[0] == MessageCatalog.get("handover_in_hours", "en", contact="+1 555 010 2000")


def test_handover_after_hours(engine, premium_tenant):
    session = make_session(state=S.HANDOVER_REASON, tenant_id="premium")
    t = engine.handle(session, premium_tenant, text_message("Billing question"), AFTER_HOURS)
    ticket = t.records[0]
    assert ticket.within_hours is False
    assert ticket.status == "queued_after_hours"
    assert "Mon-Sat 08:00-20:00 (UTC-5)" in texts(t)[0]


def test_talk_to_agent_after_hours_notice(engine, default_tenant):
    session = make_session(state=S.MORE_MENU)
    t = engine.handle(session, default_tenant, selection_message("talk_to_agent"), AFTER_HOURS)
    assert t.state == S.HANDOVER_REASON
    assert len(texts(t)) == 2


def test_recovery_returns_main_menu(engine, default_tenant):
    session = make_session(state=S.LEAD_NOTES, language="es")
    t = engine.recovery(session, default_tenant, text_message("x"), IN_HOURS)
    assert t.state == S.MAIN_MENU
    assert texts(t) == [MessageCatalog.get("error_recovered", "es")]


def test_default_language_used_when_unset():
    engine = ConversationEngine(default_language="es")
    assert engine.default_language == "es"
