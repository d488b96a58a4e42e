"""
Conversation state machine for the WhatsApp Concierge bot.

Given a session, its tenant and one inbound message, the engine decides
the next state, the collected-data updates, any completed-flow records
and the replies to send. It never mutates the session; the processor
commits the returned Transition.

Evaluation order:
    1. Unsupported input -> notice + re-prompt of the current state
    2. Language gate (LANGUAGE_SELECT or no language yet)
    3. Global text commands (menu, start, reset, support, agent, language)
    4. Dispatch table (state, input kind) -> handler
"""

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .copy import MessageCatalog
from .directives import Button, Reply, ReplyBuilder
from .inbound import InboundMessage
from .policies import (
    LeadTemperature,
    classify_lead,
    describe_working_hours,
    is_valid_email,
    is_within_working_hours,
    match_faq,
)
from .records import FlowRecord, HandoverTicket, LeadRecord, MeetingRecord
from .sessions import Session
from .states import FLOW_FIELDS, MENU_STATES, ConversationState, InputKind
from .tenants import ChoiceOption, TenantConfig, pick

logger = logging.getLogger(__name__)

State = ConversationState

MAX_FIELD_LENGTH = 500

# Menu action ids
SERVICES = "services"
BOOK_MEETING = "book_meeting"
MORE = "more"
GET_QUOTE = "get_quote"
TALK_TO_AGENT = "talk_to_agent"
MAIN_MENU = "main_menu"
CHANGE_LANGUAGE = "change_language"

SERVICE_PREFIX = "svc_"
OTHER_SERVICE = "svc_other"
NOTES_SKIP = "notes_skip"

LANGUAGE_BUTTONS = (
    Button("lang_en", "English"),
    Button("lang_es", "Español"),
)
LANGUAGE_SELECTIONS = {"lang_en": "en", "lang_es": "es"}
LANGUAGE_WORDS = {
    "english": "en", "en": "en", "1": "en", "inglés": "en", "ingles": "en",
    "español": "es", "espanol": "es", "spanish": "es", "es": "es", "2": "es",
}


class Command(Enum):
    """Global text commands, recognized in any state but LANGUAGE_SELECT."""
    MENU = "menu"
    START = "start"
    RESET = "reset"
    SUPPORT = "support"
    AGENT = "agent"
    LANGUAGE = "language"


COMMAND_PHRASES = {
    Command.MENU: ("menu", "main menu", "menú", "menú principal", "inicio", "0"),
    Command.START: ("start", "hi", "hello", "hola", "empezar", "comenzar"),
    Command.RESET: ("reset", "restart", "reiniciar"),
    Command.SUPPORT: ("support", "help", "soporte", "ayuda"),
    Command.AGENT: ("agent", "human", "talk to agent", "agente", "humano", "asesor"),
    Command.LANGUAGE: ("language", "change language", "idioma", "cambiar idioma"),
}
_COMMANDS_BY_PHRASE = {
    phrase: command for command, phrases in COMMAND_PHRASES.items() for phrase in phrases
}


def normalize(text: Optional[str]) -> str:
    """Lower-case, trim, drop a leading slash and trailing punctuation."""
    if not text:
        return ""
    value = re.sub(r"\s+", " ", text.strip().lower())
    return value.lstrip("/").rstrip(".!?¡¿ ").lstrip("¡¿")


def match_command(text: Optional[str]) -> Optional[Command]:
    return _COMMANDS_BY_PHRASE.get(normalize(text))


@dataclass
class Transition:
    """The engine's decision for one inbound message."""
    state: ConversationState
    replies: List[Reply] = field(default_factory=list)
    language: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    clear_data: bool = False
    records: List[FlowRecord] = field(default_factory=list)

    def session_update(self) -> Dict[str, Any]:
        """Partial update for SessionStore.patch."""
        update: Dict[str, Any] = {"state": self.state}
        if self.language:
            update["language"] = self.language
        if self.clear_data:
            update["collected_data"] = None
        elif self.data:
            update["collected_data"] = dict(self.data)
        return update


@dataclass(frozen=True)
class TurnContext:
    session: Session
    tenant: TenantConfig
    message: InboundMessage
    now: datetime
    language: str

    @property
    def state(self) -> ConversationState:
        return self.session.state

    @property
    def data(self) -> Dict[str, Any]:
        return self.session.collected_data

    def text(self) -> str:
        return (self.message.text or "").strip()[:MAX_FIELD_LENGTH]

    def t(self, key: str, /, **kwargs) -> str:
        return MessageCatalog.get(key, self.language, **kwargs)


Handler = Callable[[TurnContext], Transition]


class ConversationEngine:
    """
    Table-driven conversation state machine.

    Every (state, TEXT) and (state, SELECTION) cell has a handler;
    UNSUPPORTED input is handled uniformly before the table is consulted.
    """

    def __init__(self, default_language: str = "en"):
        self.default_language = default_language
        self._table: Dict[Tuple[ConversationState, InputKind], Handler] = self._build_table()

    def _build_table(self) -> Dict[Tuple[ConversationState, InputKind], Handler]:
        TEXT, SELECTION = InputKind.TEXT, InputKind.SELECTION
        table: Dict[Tuple[ConversationState, InputKind], Handler] = {
            (State.LANGUAGE_SELECT, TEXT): self._language_gate,
            (State.LANGUAGE_SELECT, SELECTION): self._language_gate,

            (State.BOOK_MEETING_NAME, TEXT): self._on_name,
            (State.BOOK_MEETING_NAME, SELECTION): self._reprompt,
            (State.BOOK_MEETING_EMAIL, TEXT): self._on_email,
            (State.BOOK_MEETING_EMAIL, SELECTION): self._reprompt,
            (State.BOOK_MEETING_TOPIC, TEXT): self._on_topic,
            (State.BOOK_MEETING_TOPIC, SELECTION): self._reprompt,

            (State.LEAD_SERVICE, TEXT): self._reprompt,
            (State.LEAD_SERVICE, SELECTION): self._on_service_selection,
            (State.LEAD_OTHER_SERVICE_TEXT, TEXT): self._on_other_service,
            (State.LEAD_OTHER_SERVICE_TEXT, SELECTION): self._reprompt,
            (State.LEAD_BUDGET, TEXT): self._on_budget,
            (State.LEAD_BUDGET, SELECTION): self._on_budget,
            (State.LEAD_TIMELINE, TEXT): self._on_timeline,
            (State.LEAD_TIMELINE, SELECTION): self._on_timeline,
            (State.LEAD_NOTES, TEXT): self._on_notes_text,
            (State.LEAD_NOTES, SELECTION): self._on_notes_selection,

            (State.HANDOVER_REASON, TEXT): self._on_handover_reason,
            (State.HANDOVER_REASON, SELECTION): self._reprompt,
        }
        for state in MENU_STATES:
            table[(state, TEXT)] = self._on_menu_text
            table[(state, SELECTION)] = self._on_menu_selection
        return table

    @property
    def transition_table(self) -> Dict[Tuple[ConversationState, InputKind], Handler]:
        return dict(self._table)

    # ── Entry point ───────────────────────────────────────────────

    def handle(
        self,
        session: Session,
        tenant: TenantConfig,
        message: InboundMessage,
        now: datetime,
    ) -> Transition:
        ctx = TurnContext(
            session=session,
            tenant=tenant,
            message=message,
            now=now,
            language=session.language or self.default_language,
        )

        if message.kind == InputKind.UNSUPPORTED:
            return self._stay(ctx, self._notice(ctx, "unsupported"))

        if session.state == State.LANGUAGE_SELECT or session.language is None:
            return self._language_gate(ctx)

        if message.kind == InputKind.TEXT:
            command = match_command(message.text)
            if command is not None:
                logger.debug(f"Command {command.value} from {session.sender_id}")
                return self._on_command(command, ctx)

        return self._table[(session.state, message.kind)](ctx)

    def recovery(self, session: Session, tenant: TenantConfig, message: InboundMessage, now: datetime) -> Transition:
        """Main menu after an internal failure. The caller resets the session."""
        ctx = TurnContext(
            session=session,
            tenant=tenant,
            message=message,
            now=now,
            language=session.language or self.default_language,
        )
        return self._main_menu(ctx, before=self._notice(ctx, "error_recovered"))

    # ── Prompts ───────────────────────────────────────────────────

    def _builder(self, ctx: TurnContext) -> ReplyBuilder:
        return ReplyBuilder(continuation_body=ctx.t("more_options"))

    def _options_buttons(self, ctx: TurnContext, options: Tuple[ChoiceOption, ...]) -> List[Button]:
        return [Button(o.id, pick(o.title, ctx.language)) for o in options]

    def _menu(self, state: ConversationState, ctx: TurnContext, body: Optional[str] = None) -> List[Reply]:
        """The button menu of a menu state."""
        if state == State.SERVICES_MENU:
            body = body or ctx.t("services_menu_body")
            buttons = [
                Button(GET_QUOTE, ctx.t("btn_quote")),
                Button(BOOK_MEETING, ctx.t("btn_book")),
                Button(MAIN_MENU, ctx.t("btn_main")),
            ]
        elif state == State.MORE_MENU:
            body = body or ctx.t("more_menu_body")
            buttons = [
                Button(GET_QUOTE, ctx.t("btn_quote")),
                Button(TALK_TO_AGENT, ctx.t("btn_agent")),
                Button(MAIN_MENU, ctx.t("btn_main")),
            ]
        else:
            body = body or ctx.t("main_menu_body")
            buttons = [
                Button(SERVICES, ctx.t("btn_services")),
                Button(BOOK_MEETING, ctx.t("btn_book")),
                Button(MORE, ctx.t("btn_more")),
            ]
        return self._builder(ctx).menu(body, buttons).build()

    def _prompt(self, state: ConversationState, ctx: TurnContext, data: Optional[Dict[str, Any]] = None) -> List[Reply]:
        """Replies that ask for the input a state expects."""
        data = ctx.data if data is None else data
        builder = self._builder(ctx)

        if state == State.LANGUAGE_SELECT:
            return builder.menu(ctx.t("language_prompt"), LANGUAGE_BUTTONS).build()
        if state == State.SERVICES_MENU:
            lines = [
                f"• *{pick(s.title, ctx.language)}*: {pick(s.description, ctx.language)}"
                if s.description else f"• *{pick(s.title, ctx.language)}*"
                for s in ctx.tenant.services
            ]
            builder.text(ctx.t("services_intro", brand=ctx.tenant.name(ctx.language), services="\n".join(lines)))
            return builder.extend(self._menu(state, ctx)).build()
        if state in MENU_STATES:
            return self._menu(state, ctx)
        if state == State.BOOK_MEETING_NAME:
            return builder.text(ctx.t("ask_name")).build()
        if state == State.BOOK_MEETING_EMAIL:
            return builder.text(ctx.t("ask_email", name=data.get("name", ""))).build()
        if state == State.BOOK_MEETING_TOPIC:
            return builder.text(ctx.t("ask_topic")).build()
        if state == State.LEAD_SERVICE:
            buttons = [
                Button(f"{SERVICE_PREFIX}{s.id}", pick(s.title, ctx.language))
                for s in ctx.tenant.services
            ]
            buttons.append(Button(OTHER_SERVICE, ctx.t("btn_other")))
            return builder.menu(ctx.t("ask_service"), buttons).build()
        if state == State.LEAD_OTHER_SERVICE_TEXT:
            return builder.text(ctx.t("ask_other_service")).build()
        if state == State.LEAD_BUDGET:
            buttons = self._options_buttons(ctx, ctx.tenant.budget_options)
            return builder.menu(ctx.t("ask_budget"), buttons).build()
        if state == State.LEAD_TIMELINE:
            buttons = self._options_buttons(ctx, ctx.tenant.timeline_options)
            return builder.menu(ctx.t("ask_timeline"), buttons).build()
        if state == State.LEAD_NOTES:
            return builder.menu(ctx.t("ask_notes"), [Button(NOTES_SKIP, ctx.t("btn_skip"))]).build()
        if state == State.HANDOVER_REASON:
            return builder.text(ctx.t("ask_reason")).build()
        raise ValueError(f"No prompt for state {state}")

    # ── Transition helpers ────────────────────────────────────────

    def _go(
        self,
        ctx: TurnContext,
        state: ConversationState,
        before: Optional[List[Reply]] = None,
        data: Optional[Dict[str, Any]] = None,
        clear: bool = False,
        records: Optional[List[FlowRecord]] = None,
    ) -> Transition:
        merged = {} if clear else {**ctx.data, **(data or {})}
        return Transition(
            state=state,
            replies=list(before or []) + self._prompt(state, ctx, merged),
            data=dict(data or {}),
            clear_data=clear,
            records=list(records or []),
        )

    def _stay(self, ctx: TurnContext, before: Optional[List[Reply]] = None) -> Transition:
        return Transition(state=ctx.state, replies=list(before or []) + self._prompt(ctx.state, ctx))

    def _notice(self, ctx: TurnContext, key: str, /, **kwargs) -> List[Reply]:
        return self._builder(ctx).text(ctx.t(key, **kwargs)).build()

    def _main_menu(self, ctx: TurnContext, before: Optional[List[Reply]] = None, welcome: bool = False) -> Transition:
        body = ctx.t("welcome", brand=ctx.tenant.name(ctx.language)) if welcome else None
        return Transition(
            state=State.MAIN_MENU,
            replies=list(before or []) + self._menu(State.MAIN_MENU, ctx, body),
            clear_data=True,
        )

    def _complete(self, ctx: TurnContext, record: FlowRecord, confirmation: List[Reply]) -> Transition:
        logger.info(f"{record.kind} flow completed for {ctx.session.sender_id} (tenant={ctx.tenant.id})")
        transition = self._main_menu(ctx, before=confirmation)
        transition.records.append(record)
        return transition

    def _after_hours_notice(self, ctx: TurnContext) -> List[Reply]:
        if is_within_working_hours(ctx.tenant.working_hours, ctx.now):
            return []
        hours = describe_working_hours(ctx.tenant.working_hours, ctx.language)
        return self._notice(ctx, "after_hours", hours=hours)

    def _flow_data(self, ctx: TurnContext, flow: str, **latest) -> Dict[str, Any]:
        """The flow's own fields; anything else in collected data is ignored."""
        merged = {**ctx.data, **latest}
        return {name: merged.get(name, "") for name in FLOW_FIELDS[flow]}

    # ── Language gate & commands ──────────────────────────────────

    def _language_gate(self, ctx: TurnContext) -> Transition:
        choice = None
        if ctx.message.kind == InputKind.SELECTION:
            choice = LANGUAGE_SELECTIONS.get(ctx.message.selection_id or "")
        elif ctx.message.kind == InputKind.TEXT:
            choice = LANGUAGE_WORDS.get(normalize(ctx.message.text))

        if choice is None:
            return Transition(
                state=State.LANGUAGE_SELECT,
                replies=self._prompt(State.LANGUAGE_SELECT, ctx),
            )

        ctx = replace(ctx, language=choice)
        transition = self._main_menu(ctx, welcome=True)
        transition.language = choice
        return transition

    def _on_command(self, command: Command, ctx: TurnContext) -> Transition:
        if command == Command.MENU:
            return self._main_menu(ctx)
        if command == Command.START:
            return self._main_menu(ctx, welcome=True)
        if command == Command.RESET:
            return self._main_menu(ctx, before=self._notice(ctx, "reset_done"))
        if command == Command.SUPPORT:
            hours = describe_working_hours(ctx.tenant.working_hours, ctx.language)
            notice = self._notice(ctx, "support_contact", contact=ctx.tenant.support_contact, hours=hours)
            return self._go(ctx, State.MORE_MENU, before=notice, clear=True)
        if command == Command.AGENT:
            return self._start_handover(ctx)
        if command == Command.LANGUAGE:
            return self._go(ctx, State.LANGUAGE_SELECT, clear=True)
        raise ValueError(f"Unhandled command {command}")

    def _reprompt(self, ctx: TurnContext) -> Transition:
        return self._stay(ctx)

    # ── Menus ─────────────────────────────────────────────────────

    def _on_menu_selection(self, ctx: TurnContext) -> Transition:
        action = ctx.message.selection_id
        if action == SERVICES:
            return self._go(ctx, State.SERVICES_MENU, clear=True)
        if action == MORE:
            return self._go(ctx, State.MORE_MENU, clear=True)
        if action == MAIN_MENU:
            return self._main_menu(ctx)
        if action == BOOK_MEETING:
            return self._go(ctx, State.BOOK_MEETING_NAME, before=self._after_hours_notice(ctx), clear=True)
        if action == GET_QUOTE:
            return self._go(ctx, State.LEAD_SERVICE, clear=True)
        if action == TALK_TO_AGENT:
            return self._start_handover(ctx)
        if action == CHANGE_LANGUAGE:
            return self._go(ctx, State.LANGUAGE_SELECT, clear=True)

        logger.info(f"Unhandled selection {action!r} in {ctx.state.value} from {ctx.session.sender_id}")
        return self._main_menu(ctx, before=self._notice(ctx, "fallback"))

    def _on_menu_text(self, ctx: TurnContext) -> Transition:
        entry = match_faq(ctx.tenant.faq, ctx.text(), ctx.language)
        if entry is not None:
            answer = self._builder(ctx).text(pick(entry.answer, ctx.language)).build()
            return Transition(state=ctx.state, replies=answer + self._menu(ctx.state, ctx))
        return self._main_menu(ctx, before=self._notice(ctx, "fallback"))

    def _start_handover(self, ctx: TurnContext) -> Transition:
        return self._go(ctx, State.HANDOVER_REASON, before=self._after_hours_notice(ctx), clear=True)

    # ── Meeting booking ───────────────────────────────────────────

    def _on_name(self, ctx: TurnContext) -> Transition:
        name = ctx.text()
        if not name:
            return self._stay(ctx, self._notice(ctx, "blank_input"))
        return self._go(ctx, State.BOOK_MEETING_EMAIL, data={"name": name})

    def _on_email(self, ctx: TurnContext) -> Transition:
        email = ctx.text()
        if not is_valid_email(email):
            return Transition(state=ctx.state, replies=self._notice(ctx, "invalid_email"))
        return self._go(ctx, State.BOOK_MEETING_TOPIC, data={"email": email})

    def _on_topic(self, ctx: TurnContext) -> Transition:
        topic = ctx.text()
        if not topic:
            return self._stay(ctx, self._notice(ctx, "blank_input"))
        fields = self._flow_data(ctx, "meeting", topic=topic)
        record = MeetingRecord(
            tenant_id=ctx.tenant.id,
            sender_id=ctx.session.sender_id,
            language=ctx.language,
            **fields,
        )
        return self._complete(ctx, record, self._notice(ctx, "meeting_confirmed", **fields))

    # ── Lead qualification ────────────────────────────────────────

    def _on_service_selection(self, ctx: TurnContext) -> Transition:
        selection = ctx.message.selection_id or ""
        if selection == OTHER_SERVICE:
            return self._go(ctx, State.LEAD_OTHER_SERVICE_TEXT)
        if selection.startswith(SERVICE_PREFIX):
            service = ctx.tenant.find_service(selection[len(SERVICE_PREFIX):])
            if service is not None:
                return self._go(ctx, State.LEAD_BUDGET, data={"service": service.id})
        return self._reprompt(ctx)

    def _on_other_service(self, ctx: TurnContext) -> Transition:
        service = ctx.text()
        if not service:
            return self._stay(ctx, self._notice(ctx, "blank_input"))
        return self._go(ctx, State.LEAD_BUDGET, data={"service": service})

    def _choice(self, ctx: TurnContext, options: Tuple[ChoiceOption, ...]) -> Optional[str]:
        """Stored value for a selected option or a free-text answer."""
        if ctx.message.kind == InputKind.SELECTION:
            for option in options:
                if option.id == ctx.message.selection_id:
                    return option.value
            return None
        return ctx.text() or None

    def _on_budget(self, ctx: TurnContext) -> Transition:
        budget = self._choice(ctx, ctx.tenant.budget_options)
        if budget is None:
            return self._reprompt(ctx)
        return self._go(ctx, State.LEAD_TIMELINE, data={"budget": budget})

    def _on_timeline(self, ctx: TurnContext) -> Transition:
        timeline = self._choice(ctx, ctx.tenant.timeline_options)
        if timeline is None:
            return self._reprompt(ctx)
        return self._go(ctx, State.LEAD_NOTES, data={"timeline": timeline})

    def _on_notes_text(self, ctx: TurnContext) -> Transition:
        notes = ctx.text()
        if not notes:
            return self._stay(ctx, self._notice(ctx, "blank_input"))
        return self._finish_lead(ctx, notes)

    def _on_notes_selection(self, ctx: TurnContext) -> Transition:
        if ctx.message.selection_id == NOTES_SKIP:
            return self._finish_lead(ctx, "")
        return self._reprompt(ctx)

    def _finish_lead(self, ctx: TurnContext, notes: str) -> Transition:
        fields = self._flow_data(ctx, "lead", notes=notes)
        temperature = classify_lead(fields["budget"], fields["timeline"])
        record = LeadRecord(
            tenant_id=ctx.tenant.id,
            sender_id=ctx.session.sender_id,
            language=ctx.language,
            temperature=temperature.value,
            **fields,
        )
        copy = "lead_confirmed_hot" if temperature == LeadTemperature.HOT else "lead_confirmed"
        return self._complete(ctx, record, self._notice(ctx, copy))

    # ── Human handover ────────────────────────────────────────────

    def _on_handover_reason(self, ctx: TurnContext) -> Transition:
        reason = ctx.text()
        if not reason:
            return self._stay(ctx, self._notice(ctx, "blank_input"))

        within_hours = is_within_working_hours(ctx.tenant.working_hours, ctx.now)
        fields = self._flow_data(ctx, "handover", reason=reason)
        record = HandoverTicket(
            tenant_id=ctx.tenant.id,
            sender_id=ctx.session.sender_id,
            language=ctx.language,
            within_hours=within_hours,
            status="open" if within_hours else "queued_after_hours",
            **fields,
        )
        contact = ctx.tenant.support_contact
        if within_hours:
            confirmation = self._notice(ctx, "handover_in_hours", contact=contact)
        else:
            hours = describe_working_hours(ctx.tenant.working_hours, ctx.language)
            confirmation = self._notice(ctx, "handover_after_hours", contact=contact, hours=hours)
        return self._complete(ctx, record, confirmation)
