"""
Message Processor for the WhatsApp Concierge bot.

One inbound message is one unit of work:

    dedupe -> per-sender lock -> session -> engine -> commit -> deliver

The next state is computed and committed before any outbound call, so a
transport failure or timeout never leaves the session half-updated.
Completed records are returned on the result; forwarding them to the
external webhook is left to the caller (`forward_records`) so it runs
after the inbound request has been answered.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

from .directives import Button, ButtonMenu, Reply
from .engine import ConversationEngine, Transition
from .inbound import InboundMessage
from .policies import detect_language
from .records import FlowRecord, RecordForwarder, RecordLog
from .sessions import SessionStore, utcnow
from .states import ConversationState, InputKind
from .tenants import TenantRegistry

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Outbound transport used to deliver replies."""

    async def send_text(self, to: str, body: str):
        ...

    async def send_buttons(self, to: str, body: str, buttons: Sequence[Button]):
        ...


class ProcessorHooks(Protocol):
    """Observability callbacks (metrics)."""

    def on_message(self, kind: str) -> None: ...
    def on_duplicate(self) -> None: ...
    def on_transition(self, from_state: str, to_state: str) -> None: ...
    def on_record(self, kind: str) -> None: ...
    def on_send_failure(self) -> None: ...


class _NoHooks:
    def on_message(self, kind: str) -> None:
        pass

    def on_duplicate(self) -> None:
        pass

    def on_transition(self, from_state: str, to_state: str) -> None:
        pass

    def on_record(self, kind: str) -> None:
        pass

    def on_send_failure(self) -> None:
        pass


@dataclass
class ProcessResult:
    """Outcome of processing one inbound message."""
    status: str  # processed | duplicate | failed
    state: Optional[ConversationState] = None
    replies_sent: int = 0
    send_failures: int = 0
    records: List[FlowRecord] = field(default_factory=list)

    @property
    def duplicate(self) -> bool:
        return self.status == "duplicate"


class MessageProcessor:
    """Applies inbound messages to sessions and delivers the replies."""

    def __init__(
        self,
        store: SessionStore,
        tenants: TenantRegistry,
        engine: ConversationEngine,
        channel: Channel,
        records: RecordLog,
        forwarder: Optional[RecordForwarder] = None,
        hooks: Optional[ProcessorHooks] = None,
        require_language_selection: bool = True,
        default_language: str = "en",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.tenants = tenants
        self.engine = engine
        self.channel = channel
        self.records = records
        self.forwarder = forwarder
        self.hooks = hooks or _NoHooks()
        self.require_language_selection = require_language_selection
        self.default_language = default_language
        self._clock = clock

    async def process(self, message: InboundMessage) -> ProcessResult:
        self.hooks.on_message(message.kind.value)

        if not self.store.mark_seen(message.message_id, self._clock()):
            logger.info(f"Duplicate message ignored: {message.message_id} from {message.sender_id}")
            self.hooks.on_duplicate()
            return ProcessResult(status="duplicate")

        async with self.store.lock(message.sender_id):
            transition = await self._apply(message)
            result = ProcessResult(
                status="processed",
                state=transition.state,
                records=list(transition.records),
            )
            await self._deliver(message.sender_id, transition.replies, result)
        return result

    async def forward_records(self, records: Sequence[FlowRecord]) -> int:
        """Post records to the forwarder, returning how many were accepted."""
        if self.forwarder is None:
            return 0
        forwarded = 0
        for record in records:
            try:
                if await self.forwarder.forward(record):
                    forwarded += 1
            except Exception:
                logger.exception(f"Forwarding record {record.record_id} raised")
        return forwarded

    def _language_hint(self, message: InboundMessage) -> Optional[str]:
        if self.require_language_selection or message.kind != InputKind.TEXT:
            return None
        return detect_language(message.text, self.default_language)

    async def _apply(self, message: InboundMessage) -> Transition:
        """Compute and commit the transition. Caller holds the sender lock."""
        session = await self.store.get(message.sender_id, self._language_hint(message))
        tenant = self.tenants.get(session.tenant_id)
        now = self._clock()

        try:
            transition = self.engine.handle(session, tenant, message, now)
        except Exception:
            logger.exception(
                f"Engine failed for {message.sender_id} in state {session.state.value}; resetting session"
            )
            await self.store.reset(message.sender_id)
            return self.engine.recovery(session, tenant, message, now)

        await self.store.patch(message.sender_id, transition.session_update())
        for record in transition.records:
            await self.records.append(record)
            self.hooks.on_record(record.kind)

        if transition.state != session.state:
            self.hooks.on_transition(session.state.value, transition.state.value)
            logger.info(
                f"{message.sender_id}: {session.state.value} -> {transition.state.value}",
                extra={"tenant_id": tenant.id, "message_id": message.message_id},
            )
        return transition

    async def _deliver(self, to: str, replies: List[Reply], result: ProcessResult) -> None:
        """Send replies in order; failures are logged and do not stop delivery."""
        for reply in replies:
            try:
                if isinstance(reply, ButtonMenu):
                    response = await self.channel.send_buttons(to, reply.body, list(reply.buttons))
                else:
                    response = await self.channel.send_text(to, reply.body)
            except Exception as e:
                logger.error(f"Send to {to} raised: {e}")
                response = None

            if response is not None and getattr(response, "success", False):
                result.replies_sent += 1
            else:
                error = getattr(response, "error", None) if response is not None else "exception"
                logger.warning(f"Reply to {to} not delivered: {error}")
                result.send_failures += 1
                self.hooks.on_send_failure()
