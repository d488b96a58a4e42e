"""
Output directives: abstract "send text" / "send button menu" replies.

WhatsApp reply buttons allow at most 3 buttons per message with titles
of at most 20 characters; longer option lists are split over several
menus.
"""

from dataclasses import dataclass
from typing import List, Sequence, Union

MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_BODY = 1024


@dataclass(frozen=True)
class Button:
    id: str
    title: str


@dataclass(frozen=True)
class TextReply:
    body: str


@dataclass(frozen=True)
class ButtonMenu:
    body: str
    buttons: Sequence[Button] = ()


Reply = Union[TextReply, ButtonMenu]


def _clip(text: str, limit: int) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


class ReplyBuilder:
    """Accumulates replies for one inbound message."""

    def __init__(self, continuation_body: str = "More options:"):
        self.continuation_body = continuation_body
        self._replies: List[Reply] = []

    def text(self, body: str) -> "ReplyBuilder":
        if body and body.strip():
            self._replies.append(TextReply(_clip(body, MAX_BODY)))
        return self

    def menu(self, body: str, buttons: Sequence[Button]) -> "ReplyBuilder":
        """Add a button menu, split into chunks of MAX_BUTTONS."""
        buttons = [Button(b.id, _clip(b.title, MAX_BUTTON_TITLE)) for b in buttons]
        if not buttons:
            return self.text(body)
        for start in range(0, len(buttons), MAX_BUTTONS):
            chunk = tuple(buttons[start:start + MAX_BUTTONS])
            chunk_body = body if start == 0 else self.continuation_body
            self._replies.append(ButtonMenu(_clip(chunk_body, MAX_BODY), chunk))
        return self

    def extend(self, replies: Sequence[Reply]) -> "ReplyBuilder":
        self._replies.extend(replies)
        return self

    def build(self) -> List[Reply]:
        return list(self._replies)
