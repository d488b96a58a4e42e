"""
WhatsApp Channel Providers for the WhatsApp Concierge bot.

Meta Cloud API (production) and a dry-run channel that only logs, used
when no credentials are configured.
"""

import logging
import uuid
from typing import Any, Dict, List, Sequence

import httpx

from bot.directives import MAX_BUTTONS, Button
from .base import ChannelProvider, ChannelResponse

logger = logging.getLogger(__name__)


class MetaCloudWhatsApp(ChannelProvider):
    """WhatsApp via Meta Cloud API."""

    name = "meta_cloud"
    GRAPH_URL = "https://graph.facebook.com"

    def __init__(
        self,
        api_token: str,
        phone_number_id: str,
        api_version: str = "v20.0",
        timeout: float = 10.0,
    ):
        self.api_token = api_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.timeout = timeout

    @property
    def messages_url(self) -> str:
        return f"{self.GRAPH_URL}/{self.api_version}/{self.phone_number_id}/messages"

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"}

    @staticmethod
    def text_payload(to: str, body: str) -> Dict[str, Any]:
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"preview_url": False, "body": body},
        }

    @staticmethod
    def buttons_payload(to: str, body: str, buttons: Sequence[Button]) -> Dict[str, Any]:
        if not buttons or len(buttons) > MAX_BUTTONS:
            raise ValueError(f"Interactive messages take 1 to {MAX_BUTTONS} buttons, got {len(buttons)}")
        return {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "interactive",
            "interactive": {
                "type": "button",
                "body": {"text": body},
                "action": {
                    "buttons": [
                        {"type": "reply", "reply": {"id": b.id, "title": b.title}}
                        for b in buttons
                    ],
                },
            },
        }

    async def _post(self, payload: Dict[str, Any]) -> ChannelResponse:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    self.messages_url, json=payload, headers=self.headers, timeout=self.timeout
                )
                resp.raise_for_status()
                data = resp.json()
                msg_id = data.get("messages", [{}])[0].get("id")
                return ChannelResponse(success=True, message_id=msg_id)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Meta WhatsApp send failed ({payload.get('type')}): {e}")
            return ChannelResponse(success=False, error=str(e))

    async def send_text(self, to: str, body: str) -> ChannelResponse:
        return await self._post(self.text_payload(to, body))

    async def send_buttons(self, to: str, body: str, buttons: Sequence[Button]) -> ChannelResponse:
        return await self._post(self.buttons_payload(to, body, buttons))

    async def health_check(self) -> bool:
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.get(
                    f"{self.GRAPH_URL}/{self.api_version}/{self.phone_number_id}",
                    headers={"Authorization": f"Bearer {self.api_token}"},
                    timeout=5,
                )
                return resp.status_code == 200
        except httpx.HTTPError:
            return False


class DryRunChannel(ChannelProvider):
    """Logs outbound messages instead of sending them."""

    name = "dry_run"

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def _accept(self, payload: Dict[str, Any]) -> ChannelResponse:
        self.sent.append(payload)
        message_id = f"dry-{uuid.uuid4().hex[:10]}"
        logger.info(f"[dry-run] {payload['type']} to {payload['to']}: {payload}")
        return ChannelResponse(success=True, message_id=message_id)

    async def send_text(self, to: str, body: str) -> ChannelResponse:
        return self._accept(MetaCloudWhatsApp.text_payload(to, body))

    async def send_buttons(self, to: str, body: str, buttons: Sequence[Button]) -> ChannelResponse:
        return self._accept(MetaCloudWhatsApp.buttons_payload(to, body, buttons))

    async def health_check(self) -> bool:
        return True
