"""
Service initialization and dependency injection for the WhatsApp Concierge API.

Creates and wires the bot components used by the routes. One Services
instance is owned by each application (app.state.services).
"""

import logging
from typing import Optional

from fastapi import Request

from bot.engine import ConversationEngine
from bot.processor import MessageProcessor
from bot.records import InMemoryRecordLog, RecordForwarder
from bot.sessions import InMemorySessionStore
from bot.tenant_catalog import builtin_tenants
from bot.tenants import TenantRegistry, build_registry, load_tenants_file
from config.settings import Settings, get_settings

from .channels import ChannelProvider, DryRunChannel, MetaCloudWhatsApp
from .middleware.metrics import ConversationMetrics

logger = logging.getLogger(__name__)


class Services:
    """Container for all application services."""

    def __init__(self, settings: Optional[Settings] = None, channel: Optional[ChannelProvider] = None):
        self.settings: Settings = settings or get_settings()
        self.tenants: Optional[TenantRegistry] = None
        self.store: Optional[InMemorySessionStore] = None
        self.engine: Optional[ConversationEngine] = None
        self.records: Optional[InMemoryRecordLog] = None
        self.channel: Optional[ChannelProvider] = channel
        self.forwarder: Optional[RecordForwarder] = None
        self.processor: Optional[MessageProcessor] = None
        self._initialized = False

    def initialize(self):
        """Initialize all services. Tenant configuration errors are fatal."""
        if self._initialized:
            return

        logger.info(
            f"Initializing services (language gate: {self.settings.require_language_selection})"
        )
        self._init_tenants()
        self._init_store()
        self._init_channel()
        self._init_records()
        self._init_processor()
        self._initialized = True
        logger.info("All services initialized successfully")

    def _init_tenants(self):
        """Load tenants from TENANTS_FILE or use the built-in catalog."""
        s = self.settings
        if s.tenants_file:
            tenants = load_tenants_file(s.tenants_file)
            logger.info(f"Loaded {len(tenants)} tenants from {s.tenants_file}")
        else:
            tenants = builtin_tenants()
        self.tenants = build_registry(tenants)

    def _init_store(self):
        s = self.settings
        self.store = InMemorySessionStore(
            tenants=self.tenants,
            require_language_selection=s.require_language_selection,
            default_language=s.default_language,
            ttl_seconds=s.session_ttl_seconds,
            dedupe_window_seconds=s.dedupe_window_seconds,
            sweep_interval_seconds=s.sweep_interval_seconds,
        )

    def _init_channel(self):
        """Meta Cloud API when credentials are set, otherwise dry-run."""
        if self.channel is not None:
            return
        s = self.settings
        if s.whatsapp_configured:
            self.channel = MetaCloudWhatsApp(
                api_token=s.whatsapp_access_token,
                phone_number_id=s.whatsapp_phone_number_id,
                api_version=s.whatsapp_api_version,
                timeout=s.whatsapp_send_timeout,
            )
            logger.info("WhatsApp channel ready: Meta Cloud API")
        else:
            self.channel = DryRunChannel()
            logger.warning("WHATSAPP_ACCESS_TOKEN/PHONE_NUMBER_ID not set, replies are only logged")

    def _init_records(self):
        s = self.settings
        self.records = InMemoryRecordLog()
        if s.records_webhook_url:
            self.forwarder = RecordForwarder(
                webhook_url=s.records_webhook_url,
                api_key=s.records_webhook_api_key,
            )
            logger.info("Record forwarding enabled")

    def _init_processor(self):
        s = self.settings
        self.engine = ConversationEngine(default_language=s.default_language)
        self.processor = MessageProcessor(
            store=self.store,
            tenants=self.tenants,
            engine=self.engine,
            channel=self.channel,
            records=self.records,
            forwarder=self.forwarder,
            hooks=ConversationMetrics(),
            require_language_selection=s.require_language_selection,
            default_language=s.default_language,
        )

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.processor is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "channel": self.channel.name if self.channel else None,
            "tenants": len(self.tenants.list_all()) if self.tenants else 0,
            "active_sessions": self.store.count() if self.store else 0,
            "record_forwarding": self.forwarder is not None,
        }


def get_services(request: Request) -> Services:
    """Get the services instance of the current application."""
    return request.app.state.services
