"""
Tenant Registry for the WhatsApp Concierge bot.

A tenant is a configured client brand: display name, working hours,
service catalog, FAQ, support contact and flow button options. The
registry maps a sender identifier to a tenant through a pluggable
resolver.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_TENANT_ID = "default"
PREMIUM_TENANT_ID = "premium"

Localized = Dict[str, str]
TenantResolver = Callable[[str], str]


class TenantConfigError(Exception):
    """Raised when a tenants file cannot be loaded."""


def pick(text: Localized, language: Optional[str]) -> str:
    """Return the text for a language, falling back to English."""
    if language and language in text:
        return text[language]
    if "en" in text:
        return text["en"]
    return next(iter(text.values()), "")


@dataclass(frozen=True)
class WorkingHours:
    """Weekly opening window in tenant-local time."""
    weekdays: FrozenSet[int] = frozenset({0, 1, 2, 3, 4})  # 0 = Monday
    start_hour: int = 9   # inclusive
    end_hour: int = 18    # exclusive
    utc_offset_hours: float = 0.0


@dataclass(frozen=True)
class ServiceItem:
    id: str
    title: Localized
    description: Localized = field(default_factory=dict)


@dataclass(frozen=True)
class FaqEntry:
    keywords: Dict[str, Tuple[str, ...]]  # language -> keywords
    answer: Localized


@dataclass(frozen=True)
class ChoiceOption:
    """A button option whose value is stored in collected data."""
    id: str
    value: str
    title: Localized


@dataclass(frozen=True)
class TenantConfig:
    """Configuration for a single tenant."""
    id: str
    display_name: Localized
    support_contact: str
    working_hours: WorkingHours = field(default_factory=WorkingHours)
    services: Tuple[ServiceItem, ...] = ()
    faq: Tuple[FaqEntry, ...] = ()
    budget_options: Tuple[ChoiceOption, ...] = ()
    timeline_options: Tuple[ChoiceOption, ...] = ()

    def name(self, language: Optional[str]) -> str:
        return pick(self.display_name, language)

    def find_service(self, service_id: str) -> Optional[ServiceItem]:
        for service in self.services:
            if service.id == service_id:
                return service
        return None


def digit_parity_resolver(sender_id: str) -> str:
    """
    Map a sender to a tenant by the parity of its last digit.

    Even last digit -> premium; odd, non-digit or empty -> default.
    Placeholder for a real account-to-tenant mapping.
    """
    if not sender_id:
        return DEFAULT_TENANT_ID
    last = sender_id.strip()[-1:]
    if last.isdigit() and last.isascii() and int(last) % 2 == 0:
        return PREMIUM_TENANT_ID
    return DEFAULT_TENANT_ID


class TenantRegistry:
    """Static lookup of tenant configurations."""

    def __init__(
        self,
        resolver: TenantResolver = digit_parity_resolver,
        default_tenant_id: str = DEFAULT_TENANT_ID,
    ):
        self._tenants: Dict[str, TenantConfig] = {}
        self._resolver = resolver
        self.default_tenant_id = default_tenant_id

    def register(self, config: TenantConfig) -> TenantConfig:
        self._tenants[config.id] = config
        logger.info(f"Tenant registered: {config.name('en')} ({config.id})")
        return config

    def get(self, tenant_id: str) -> TenantConfig:
        """Get a tenant, falling back to the default tenant."""
        config = self._tenants.get(tenant_id)
        if config is None:
            config = self._tenants[self.default_tenant_id]
        return config

    def resolve_id(self, sender_id: str) -> str:
        """Resolve the tenant id for a sender. Never fails."""
        try:
            tenant_id = self._resolver(sender_id)
        except Exception as e:
            logger.warning(f"Tenant resolver failed for {sender_id!r}: {e}")
            return self.default_tenant_id
        if tenant_id not in self._tenants:
            return self.default_tenant_id
        return tenant_id

    def resolve(self, sender_id: str) -> TenantConfig:
        return self.get(self.resolve_id(sender_id))

    def list_all(self) -> List[TenantConfig]:
        return list(self._tenants.values())


# ── JSON loading ──────────────────────────────────────────────────

def _options(raw: List[dict]) -> Tuple[ChoiceOption, ...]:
    return tuple(
        ChoiceOption(id=o["id"], value=o.get("value", o["id"]), title=o["title"])
        for o in raw
    )


def _working_hours(tenant_id: str, hours: dict) -> WorkingHours:
    working_hours = WorkingHours(
        weekdays=frozenset(int(d) for d in hours.get("weekdays", [0, 1, 2, 3, 4])),
        start_hour=int(hours.get("start_hour", 9)),
        end_hour=int(hours.get("end_hour", 18)),
        utc_offset_hours=float(hours.get("utc_offset_hours", 0)),
    )
    bad_days = sorted(d for d in working_hours.weekdays if not 0 <= d <= 6)
    if bad_days:
        raise TenantConfigError(f"Tenant {tenant_id}: weekdays must be 0-6, got {bad_days}")
    if not 0 <= working_hours.start_hour < working_hours.end_hour <= 24:
        raise TenantConfigError(
            f"Tenant {tenant_id}: invalid working hours "
            f"{working_hours.start_hour}-{working_hours.end_hour}"
        )
    return working_hours


def tenant_from_dict(data: dict) -> TenantConfig:
    """Build a TenantConfig from its JSON representation."""
    return TenantConfig(
        id=data["id"],
        display_name=data["display_name"],
        support_contact=data.get("support_contact", ""),
        working_hours=_working_hours(data["id"], data.get("working_hours", {})),
        services=tuple(
            ServiceItem(id=s["id"], title=s["title"], description=s.get("description", {}))
            for s in data.get("services", [])
        ),
        faq=tuple(
            FaqEntry(
                keywords={lang: tuple(words) for lang, words in f["keywords"].items()},
                answer=f["answer"],
            )
            for f in data.get("faq", [])
        ),
        budget_options=_options(data.get("budget_options", [])),
        timeline_options=_options(data.get("timeline_options", [])),
    )


def load_tenants_file(path: str) -> List[TenantConfig]:
    """Load tenant configurations from a JSON file (a list of tenants)."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return [tenant_from_dict(item) for item in raw]
    except (TenantConfigError, OSError, ValueError, KeyError, TypeError) as e:
        raise TenantConfigError(f"Cannot load tenants from {path}: {e}") from e


def build_registry(
    tenants: List[TenantConfig],
    resolver: TenantResolver = digit_parity_resolver,
) -> TenantRegistry:
    """Create a registry holding the given tenants."""
    registry = TenantRegistry(resolver=resolver)
    for tenant in tenants:
        registry.register(tenant)
    if DEFAULT_TENANT_ID not in {t.id for t in tenants}:
        raise TenantConfigError(f"A '{DEFAULT_TENANT_ID}' tenant is required")
    return registry
