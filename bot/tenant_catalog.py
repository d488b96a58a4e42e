"""
Built-in tenant catalog.

Used when no TENANTS_FILE is configured.
"""

from typing import List

from .tenants import (
    ChoiceOption,
    FaqEntry,
    ServiceItem,
    TenantConfig,
    WorkingHours,
    DEFAULT_TENANT_ID,
    PREMIUM_TENANT_ID,
)

BUDGET_OPTIONS = (
    ChoiceOption("budget_low", "low", {"en": "Under $1k", "es": "Menos de $1k"}),
    ChoiceOption("budget_mid", "medium", {"en": "$1k - $5k", "es": "$1k - $5k"}),
    ChoiceOption("budget_high", "high", {"en": "Over $5k", "es": "Más de $5k"}),
)

TIMELINE_OPTIONS = (
    ChoiceOption("timeline_asap", "asap", {"en": "ASAP", "es": "Lo antes posible"}),
    ChoiceOption("timeline_month", "this month", {"en": "This month", "es": "Este mes"}),
    ChoiceOption("timeline_later", "later", {"en": "Just exploring", "es": "Solo explorando"}),
)

COMMON_FAQ = (
    FaqEntry(
        keywords={
            "en": ("price", "pricing", "cost", "how much"),
            "es": ("precio", "costo", "cuánto", "cuanto"),
        },
        answer={
            "en": "Our projects are quoted individually. Tap *Get a quote* and we will send you an estimate.",
            "es": "Cotizamos cada proyecto por separado. Toca *Cotizar* y te enviaremos un estimado.",
        },
    ),
    FaqEntry(
        keywords={
            "en": ("hours", "open", "opening"),
            "es": ("horario", "abierto", "abren"),
        },
        answer={
            "en": "We reply to messages during business hours, Monday to Friday.",
            "es": "Respondemos mensajes en horario laboral, de lunes a viernes.",
        },
    ),
    FaqEntry(
        keywords={
            "en": ("where", "location", "address"),
            "es": ("dónde", "donde", "ubicación", "direccion", "dirección"),
        },
        answer={
            "en": "We are a remote team and work with clients worldwide.",
            "es": "Somos un equipo remoto y trabajamos con clientes de todo el mundo.",
        },
    ),
)

DEFAULT_TENANT = TenantConfig(
    id=DEFAULT_TENANT_ID,
    display_name={"en": "Brightline Studio", "es": "Estudio Brightline"},
    support_contact="+1 555 010 2000",
    working_hours=WorkingHours(
        weekdays=frozenset({0, 1, 2, 3, 4}),
        start_hour=9,
        end_hour=18,
        utc_offset_hours=0,
    ),
    services=(
        ServiceItem(
            "web",
            {"en": "Website design", "es": "Diseño web"},
            {"en": "Landing pages and company sites.", "es": "Landing pages y sitios corporativos."},
        ),
        ServiceItem(
            "marketing",
            {"en": "Digital marketing", "es": "Marketing digital"},
            {"en": "Ads, SEO and social media.", "es": "Anuncios, SEO y redes sociales."},
        ),
    ),
    faq=COMMON_FAQ,
    budget_options=BUDGET_OPTIONS,
    timeline_options=TIMELINE_OPTIONS,
)

PREMIUM_TENANT = TenantConfig(
    id=PREMIUM_TENANT_ID,
    display_name={"en": "Brightline Premium", "es": "Brightline Premium"},
    support_contact="+1 555 010 3000",
    working_hours=WorkingHours(
        weekdays=frozenset({0, 1, 2, 3, 4, 5}),
        start_hour=8,
        end_hour=20,
        utc_offset_hours=-5,
    ),
    services=(
        ServiceItem(
            "web",
            {"en": "Website design", "es": "Diseño web"},
            {"en": "Custom sites with a dedicated designer.", "es": "Sitios a medida con diseñador dedicado."},
        ),
        ServiceItem(
            "apps",
            {"en": "Mobile apps", "es": "Apps móviles"},
            {"en": "iOS and Android apps.", "es": "Apps para iOS y Android."},
        ),
        ServiceItem(
            "consulting",
            {"en": "Consulting", "es": "Consultoría"},
            {"en": "Product and growth strategy.", "es": "Estrategia de producto y crecimiento."},
        ),
    ),
    faq=(
        FaqEntry(
            keywords={
                "en": ("account manager", "manager"),
                "es": ("gerente de cuenta", "ejecutivo"),
            },
            answer={
                "en": "Premium clients have a dedicated account manager. Tap *Talk to a person* to reach them.",
                "es": "Los clientes premium tienen un ejecutivo dedicado. Toca *Hablar con alguien* para contactarlo.",
            },
        ),
    ) + COMMON_FAQ,
    budget_options=BUDGET_OPTIONS,
    timeline_options=TIMELINE_OPTIONS,
)


def builtin_tenants() -> List[TenantConfig]:
    return [DEFAULT_TENANT, PREMIUM_TENANT]
