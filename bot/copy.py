"""
Localized message copy for the WhatsApp Concierge bot.

Two fixed languages: English ("en") and Spanish ("es").
"""

from typing import Dict


class MessageCatalog:
    """Message templates keyed by name, then language."""

    TEMPLATES: Dict[str, Dict[str, str]] = {
        # Language gate (shown in both languages)
        "language_prompt": {
            "en": "Welcome! Please choose your language.\n¡Bienvenido! Por favor elige tu idioma.",
            "es": "Welcome! Please choose your language.\n¡Bienvenido! Por favor elige tu idioma.",
        },

        # Menus
        "welcome": {
            "en": "Welcome to {brand}! How can we help you today?",
            "es": "¡Bienvenido a {brand}! ¿Cómo podemos ayudarte hoy?",
        },
        "main_menu_body": {
            "en": "How can we help you?",
            "es": "¿Cómo podemos ayudarte?",
        },
        "services_intro": {
            "en": "Here is what {brand} offers:\n\n{services}",
            "es": "Esto es lo que ofrece {brand}:\n\n{services}",
        },
        "services_menu_body": {
            "en": "Would you like a quote or a meeting?",
            "es": "¿Quieres una cotización o una reunión?",
        },
        "more_menu_body": {
            "en": "What else can we do for you?",
            "es": "¿Qué más podemos hacer por ti?",
        },
        "more_options": {
            "en": "More options:",
            "es": "Más opciones:",
        },

        # Buttons
        "btn_services": {"en": "Our services", "es": "Servicios"},
        "btn_book": {"en": "Book a meeting", "es": "Agendar reunión"},
        "btn_more": {"en": "More options", "es": "Más opciones"},
        "btn_quote": {"en": "Get a quote", "es": "Cotizar"},
        "btn_agent": {"en": "Talk to a person", "es": "Hablar con alguien"},
        "btn_main": {"en": "Main menu", "es": "Menú principal"},
        "btn_other": {"en": "Other", "es": "Otro"},
        "btn_skip": {"en": "Skip", "es": "Omitir"},

        # Notices
        "support_contact": {
            "en": "You can reach our team at {contact}.\nHours: {hours}",
            "es": "Puedes contactar a nuestro equipo al {contact}.\nHorario: {hours}",
        },
        "reset_done": {
            "en": "Your conversation has been reset.",
            "es": "Tu conversación se reinició.",
        },
        "fallback": {
            "en": "Sorry, I didn't understand that. Please choose an option below.",
            "es": "Perdón, no entendí. Por favor elige una opción.",
        },
        "unsupported": {
            "en": "I can only read text messages and button replies.",
            "es": "Solo puedo leer mensajes de texto y respuestas de botones.",
        },
        "after_hours": {
            "en": "We're currently outside business hours ({hours}). You can continue and we'll follow up as soon as we're back.",
            "es": "Estamos fuera del horario de atención ({hours}). Puedes continuar y te responderemos en cuanto volvamos.",
        },
        "blank_input": {
            "en": "Please type a reply to continue.",
            "es": "Por favor escribe una respuesta para continuar.",
        },
        "error_recovered": {
            "en": "Something went wrong on our side. Let's start again from the main menu.",
            "es": "Algo salió mal de nuestro lado. Empecemos de nuevo desde el menú principal.",
        },

        # Booking flow
        "ask_name": {
            "en": "Great! What's your full name?",
            "es": "¡Genial! ¿Cuál es tu nombre completo?",
        },
        "ask_email": {
            "en": "Thanks, {name}. What's your email address?",
            "es": "Gracias, {name}. ¿Cuál es tu correo electrónico?",
        },
        "invalid_email": {
            "en": "That doesn't look like a valid email address. Please try again (e.g. name@example.com).",
            "es": "Ese correo no parece válido. Inténtalo de nuevo (ej. nombre@ejemplo.com).",
        },
        "ask_topic": {
            "en": "What would you like to discuss in the meeting?",
            "es": "¿De qué te gustaría hablar en la reunión?",
        },
        "meeting_confirmed": {
            "en": "Thanks {name}! Your meeting request about \"{topic}\" is registered. We'll email {email} to confirm a time.",
            "es": "¡Gracias {name}! Tu solicitud de reunión sobre \"{topic}\" quedó registrada. Te escribiremos a {email} para confirmar el horario.",
        },

        # Lead flow
        "ask_service": {
            "en": "Which service are you interested in?",
            "es": "¿Qué servicio te interesa?",
        },
        "ask_other_service": {
            "en": "Please describe the service you need.",
            "es": "Por favor describe el servicio que necesitas.",
        },
        "ask_budget": {
            "en": "What's your approximate budget?",
            "es": "¿Cuál es tu presupuesto aproximado?",
        },
        "ask_timeline": {
            "en": "When would you like to start?",
            "es": "¿Cuándo te gustaría empezar?",
        },
        "ask_notes": {
            "en": "Anything else we should know? Type your notes or tap Skip.",
            "es": "¿Algo más que debamos saber? Escribe tus notas o toca Omitir.",
        },
        "lead_confirmed": {
            "en": "Thanks! Our team will send you a quote shortly.",
            "es": "¡Gracias! Nuestro equipo te enviará una cotización pronto.",
        },
        "lead_confirmed_hot": {
            "en": "Thanks! A specialist will contact you today to prepare your quote.",
            "es": "¡Gracias! Un especialista te contactará hoy para preparar tu cotización.",
        },

        # Handover flow
        "ask_reason": {
            "en": "Please tell us briefly what you need help with, and a team member will take over.",
            "es": "Cuéntanos brevemente en qué necesitas ayuda y una persona del equipo te atenderá.",
        },
        "handover_in_hours": {
            "en": "Thanks! A team member will reply shortly. For urgent matters call {contact}.",
            "es": "¡Gracias! Una persona del equipo te responderá en breve. Para urgencias llama al {contact}.",
        },
        "handover_after_hours": {
            "en": "Thanks! We're closed right now ({hours}); a team member will reply when we're back. For urgent matters call {contact}.",
            "es": "¡Gracias! En este momento estamos cerrados ({hours}); una persona del equipo te responderá cuando volvamos. Para urgencias llama al {contact}.",
        },
    }

    @classmethod
    def get(cls, key: str, language: str = "en", /, **kwargs) -> str:
        """
        Get a formatted message.

        Falls back to English when the language has no translation.
        """
        variants = cls.TEMPLATES[key]
        template = variants.get(language) or variants["en"]
        return template.format(**kwargs) if kwargs else template
