"""
Widget copy: welcome text, fallback text and the fixed quick-action sets.
"""
import re
from typing import List

from widget_engine.core.config import Settings
from widget_engine.models.message import QuickAction

HUMAN_REQUEST_TEXT = "I want to speak with a human"

ERROR_WELCOME = "👋 Hi there! I'm here to help. What can I do for you today?"

TAKEOVER_ANNOUNCEMENT = (
    "🎉 Great news! I've connected you with one of our experts who can better "
    "assist you. They'll be with you in just a moment!"
)

FALLBACK_TEMPLATE = (
    "I'm having trouble connecting right now. Please email {email} or call "
    "{phone} for immediate assistance."
)

DEFAULT_QUICK_ACTIONS: List[QuickAction] = [
    QuickAction(icon="💰", text="Pricing Info", value="pricing"),
    QuickAction(icon="🚀", text="Our Services", value="services"),
    QuickAction(icon="📊", text="Case Studies", value="case-studies"),
    QuickAction(icon="📅", text="Book a Call", value="consultation"),
]

RECOVERY_QUICK_ACTIONS: List[QuickAction] = [
    QuickAction(icon="📞", text="Call Us", value="call"),
    QuickAction(icon="📧", text="Email Us", value="email"),
    QuickAction(icon="🔄", text="Try Again", value="retry"),
]

ERROR_QUICK_ACTIONS: List[QuickAction] = [
    QuickAction(icon="🚀", text="Our Services", value="services"),
    QuickAction(icon="📧", text="Contact Us", value="email"),
    QuickAction(icon="🔄", text="Try Again", value="retry"),
]

HUMAN_REQUEST_ACTION = QuickAction(icon="📞", text=HUMAN_REQUEST_TEXT, value="human")


def welcome_message(settings: Settings) -> str:
    if settings.custom_welcome:
        return settings.custom_welcome
    return (
        f"👋 Hey there! I'm {settings.assistant_name}, your {settings.company_name} "
        "AI assistant. I can help you explore our services, or connect you with "
        "our team. What brings you here today?"
    )


def fallback_message(settings: Settings) -> str:
    return FALLBACK_TEMPLATE.format(email=settings.contact_email, phone=settings.contact_phone)


def tel_uri(phone: str) -> str:
    return "tel:" + re.sub(r"[^\d+]", "", phone)


def mailto_uri(email: str) -> str:
    return f"mailto:{email}"
