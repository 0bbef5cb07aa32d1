"""
Fee reminder links.
Opens a WhatsApp chat with the student, pre-filled with the fee-due reminder.
"""
import re
from urllib.parse import quote

WHATSAPP_BASE_URL = "https://wa.me"

REMINDER_TEMPLATE = (
    "Hello {name}, this is a reminder that your library fee is due. "
    "Please pay as soon as possible."
)


def build_whatsapp_reminder_link(name: str, phone: str) -> str:
    """
    Build a wa.me link for a fee reminder.

    Args:
        name: Student name used in the greeting
        phone: Contact number; formatting characters are stripped

    Returns:
        URL of the form https://wa.me/<digits>?text=<message>
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        raise ValueError("A phone number is required for a reminder link")
    message = REMINDER_TEMPLATE.format(name=(name or "").strip() or "there")
    return f"{WHATSAPP_BASE_URL}/{digits}?text={quote(message)}"
