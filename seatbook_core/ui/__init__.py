"""
Streamlit UI components for the seat booking dashboard.
"""
from .reminders import build_whatsapp_reminder_link

__all__ = ["build_whatsapp_reminder_link"]
