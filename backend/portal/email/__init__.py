"""Donor email: Jinja2-rendered notifications sent through the Resend API."""

from portal.email.manager import EmailManager
from portal.email.sender import EmailDeliveryError, EmailSender, ResendEmailSender

__all__ = ["EmailDeliveryError", "EmailManager", "EmailSender", "ResendEmailSender"]
