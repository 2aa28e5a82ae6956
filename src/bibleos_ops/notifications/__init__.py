"""Outbound notifications (email)."""

from bibleos_ops.notifications.mailer import Mailer, ResendMailer

__all__ = ["Mailer", "ResendMailer"]
