"""Outbound notifications."""

from .alias_notifier import SmtpAliasNotifier

__all__ = ["SmtpAliasNotifier"]
