"""
Notifiers
=========

Alert delivery for finished audits.

Available Notifiers
-------------------
SlackNotifier
    Posts summaries to a Slack incoming webhook.
"""

from fleet_audit.notifiers.slack import SlackNotifier

__all__ = ["SlackNotifier"]
