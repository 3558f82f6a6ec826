"""Webhook registry errors."""

from __future__ import annotations


class WebhookError(Exception):
    pass


class InvalidWebhookError(WebhookError, ValueError):
    pass


class WebhookNotFoundError(WebhookError, LookupError):
    pass


class WebhookOwnershipError(WebhookError, PermissionError):
    pass
