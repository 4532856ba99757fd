"""
Confirmation publisher.

Provides:
- BasePublisher: interface, one publish call per confirmed transaction
- WebhookPublisher: HTTP delivery, direct or through QStash
- LoggingPublisher: local fallback when no webhook is configured

Publish failures are loud (PublishError) but never undo a confirmation.
"""

from .base import BasePublisher, LoggingPublisher, PublishError
from .client import PublishAPIError, PublishConnectionError, WebhookPublisher
from .payload import build_publish_payload

__all__ = [
    "BasePublisher",
    "LoggingPublisher",
    "WebhookPublisher",
    "PublishError",
    "PublishAPIError",
    "PublishConnectionError",
    "build_publish_payload",
]
