"""
Publisher interface.
"""

import json
import logging
from abc import ABC, abstractmethod

from ..state_store import TransactionRecord
from .payload import build_publish_payload

logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Base exception for publish failures."""

    pass


class BasePublisher(ABC):
    """
    Receives one publish call per confirmed transaction.

    Implementations own their timeout and retry policy; callers never retry.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Publisher name for logging."""
        pass

    @abstractmethod
    def publish(self, record: TransactionRecord) -> str | None:
        """
        Forward a confirmed record downstream.

        Returns:
            Delivery id assigned by the downstream service, if any

        Raises:
            PublishError: If the record could not be delivered
        """
        pass


class LoggingPublisher(BasePublisher):
    """Publisher used when no webhook is configured. Only logs the payload."""

    @property
    def name(self) -> str:
        return "log"

    def publish(self, record: TransactionRecord) -> str | None:
        payload = build_publish_payload(record)
        logger.info("Confirmed transaction %s (not forwarded)", record.short_id)
        logger.debug("Payload: %s", json.dumps(payload, ensure_ascii=False))
        return None
