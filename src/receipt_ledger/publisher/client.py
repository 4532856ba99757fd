"""
Webhook publisher implementation.

Two delivery modes:
- QStash: POST to the QStash publish endpoint, which queues and retries
  delivery to the webhook on its own
- Direct: POST straight to the webhook
"""

import json
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..state_store import TransactionRecord
from .base import BasePublisher, PublishError
from .payload import build_publish_payload

logger = logging.getLogger(__name__)

DEFAULT_QSTASH_URL = "https://qstash.upstash.io/v2/publish/"


class PublishConnectionError(PublishError):
    """Failed to reach the publish endpoint."""

    pass


class PublishAPIError(PublishError):
    """Publish endpoint returned an error response."""

    def __init__(self, status_code: int, message: str, response_body: str | None = None):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Publish failed with {status_code}: {message}")


class WebhookPublisher(BasePublisher):
    """
    Forwards confirmed transactions to a webhook.

    Features:
    - Optional QStash relay
    - Bearer auth for the relay and the webhook
    - Transport-level retry with backoff (urllib3 Retry)
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        webhook_url: str,
        qstash_token: str | None = None,
        qstash_url: str = DEFAULT_QSTASH_URL,
        api_token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize the publisher.

        Args:
            webhook_url: Final destination of confirmed transactions
            qstash_token: QStash token; when set, delivery goes through QStash
            qstash_url: QStash publish endpoint (destination is appended)
            api_token: Bearer token expected by the webhook
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
        """
        if not webhook_url:
            raise ValueError("webhook_url is required")

        self.webhook_url = webhook_url
        self.qstash_token = qstash_token
        self.qstash_url = qstash_url
        self.api_token = api_token
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    @property
    def name(self) -> str:
        return "qstash" if self.uses_qstash else "webhook"

    @property
    def uses_qstash(self) -> bool:
        return bool(self.qstash_token)

    def _target(self) -> tuple[str, dict[str, str]]:
        """Return the URL to POST to and the extra headers."""
        headers: dict[str, str] = {}
        if self.uses_qstash:
            headers["Authorization"] = f"Bearer {self.qstash_token}"
            if self.api_token:
                headers["Upstash-Forward-Authorization"] = f"Bearer {self.api_token}"
            return f"{self.qstash_url}{self.webhook_url}", headers

        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return self.webhook_url, headers

    def publish(self, record: TransactionRecord) -> str | None:
        """
        Publish a confirmed record.

        Returns:
            QStash message id when relayed through QStash, else None

        Raises:
            PublishConnectionError: On connection errors and timeouts
            PublishAPIError: On non-2xx responses
        """
        url, headers = self._target()
        payload = build_publish_payload(record)

        logger.info("Publishing transaction %s via %s", record.short_id, self.name)
        logger.debug("Publish body: %s", json.dumps(payload, ensure_ascii=False))

        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error publishing to {url}: {e}")
            raise PublishConnectionError(f"Failed to connect to {url}: {e}") from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout publishing to {url}: {e}")
            raise PublishConnectionError(f"Publish request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error publishing to {url}: {e}")
            raise PublishError(f"Publish request failed: {e}") from e

        if not response.ok:
            message = response.reason or "error"
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("error") or body.get("message") or message
            except ValueError:
                pass
            logger.error(f"Publish error {response.status_code}: {message}")
            raise PublishAPIError(response.status_code, message, response.text)

        message_id = None
        if self.uses_qstash:
            try:
                message_id = response.json().get("messageId")
            except (ValueError, AttributeError):
                logger.debug("QStash response without messageId")

        logger.info("Transaction %s published", record.short_id)
        return message_id
