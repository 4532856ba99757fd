"""
Configuration management (SSOT).

This module defines ALL configuration for receipt-ledger.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Publishing is disabled when no webhook_url is configured; confirmed
  transactions are then only logged
- The QStash relay is used only when a qstash_token is present
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class LifecycleConfig:
    """Transaction lifecycle settings."""

    # Directory holding the pending/confirmed snapshot files
    data_dir: Path = field(default_factory=lambda: Path("data"))
    # Pending transactions older than this are dropped silently
    pending_ttl_hours: float = 24
    # Installments above this are clamped on confirm
    max_installments: int = 12
    # How often the background sweeper runs
    sweep_interval_minutes: int = 60


@dataclass
class PublisherConfig:
    """Confirmation publisher settings.

    - webhook_url: final destination of confirmed transactions
    - qstash_token: when set, delivery is relayed through QStash
    - api_token: bearer token expected by the webhook
    """

    webhook_url: str | None = None
    qstash_url: str = "https://qstash.upstash.io/v2/publish/"
    qstash_token: str | None = None
    api_token: str | None = None
    # Request timeout (seconds)
    timeout_seconds: int = 30
    # Transport-level retries inside the publisher
    max_retries: int = 3
    backoff_factor: float = 0.5

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)


@dataclass
class Config:
    """Application configuration (SSOT)."""

    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    publisher: PublisherConfig = field(default_factory=PublisherConfig)

    def validate(self) -> list[str]:
        """Validate configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        if self.lifecycle.pending_ttl_hours <= 0:
            errors.append("lifecycle.pending_ttl_hours must be > 0")
        if self.lifecycle.max_installments < 1:
            errors.append("lifecycle.max_installments must be >= 1")
        if self.lifecycle.sweep_interval_minutes < 1:
            errors.append("lifecycle.sweep_interval_minutes must be >= 1")

        if self.publisher.qstash_token and not self.publisher.webhook_url:
            errors.append("publisher.webhook_url is required when qstash_token is set")
        if self.publisher.webhook_url and not self.publisher.webhook_url.startswith(
            ("http://", "https://")
        ):
            errors.append("publisher.webhook_url must be an http(s) URL")
        if self.publisher.timeout_seconds <= 0:
            errors.append("publisher.timeout_seconds must be > 0")

        return errors

    def validate_or_raise(self) -> None:
        errors = self.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - RECEIPT_LEDGER_DATA_DIR
    - RECEIPT_LEDGER_TTL_HOURS
    - WEBHOOK_URL
    - QSTASH_TOKEN
    - API_TOKEN
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Lifecycle config
    lifecycle_data = data.get("lifecycle", {})
    ttl_hours = lifecycle_data.get("pending_ttl_hours", 24)
    ttl_env = os.environ.get("RECEIPT_LEDGER_TTL_HOURS", "")
    if ttl_env:
        try:
            ttl_hours = float(ttl_env)
        except ValueError as e:
            raise ConfigValidationError(
                f"RECEIPT_LEDGER_TTL_HOURS must be a number, got {ttl_env!r}"
            ) from e

    lifecycle = LifecycleConfig(
        data_dir=Path(
            os.environ.get("RECEIPT_LEDGER_DATA_DIR", lifecycle_data.get("data_dir", "data"))
        ),
        pending_ttl_hours=ttl_hours,
        max_installments=lifecycle_data.get("max_installments", 12),
        sweep_interval_minutes=lifecycle_data.get("sweep_interval_minutes", 60),
    )

    # Publisher config
    publisher_data = data.get("publisher", {})
    publisher = PublisherConfig(
        webhook_url=os.environ.get("WEBHOOK_URL", publisher_data.get("webhook_url")) or None,
        qstash_url=publisher_data.get("qstash_url", "https://qstash.upstash.io/v2/publish/"),
        qstash_token=os.environ.get("QSTASH_TOKEN", publisher_data.get("qstash_token")) or None,
        api_token=os.environ.get("API_TOKEN", publisher_data.get("api_token")) or None,
        timeout_seconds=publisher_data.get("timeout_seconds", 30),
        max_retries=publisher_data.get("max_retries", 3),
        backoff_factor=publisher_data.get("backoff_factor", 0.5),
    )

    return Config(lifecycle=lifecycle, publisher=publisher)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# receipt-ledger configuration
#
# Environment variables override the values below:
# RECEIPT_LEDGER_DATA_DIR, RECEIPT_LEDGER_TTL_HOURS, WEBHOOK_URL, QSTASH_TOKEN, API_TOKEN

lifecycle:
  data_dir: "data"                 # pending/confirmed snapshot files
  pending_ttl_hours: 24            # unconfirmed transactions expire after this
  max_installments: 12             # installments are clamped to this on confirm
  sweep_interval_minutes: 60       # background expiry sweep interval

# Where confirmed transactions are sent.
# Leave webhook_url empty to only log confirmations.
publisher:
  webhook_url: null
  qstash_url: "https://qstash.upstash.io/v2/publish/"
  qstash_token: null               # set to relay through QStash
  api_token: null                  # bearer token expected by the webhook
  timeout_seconds: 30
  max_retries: 3
  backoff_factor: 0.5
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
