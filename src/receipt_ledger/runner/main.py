"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from ..analysis import analyze_receipt
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..errors import DuplicatePending, LifecycleError
from ..lifecycle import LifecycleManager
from ..publisher import BasePublisher, LoggingPublisher, WebhookPublisher
from ..services import ExpirySweeper, InboundReceipt, ReceiptIntakeService, parse_edit_command
from ..state_store import TransactionRecord, TransactionStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="receipt-ledger",
        description="Turn receipt OCR text into reviewed, confirmed transactions",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-config", help="Write a default config file")

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze", help="Classify receipt text and print the extracted fields"
    )
    analyze_parser.add_argument("source", help="Text file with OCR output, or - for stdin")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest", help="Create a pending transaction from receipt text"
    )
    ingest_parser.add_argument("source", help="Text file with OCR output, or - for stdin")
    ingest_parser.add_argument("--owner", required=True, help="Sender identity")
    ingest_parser.add_argument("--channel", required=True, help="Originating conversation")
    ingest_parser.add_argument("--asset", default=None, help="Reference to the source image")
    ingest_parser.add_argument("--payer", default="", help="Payer label")

    # pending command
    pending_parser = subparsers.add_parser("pending", help="List pending transactions")
    pending_parser.add_argument("--owner", default=None, help="Only this owner's transaction")

    # edit command
    edit_parser = subparsers.add_parser(
        "edit", help="Edit the owner's pending transaction (e.g. 'editar valor R$ 10,00')"
    )
    edit_parser.add_argument("--owner", required=True, help="Sender identity")
    edit_parser.add_argument("command_text", nargs="+", help="Edit command")

    # confirm / cancel commands
    confirm_parser = subparsers.add_parser("confirm", help="Confirm and publish")
    confirm_parser.add_argument("--owner", required=True, help="Sender identity")
    cancel_parser = subparsers.add_parser("cancel", help="Cancel the pending transaction")
    cancel_parser.add_argument("--owner", required=True, help="Sender identity")

    # sweep command
    sweep_parser = subparsers.add_parser("sweep", help="Expire stale pending transactions")
    sweep_parser.add_argument(
        "--ttl-hours",
        type=float,
        default=None,
        help="Override the configured TTL (hours)",
    )

    subparsers.add_parser("stats", help="Show transaction statistics")
    subparsers.add_parser("watch", help="Run the expiry sweeper until interrupted")

    return parser


def build_publisher(config: Config) -> BasePublisher:
    """Webhook publisher when configured, logging publisher otherwise."""
    pub = config.publisher
    if not pub.enabled:
        logger.info("No webhook configured; confirmations will only be logged")
        return LoggingPublisher()
    return WebhookPublisher(
        webhook_url=pub.webhook_url,
        qstash_token=pub.qstash_token,
        qstash_url=pub.qstash_url,
        api_token=pub.api_token,
        timeout=pub.timeout_seconds,
        max_retries=pub.max_retries,
        backoff_factor=pub.backoff_factor,
    )


def build_manager(config: Config) -> LifecycleManager:
    store = TransactionStore(config.lifecycle.data_dir)
    return LifecycleManager(store, build_publisher(config), config.lifecycle)


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _print_record(record: TransactionRecord) -> None:
    print(f"  [{record.short_id}] {record.status.value.upper()}")
    print(f"     → Owner: {record.owner_id}")
    print(f"     → Category: {record.category}")
    print(f"     → Amount: {record.amount}")
    print(f"     → Installments: {record.installments}")
    print(f"     → Card final: {record.last_four_digits}")
    if record.payer_label:
        print(f"     → Payer: {record.payer_label}")
    print(f"     → Created: {record.created_at}")


def cmd_init_config(config_path: Path) -> int:
    """Write a default configuration file."""
    if config_path.exists():
        print(f"❌ {config_path} already exists")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote {config_path}")
    return 0


def cmd_analyze(source: str) -> int:
    """Print the analysis of receipt text as JSON."""
    analysis = analyze_receipt(_read_source(source))
    print(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_ingest(
    config: Config,
    source: str,
    owner: str,
    channel: str,
    asset: str | None,
    payer: str,
) -> int:
    """Create a pending transaction from receipt text."""
    intake = ReceiptIntakeService(build_manager(config))
    receipt = InboundReceipt(
        raw_text=_read_source(source),
        owner_id=owner,
        channel_id=channel,
        asset_ref=asset,
        payer_label=payer,
    )
    try:
        result = intake.ingest(receipt)
    except DuplicatePending as e:
        print(f"⏳ {owner} already has a pending transaction:")
        _print_record(e.existing)
        return 1

    print("📝 Pending transaction created:")
    _print_record(result.record)
    return 0


def cmd_pending(config: Config, owner: str | None) -> int:
    """List pending transactions."""
    manager = build_manager(config)
    if owner:
        record = manager.get_pending_by_owner(owner)
        records = [record] if record else []
    else:
        records = manager.list_pending()

    if not records:
        print("No pending transactions")
        return 0
    for record in records:
        _print_record(record)
    print(f"\n✓ {len(records)} pending")
    return 0


def cmd_edit(config: Config, owner: str, command_text: str) -> int:
    """Edit the owner's pending transaction."""
    manager = build_manager(config)
    request = parse_edit_command(command_text)
    record = manager.edit_for_owner(owner, request)
    print("✏️ Transaction updated:")
    _print_record(record)
    return 0


def cmd_confirm(config: Config, owner: str) -> int:
    """Confirm the owner's pending transaction."""
    manager = build_manager(config)
    outcome = manager.confirm_for_owner(owner)
    print("✅ Transaction confirmed:")
    _print_record(outcome.record)
    if not outcome.published:
        print(f"⚠️ Not published: {outcome.error}")
        return 2
    return 0


def cmd_cancel(config: Config, owner: str) -> int:
    """Cancel the owner's pending transaction."""
    manager = build_manager(config)
    record = manager.cancel_for_owner(owner)
    print(f"❌ Transaction {record.short_id} cancelled")
    return 0


def cmd_sweep(config: Config, ttl_hours: float | None) -> int:
    """Expire stale pending transactions."""
    manager = build_manager(config)
    expired = manager.expire(ttl_hours)
    print(f"🧹 {len(expired)} expired transaction(s) removed")
    return 0


def cmd_stats(config: Config) -> int:
    """Show transaction statistics."""
    stats = build_manager(config).get_stats()

    print("\n📊 Transaction Status")
    print("=" * 40)
    print(f"  Pending:                {stats.pending_count}")
    print(f"  Confirmed:              {stats.confirmed_count}")
    print(f"  Confirmed value:        R$ {stats.total_confirmed_value:.2f}")
    print(f"  Owners with confirmed:  {stats.unique_confirmed_owners}")
    print()
    return 0


def cmd_watch(config: Config) -> int:
    """Run the expiry sweeper in the foreground."""
    sweeper = ExpirySweeper(
        build_manager(config),
        interval_seconds=config.lifecycle.sweep_interval_minutes * 60,
        ttl_hours=config.lifecycle.pending_ttl_hours,
    )
    sweeper.start()
    print("🕑 Expiry sweeper running (Ctrl-C to stop)")
    try:
        while sweeper.running:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n✓ Sweeper stopped")
    finally:
        sweeper.stop()
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)
    if parsed.command == "analyze":
        return cmd_analyze(parsed.source)

    # Load config
    try:
        config = load_config(parsed.config)
        config.validate_or_raise()
    except (OSError, ConfigValidationError) as e:
        print(f"❌ Failed to load config: {e}", file=sys.stderr)
        return 1

    # Route to command
    try:
        if parsed.command == "ingest":
            return cmd_ingest(
                config, parsed.source, parsed.owner, parsed.channel, parsed.asset, parsed.payer
            )
        elif parsed.command == "pending":
            return cmd_pending(config, parsed.owner)
        elif parsed.command == "edit":
            return cmd_edit(config, parsed.owner, " ".join(parsed.command_text))
        elif parsed.command == "confirm":
            return cmd_confirm(config, parsed.owner)
        elif parsed.command == "cancel":
            return cmd_cancel(config, parsed.owner)
        elif parsed.command == "sweep":
            return cmd_sweep(config, parsed.ttl_hours)
        elif parsed.command == "stats":
            return cmd_stats(config)
        elif parsed.command == "watch":
            return cmd_watch(config)
        else:
            parser.print_help()
            return 1
    except LifecycleError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
