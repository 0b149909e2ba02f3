"""
Command-line interface for txsubmit.

Provides commands for submitting transaction batches and managing agent keys.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

import structlog

from txsubmit import __version__
from txsubmit.chains.registry import ChainRegistry
from txsubmit.config import SubmitterConfig, set_config
from txsubmit.core.errors import SubmissionError
from txsubmit.files import read_yaml_or_json
from txsubmit.keys.agent import AgentKey, KeyRole
from txsubmit.keys.backend import FileKeyBackend, SecretNotFound
from txsubmit.orchestrator import SubmissionOrchestrator
from txsubmit.state.database import ReceiptStore

logger = structlog.get_logger(__name__)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Send structlog events through stdlib logging on stderr.

    Receipts printed by the commands go to stdout, so logs never mix with
    them.
    """
    renderer = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        stream=sys.stderr,
        format="%(message)s",
        level=logging.getLevelName(level.upper()),
    )


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from TXSUBMIT_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="txsubmit",
        description="Submit transaction batches to EVM and Cardano chains",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Submit command
    submit_parser = subparsers.add_parser("submit", help="Submit a batch of transactions")
    submit_parser.add_argument(
        "--strategy",
        required=True,
        help="Submission strategy file (YAML or JSON)",
    )
    submit_parser.add_argument(
        "--transactions",
        required=True,
        help="Transactions file (YAML or JSON list)",
    )
    submit_parser.add_argument(
        "--chains",
        required=True,
        help="Chain metadata file (YAML or JSON)",
    )
    submit_parser.add_argument(
        "--receipts",
        help="Where to write receipts (JSON if the name ends in .json, YAML otherwise)",
    )
    submit_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate the submission without broadcasting",
    )
    submit_parser.add_argument(
        "--database-url",
        help="Receipt store URL, e.g. sqlite+aiosqlite:///receipts.db",
    )
    _add_logging_arguments(submit_parser)

    # Keys command
    keys_parser = subparsers.add_parser("keys", help="Manage agent keys")
    keys_parser.add_argument(
        "action",
        choices=["create", "rotate", "delete", "show"],
        help="Key operation",
    )
    keys_parser.add_argument(
        "--role",
        choices=[role.value for role in KeyRole],
        required=True,
        help="Key role",
    )
    keys_parser.add_argument(
        "--environment",
        help="Deployment environment (default: from TXSUBMIT_ENVIRONMENT)",
    )
    keys_parser.add_argument(
        "--chain",
        help="Chain name (validator keys only)",
    )
    keys_parser.add_argument(
        "--index",
        type=int,
        help="Validator index (validator keys only)",
    )
    keys_parser.add_argument(
        "--key-store",
        help="JSON key store path (default: from TXSUBMIT_KEY_STORE_PATH)",
    )
    _add_logging_arguments(keys_parser)

    return parser


def build_config(args: argparse.Namespace) -> SubmitterConfig:
    """Create the configuration, letting command-line flags override the environment."""
    overrides = {}
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    if getattr(args, "log_json", None):
        overrides["log_json"] = True
    if getattr(args, "database_url", None):
        overrides["database_url"] = args.database_url
    if getattr(args, "environment", None):
        overrides["environment"] = args.environment
    if getattr(args, "key_store", None):
        overrides["key_store_path"] = args.key_store
    return SubmitterConfig(**overrides)


async def run_submit(args: argparse.Namespace, config: SubmitterConfig) -> int:
    """Run one submission."""
    registry = ChainRegistry.from_document(
        read_yaml_or_json(args.chains),
        config=config,
        key_backend=FileKeyBackend(config.key_store_path),
    )

    store: Optional[ReceiptStore] = None
    if config.database_url:
        store = ReceiptStore(config)
        await store.connect()

    orchestrator = SubmissionOrchestrator(registry, config=config, receipt_store=store)

    try:
        receipts = await orchestrator.run(
            args.strategy,
            args.transactions,
            receipts_path=args.receipts,
            dry_run=args.dry_run,
        )
    except SubmissionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await registry.close()
        if store:
            await store.disconnect()

    mode = "Simulated" if args.dry_run else "Submitted"
    print(f"{mode} {len(receipts)} transaction(s) on {receipts[0].chain if receipts else '-'}")
    for receipt in receipts:
        reference = receipt.proposal_id or receipt.transaction_hash or "-"
        print(f"  [{receipt.index}] {receipt.status.value:<10} {reference}")
    if args.receipts and receipts:
        print(f"Receipts written to {args.receipts}")
    return 0


async def run_keys(args: argparse.Namespace, config: SubmitterConfig) -> int:
    """Create, rotate, delete or show an agent key."""
    key = AgentKey(
        environment=config.environment,
        role=KeyRole(args.role),
        backend=FileKeyBackend(config.key_store_path),
        chain=args.chain,
        index=args.index,
        prefix=config.key_prefix,
    )

    try:
        if args.action == "create":
            await key.create_if_not_exists()
        elif args.action == "rotate":
            await key.rotate()
        elif args.action == "delete":
            await key.delete()
            print(f"Deleted {key.identifier}")
            return 0
        else:
            await key.fetch()
    except (SecretNotFound, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    info = key.serialize_as_address()
    print(f"{info['identifier']}: {info['address']}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    set_config(config)
    setup_logging(config.log_level, config.log_json)

    if args.command == "submit":
        sys.exit(asyncio.run(run_submit(args, config)))
    elif args.command == "keys":
        sys.exit(asyncio.run(run_keys(args, config)))


if __name__ == "__main__":
    main()
