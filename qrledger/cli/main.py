#!/usr/bin/env python3

import argparse
import logging
from collections.abc import Sequence

from qrledger.runtime import ConfigError, load_config, set_log_level


def category_override(value: str) -> tuple[int, str]:
    """Parse ``N=CATEGORY`` (N is the 1-based item number in the scanned receipt)."""
    number, sep, category = value.partition("=")
    if not sep or not number.strip().isdigit() or not category.strip():
        raise argparse.ArgumentTypeError(f"expected N=CATEGORY, got {value!r}")
    return int(number), category.strip()


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Receipt QR scanning and invoice ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  serve [--host] [--port]    Start the HTTP API server
  init-db                    Create the invoice_items table
  list [--json]              List stored invoice items
  scan <image> [--save]      Decode a receipt QR code and send it to the workflow
  save <json-file>           Save a {date, items} invoice document
  ask <question>             Ask a question about stored spending

Configuration comes from environment variables (DB_*, DATABASE_URL, PORT,
N8N_*_WEBHOOK_URL) and an optional TOML file (--config or QRLEDGER_CONFIG).
""",
    )
    parser.add_argument("--config", default=None, help="Path to a TOML config file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API server")
    serve_parser.add_argument("--host", default=None, help="Host to bind to (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: PORT or 4000)")

    subparsers.add_parser("init-db", help="Create the invoice_items table")

    list_parser = subparsers.add_parser("list", help="List stored invoice items")
    list_parser.add_argument("--json", action="store_true", help="Print as JSON")

    scan_parser = subparsers.add_parser("scan", help="Decode a receipt QR code")
    scan_parser.add_argument("image", help="Path to receipt image")
    scan_parser.add_argument("--no-dispatch", action="store_true", help="Only decode; do not call the workflow")
    scan_parser.add_argument("--save", action="store_true", help="Save the workflow result as a new invoice")
    scan_parser.add_argument(
        "--category",
        action="append",
        default=[],
        type=category_override,
        metavar="N=CATEGORY",
        help="With --save, change the category of item N before saving (repeatable)",
    )

    save_parser = subparsers.add_parser("save", help="Save an invoice document")
    save_parser.add_argument("file", help="JSON file with {date, items}")

    ask_parser = subparsers.add_parser("ask", help="Ask a question about stored spending")
    ask_parser.add_argument("question", help="Free-text question")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.verbose:
        set_log_level(logging.DEBUG)

    try:
        config = load_config(config_path=args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}")
        return 1

    from qrledger.cli import commands

    handlers = {
        "serve": commands.cmd_serve,
        "init-db": commands.cmd_init_db,
        "list": commands.cmd_list,
        "scan": commands.cmd_scan,
        "save": commands.cmd_save,
        "ask": commands.cmd_ask,
    }
    return handlers[args.command](args, config)


if __name__ == "__main__":
    raise SystemExit(main())
