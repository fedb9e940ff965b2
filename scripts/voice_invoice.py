#!/usr/bin/env python3
"""
Operator CLI for the showroom voice-invoicing kernel.

Creates the schema, seeds a small demo catalog, and runs one spoken
command through the coordinator: the preview is printed, and the invoice
is posted after confirmation.

Usage:
    python3 scripts/voice_invoice.py [--db-url URL] [--config FILE] <command>

Examples:
    python3 scripts/voice_invoice.py init-db
    python3 scripts/voice_invoice.py seed
    python3 scripts/voice_invoice.py post --yes \\
        "ERP, find customer with phone 01754031344. The customer will buy \\
         AFL-SOF-103, a 2-seater made of Mahogany lacquer, light finish, \\
         with a 10% discount."

Exit codes:
    0  posted (or schema/seed done)
    1  rejected, cancelled or posting failed
    2  the phone number is not registered
"""

from __future__ import annotations

import argparse
import logging
import sys
from decimal import Decimal
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# Demo catalog
# ---------------------------------------------------------------------------
DEMO_CUSTOMERS = [
    {"phone": "01754031344", "name": "Rahim Chowdhury", "email": "rahim@example.com"},
    {"phone": "01819555010", "name": "Nusrat Jahan", "email": None},
]

DEMO_PRODUCTS = [
    {
        "code": "AFL-SOF-103",
        "name": "Aurora Sofa",
        "unit_price": Decimal("50000.00"),
        "stock_quantity": 5,
        "variant_options": {
            "seat_count": ["1", "2", "3"],
            "material": ["mahogany", "oak"],
            "finish_type": ["lacquer", "matte"],
            "finish_shade": ["light", "dark"],
        },
    },
    {
        "code": "AFL-TBL-220",
        "name": "Heritage Dining Table",
        "unit_price": Decimal("72500.00"),
        "stock_quantity": 2,
        "variant_options": {
            "material": ["teak", "oak"],
            "finish_type": ["polish"],
            "finish_shade": ["natural", "walnut"],
        },
    },
    {
        "code": "AFL-CHR-045",
        "name": "Lotus Arm Chair",
        "unit_price": Decimal("12999.50"),
        "stock_quantity": 12,
        "variant_options": {
            "material": ["oak"],
            "finish_type": ["matte"],
            "finish_shade": ["light", "dark"],
        },
    },
]


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Showroom voice-command invoicing.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (default: showroom_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (default: database.url from the configuration).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level written to stderr (default: WARNING).",
    )

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create tables and seed sequence counters.")
    sub.add_parser("seed", help="Insert the demo customers and products.")

    post = sub.add_parser("post", help="Run one spoken command.")
    post.add_argument("utterance", help="Transcribed utterance.")
    post.add_argument("--yes", action="store_true", help="Confirm without prompting.")
    post.add_argument("--employee-id", default=None, help="Employee issuing the command.")
    return parser.parse_args(argv)


def seed_demo_data(session) -> tuple[int, int]:
    """Insert demo rows that are not there yet; returns (customers, products) added."""
    from showroom_kernel.domain.dtos import CustomerDetails
    from showroom_kernel.services.customer_service import CustomerService
    from showroom_kernel.services.product_service import ProductService

    customers = CustomerService(session)
    products = ProductService(session)

    added_customers = 0
    for row in DEMO_CUSTOMERS:
        if customers.find_by_phone(row["phone"]) is None:
            customers.register(CustomerDetails(**row))
            added_customers += 1

    added_products = 0
    for row in DEMO_PRODUCTS:
        if products.find_by_code(row["code"]) is None:
            products.add_product(**row)
            added_products += 1

    return added_customers, added_products


def _post(args: argparse.Namespace, config) -> int:
    from showroom_config.bridges import build_coordinator
    from showroom_kernel.db.engine import get_session_factory
    from showroom_kernel.services.invoice_coordinator import CommandStatus

    coordinator = build_coordinator(config, get_session_factory())

    result = coordinator.open_command(args.utterance, employee_id=args.employee_id)
    if result.status == CommandStatus.AWAITING_REGISTRATION:
        print(f"Customer not registered: {result.message}")
        print("Register the customer, then repeat the command.")
        return 2
    if result.status != CommandStatus.AWAITING_CONFIRMATION:
        print(f"REJECTED [{result.error_code}]: {result.message}")
        return 1

    print(result.preview.render())

    if not args.yes:
        answer = input("Post this invoice? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            coordinator.cancel(result.command_id, "declined at prompt")
            print("Cancelled.")
            return 1

    posted = coordinator.confirm(result.command_id, result.preview.fingerprint)
    coordinator.close(timeout=5)

    if not posted.is_success:
        print(f"NOT POSTED [{posted.error_code}]: {posted.message}")
        return 1

    invoice = posted.invoice
    print(
        f"POSTED {invoice.invoice_number}: {invoice.final_amount:,} {invoice.currency}"
        + (f" (cash flow {posted.cashflow.transaction_number})" if posted.cashflow else "")
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from showroom_config import get_active_config
    from showroom_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from showroom_kernel.logging_config import configure_logging

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    init_engine_from_url(args.db_url or config.database.url, echo=config.database.echo)

    if args.command == "init-db":
        create_tables()
        print("Schema ready.")
        return 0

    if args.command == "seed":
        create_tables()
        with session_scope() as session:
            customers, products = seed_demo_data(session)
        print(f"Seeded {customers} customer(s) and {products} product(s).")
        return 0

    return _post(args, config)


if __name__ == "__main__":
    sys.exit(main())
