"""Command-line interface for hapke."""

import argparse
import json
import sys

from . import __version__
from .catalog import DEFAULT_CATALOG
from .config import Settings
from .db import Database
from .errors import HapkeError
from .lifecycle import OrderLifecycle
from .log import setup_logging
from .order_store import OrderRepository
from .queries import OrderQueries

DEMO_VENDOR_ID = "demo-vendor"


def get_settings_and_repository() -> tuple[Settings, OrderRepository]:
    """Get settings from the environment and a repository on a ready database."""
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    database = Database(settings.database_url)
    database.create_all()
    return settings, OrderRepository(database)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the database tables."""
    try:
        settings = Settings.from_env()
        Database(settings.database_url).create_all()
        print(f"Initialized database at {settings.database_url}")
        return 0

    except HapkeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_seed(args: argparse.Namespace) -> int:
    """Register a demo vendor with the default catalog as its menu."""
    try:
        settings, repository = get_settings_and_repository()
        vendor_id = args.vendor_id or settings.fallback_vendor_id or DEMO_VENDOR_ID

        repository.add_vendor(vendor_id, args.name, menu=DEFAULT_CATALOG)

        print(f"Seeded vendor {vendor_id} ({args.name}) with {len(DEFAULT_CATALOG)} menu items")
        if not settings.fallback_vendor_id:
            print(f"Hint: export DEMO_VENDOR_ID={vendor_id} to use it as fallback vendor")
        return 0

    except HapkeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_tick(args: argparse.Namespace) -> int:
    """Run one lifecycle pass now."""
    try:
        settings, repository = get_settings_and_repository()
        lifecycle = OrderLifecycle(repository, settings.thresholds)
        result = lifecycle.trigger_now()

        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            print(f"Advanced {result.total} order(s)")
            print(f"  -> PREPARING:  {result.preparing}")
            print(f"  -> ON_THE_WAY: {result.on_the_way}")
            print(f"  -> DELIVERED:  {result.delivered}")
        return 0

    except HapkeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders(args: argparse.Namespace) -> int:
    """List orders of a vendor or a customer."""
    try:
        settings, repository = get_settings_and_repository()
        queries = OrderQueries(repository, settings.thresholds)

        if args.vendor:
            orders = queries.list_vendor_orders(args.vendor, limit=args.limit)
        elif args.user:
            orders = queries.list_customer_orders(args.user)
        else:
            print("Error: pass --vendor or --user", file=sys.stderr)
            return 1

        if args.json:
            print(json.dumps(orders, indent=2))
            return 0

        if not orders:
            print("No orders found.")
            return 0

        print(f"Orders ({len(orders)}):")
        for order in orders:
            number = order.get("orderNumber") or order.get("orderId")
            print(
                f"  {number}  {order['status']:<10}  "
                f"EUR {order['total']:.2f}  eta {order['etaMinutes']} min"
            )
        return 0

    except HapkeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        settings = Settings.from_env()
        print("Starting hapke API server...")
        print(f"Database: {settings.database_url}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "hapke.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=1,  # One process, one ticker
        )
        return 0

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="hapke",
        description="Hapke order backend: orders, payments and delivery status.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init-db
    subparsers.add_parser("init-db", help="Create the database tables")

    # seed
    seed_parser = subparsers.add_parser("seed", help="Register a demo vendor and menu")
    seed_parser.add_argument(
        "--vendor-id", help="Vendor ID (default: DEMO_VENDOR_ID or 'demo-vendor')"
    )
    seed_parser.add_argument("--name", "-n", default="Hapke Demo", help="Vendor name")

    # tick
    tick_parser = subparsers.add_parser("tick", help="Advance eligible orders now")
    tick_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # orders
    orders_parser = subparsers.add_parser("orders", help="List orders")
    owner = orders_parser.add_mutually_exclusive_group()
    owner.add_argument("--vendor", "-v", help="Vendor ID")
    owner.add_argument("--user", "-u", help="Customer ID")
    orders_parser.add_argument(
        "--limit", type=int, default=50, help="Max vendor orders (default: 50)"
    )
    orders_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "init-db": cmd_init_db,
        "seed": cmd_seed,
        "tick": cmd_tick,
        "orders": cmd_orders,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
