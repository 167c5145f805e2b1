"""Pointmarket CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

load_dotenv(Path.cwd() / ".env")

from pointmarket import __version__
from pointmarket.config import get_settings
from pointmarket.engine import MarketEngine
from pointmarket.exceptions import MarketError
from pointmarket.storage import TableStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Pointmarket Configuration
# Secrets (Logfire token, bootstrap password) belong in .env, not here.

market:
  price_increment: 5
  flat_payout: 100
  default_points: 1000

auth:
  min_password_length: 4

server:
  host: 127.0.0.1
  port: 3000
  max_body_bytes: 1000000
"""


def cmd_init(args: argparse.Namespace) -> int:
    """Create the data directory, config template and tables."""
    try:
        settings = get_settings()
        data_dir = settings.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        MarketEngine(TableStore(data_dir), settings).bootstrap()

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print(f"1. Log in as '{settings.bootstrap.admin_username}' and change the password")
        print("2. Review data/config.yaml if needed")
        print("3. Run 'python -m pointmarket serve' to start the API\n")
        return 0

    except (OSError, MarketError) as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Pointmarket Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Market:")
        print(f"  Price Increment: {settings.market.price_increment}")
        print(f"  Flat Payout: {settings.market.flat_payout}")
        print(f"  Starting Points: {settings.market.default_points}\n")

        print("Auth:")
        print(f"  Min Password Length: {settings.auth.min_password_length}")
        print(f"  Hash Iterations: {settings.auth.hash_iterations:,}\n")

        print("Server:")
        print(f"  Listen: {settings.server.host}:{settings.server.port}")
        print(f"  Max Body: {settings.server.max_body_bytes:,} bytes")
        print(f"  Allowed Origins: {', '.join(settings.server.allowed_origins)}\n")

        print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1


def cmd_status(args: argparse.Namespace) -> int:
    """Summarise accounts and events on disk."""
    try:
        settings = get_settings()
        engine = MarketEngine(TableStore(settings.data_dir), settings)

        accounts = engine.accounts.load()
        events = engine.catalog.load()
        wagers = engine.ledger.load()

        print("\n=== Pointmarket Status ===\n")
        print(f"Accounts: {len(accounts)}")
        for account in sorted(accounts, key=lambda a: a.points, reverse=True)[:5]:
            role = " (admin)" if account.is_admin else ""
            print(f"  {account.username}{role}: {account.points:,} points")

        print(f"\nEvents: {len(events)}")
        for status in ("open", "closed", "resolved"):
            print(f"  {status.title()}: {sum(1 for e in events if e.status == status)}")

        print(f"\nBets: {len(wagers)}\n")
        return 0

    except MarketError as e:
        logger.error(f"Failed to read status: {e}")
        print(f"\n❌ Failed to read status: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    import uvicorn

    from pointmarket.api import create_app

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = get_settings()
    print(f"\n=== Pointmarket {__version__} ===\n")
    print(f"Data Directory: {settings.data_dir}")
    print(f"Listening on http://{settings.server.host}:{settings.server.port}\n")

    # A single worker process: the engine's writer lock is per-process.
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Pointmarket: points-based yes/no wagering market",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Pointmarket {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory, config and tables",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_status = subparsers.add_parser(
        "status",
        help="Display accounts, events and bets summary",
    )
    parser_status.set_defaults(func=cmd_status)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Start the HTTP API",
    )
    parser_serve.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
