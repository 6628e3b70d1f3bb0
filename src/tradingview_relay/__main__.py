"""CLI entry point for the TradingView relay.

Usage:
    python -m tradingview_relay [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from tradingview_relay import __version__
from tradingview_relay.app import RelayApplication
from tradingview_relay.config import Settings, clear_settings_cache, get_settings
from tradingview_relay.shutdown import GracefulShutdown
from tradingview_relay.telegram.client import TelegramAPIError, TelegramClient

APP_NAME = "TradingView Relay"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

TELEGRAM_WEBHOOK_PATH = "/telegram-webhook"


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="tradingview-relay",
        description="Forward TradingView webhook alerts to Telegram chats.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tradingview_relay                          Run the relay
  python -m tradingview_relay --config-check           Validate config and exit
  python -m tradingview_relay --set-webhook https://relay.example.com
                                                       Route bot messages to this server
  python -m tradingview_relay --log-level DEBUG        Enable debug logging
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port (default: from settings)",
    )

    parser.add_argument(
        "--no-polling",
        action="store_true",
        help="Do not poll Telegram for messages (use with a webhook)",
    )

    webhook = parser.add_mutually_exclusive_group()
    webhook.add_argument(
        "--set-webhook",
        metavar="BASE_URL",
        default=None,
        help=f"Register BASE_URL{TELEGRAM_WEBHOOK_PATH} as the bot's webhook and exit",
    )
    webhook.add_argument(
        "--delete-webhook",
        action="store_true",
        help="Remove the bot's webhook and exit",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the application startup banner."""
    banner = f"""
╔══════════════════════════════════════════════════════════════╗
║   {APP_NAME:^56}   ║
║   {"v" + APP_VERSION:^56}   ║
╚══════════════════════════════════════════════════════════════╝
"""
    print(banner)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Bot Token: {summary['bot_token']}")
    print(f"  Default Chat: {summary['default_chat_id']}")
    print(f"  Relay Mode: {summary['relay_mode']}")
    print(f"  Shared Secret: {summary['shared_secret']} (auth {summary['auth']})")
    print(f"  Polling: {summary['polling']}")
    print(f"  Chat Registry: {summary['registry_path']}")
    print(f"  Port: {summary['port']}")
    print(f"  Keep-alive: {summary['keepalive']}")
    print(f"  Log Level: {summary['log_level']}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings)
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


async def manage_webhook(settings: Settings, base_url: str | None) -> int:
    """Set or delete the bot's Telegram webhook.

    Args:
        settings: Application settings.
        base_url: Public server URL to register, or None to delete the webhook.

    Returns:
        Exit code.
    """
    client = TelegramClient(
        settings.telegram.bot_token.get_secret_value(),
        api_base=settings.telegram.api_base,
    )

    try:
        me = await client.get_me()
        username = me.get("username", "unknown")
        print(f"Bot: @{username}")

        if base_url is None:
            await client.delete_webhook()
            print("Webhook removed; the relay can now poll for messages.")
            return EXIT_SUCCESS

        url = f"{base_url.rstrip('/')}{TELEGRAM_WEBHOOK_PATH}"
        await client.set_webhook(url)
    except TelegramAPIError as e:
        print(f"Telegram request failed: {e}", file=sys.stderr)
        return EXIT_ERROR

    print(f"Webhook set to: {url}")
    print(f"Open https://t.me/{username} and send /start to register your chat.")
    return EXIT_SUCCESS


async def run_relay(
    settings: Settings,
    *,
    polling: bool,
    shutdown_timeout: float = 30.0,
) -> int:
    """Run the relay until a shutdown signal arrives.

    Args:
        settings: Application settings.
        polling: Whether to run the getUpdates polling loop.
        shutdown_timeout: Maximum time for each cleanup step.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    shutdown = GracefulShutdown(timeout=shutdown_timeout)

    try:
        async with shutdown:
            app = RelayApplication(settings, polling=polling)
            shutdown.register_cleanup(app.stop)

            await app.start()
            logger.info("Relay running. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping relay...")

        return EXIT_SUCCESS
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Relay failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    if args.port is not None:
        settings = settings.model_copy(update={"port": args.port})

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    if args.set_webhook or args.delete_webhook:
        sys.exit(asyncio.run(manage_webhook(settings, args.set_webhook)))

    print_banner()

    if args.config_check:
        sys.exit(run_config_check(settings))

    print_config_summary(settings)

    polling = settings.telegram.polling_enabled and not args.no_polling
    exit_code = asyncio.run(run_relay(settings, polling=polling))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
