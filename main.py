# main.py

"""Entry point for the price_engine CLI."""

import argparse
import asyncio
import logging
import sys

from price_engine.config.logging_config import setup_logging

logger = logging.getLogger("price_engine.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_engine",
        description="Product page price extraction and tracking engine.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser(
        "extract", help="Extract the current price of one URL.",
    )
    extract.add_argument("url", help="Product page URL.")
    extract.add_argument(
        "--no-render",
        action="store_false",
        dest="render",
        default=True,
        help="Skip the headless-browser fallback.",
    )
    extract.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )

    poll = sub.add_parser(
        "poll", help="Refresh all active targets on a fixed interval.",
    )
    poll.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single cycle and exit.",
    )
    poll.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between cycles (default: 300).",
    )

    refresh = sub.add_parser(
        "refresh", help="Refresh one target now and store the price.",
    )
    refresh.add_argument("target_id", type=int)

    targets = sub.add_parser("targets", help="Manage tracked targets.")
    targets_sub = targets.add_subparsers(dest="action", required=True)
    add = targets_sub.add_parser("add", help="Track a new URL.")
    add.add_argument("url")
    add.add_argument("--name", default="", help="Display name.")
    targets_sub.add_parser("list", help="List tracked targets.")
    for action in ("enable", "disable"):
        toggle = targets_sub.add_parser(
            action, help=f"{action.capitalize()} polling for a target.",
        )
        toggle.add_argument("target_id", type=int)

    history = sub.add_parser(
        "history", help="Show the price history of a target.",
    )
    history.add_argument("target_id", type=int)
    return parser


def main() -> None:
    """Route to the requested subcommand and exit with its code."""
    args = _build_parser().parse_args()
    console_level = (
        logging.INFO if args.command == "poll" else logging.WARNING
    )
    log_file = setup_logging(console_level)

    from price_engine.cli import runner

    logger.info(
        "price_engine starting (%s), log file: %s",
        runner.describe_settings(),
        log_file,
    )

    try:
        if args.command == "extract":
            exit_code = runner.cli_extract(
                args.url, args.render, args.output_format,
            )
        elif args.command == "poll":
            exit_code = asyncio.run(
                runner.run_poller(args.once, args.interval)
            )
        elif args.command == "refresh":
            exit_code = asyncio.run(runner.run_refresh(args.target_id))
        elif args.command == "targets":
            exit_code = runner.run_targets(
                args.action,
                url=getattr(args, "url", None),
                name=getattr(args, "name", ""),
                target_id=getattr(args, "target_id", None),
            )
        else:
            exit_code = runner.run_history(args.target_id)
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        raise
    finally:
        logger.info("price_engine shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
