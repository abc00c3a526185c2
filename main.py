import argparse
import logging
import sys
from typing import List, Optional

import structlog

from config import Settings, get_settings, get_settings_for_environment
from errors import InvalidData
from ledger import Ledger
from processor import ProcessingAborted, TransactionProcessor
from records import read_rows, write_snapshots

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_ABORTED = 3


def configure_logging(settings: Settings) -> None:
    """Send structured logs to stderr; stdout carries the snapshot CSV."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
        force=True,
    )

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-replay",
        description="Replay a CSV log of transactions and print the final account balances as CSV.",
    )
    parser.add_argument("input", help="Path to the transactions CSV (type, client, tx, amount)")
    parser.add_argument("--env", choices=["development", "production", "testing"], help="Settings profile")
    parser.add_argument("--log-level", help="Override the log level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-format", choices=["json", "text"], help="Override the log format")
    parser.add_argument("--fail-fast", action="store_true", help="Stop at the first rejected transaction")
    parser.add_argument("--unsorted", action="store_true", help="Write accounts in first-seen order")
    return parser


def resolve_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings_for_environment(args.env) if args.env else get_settings()

    overrides = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.log_format:
        overrides["log_format"] = args.log_format
    if args.fail_fast:
        overrides["fail_fast"] = True
    if args.unsorted:
        overrides["sort_output"] = False

    return settings.model_copy(update=overrides) if overrides else settings


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(settings)

    logger.info("Starting transaction replay", app=settings.app_name, version=settings.app_version, input=args.input)

    ledger = Ledger()
    processor = TransactionProcessor(ledger, fail_fast=settings.fail_fast)

    try:
        with open(args.input, newline="", encoding=settings.input_encoding) as stream:
            processor.process(read_rows(stream))
    except ProcessingAborted as e:
        logger.error("Replay aborted", line=e.line, error_code=e.error.error_code, detail=e.error.message)
        return EXIT_ABORTED
    except InvalidData as e:
        logger.error("Input is not a transactions file", input=args.input, detail=e.message)
        return EXIT_INPUT_ERROR
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read input", input=args.input, error=str(e))
        return EXIT_INPUT_ERROR

    count = write_snapshots(
        ledger.snapshots(sort=settings.sort_output),
        sys.stdout,
        scale=settings.output_scale,
    )
    logger.info("Snapshot written", accounts=count)
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
