"""Command-line interface for breadlog."""

from __future__ import annotations

import argparse
import logging
import signal
from pathlib import Path

from codegen.engine import CodegenError, check_references, generate_code
from settings.config import ConfigError
from settings.context import Context

logger = logging.getLogger("breadlog")

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CODEGEN = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="breadlog",
        description="Annotate log statements with unique, stable reference IDs.",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Report missing references without modifying files",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


def _install_signal_handlers(context: Context) -> dict[int, object]:
    """Route SIGINT/SIGTERM to the stop event; return the previous handlers."""

    def request_stop(signum, frame) -> None:
        logger.warning("Received signal %d, stopping", signum)
        context.stop_event.set()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, request_stop)
    return previous


def _handle_check(context: Context) -> int:
    result = check_references(context)
    return EXIT_OK if result.success else EXIT_CODEGEN


def _handle_generate(context: Context) -> int:
    result = generate_code(context)
    return EXIT_OK if result.success else EXIT_CODEGEN


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    config_path = Path(args.config).expanduser()
    try:
        context = Context.from_file(config_path, check_mode=args.check)
    except ConfigError as exc:
        logger.error("Failed: %s", exc)
        return EXIT_CONFIG

    previous_handlers = _install_signal_handlers(context)
    try:
        if context.check_mode:
            return _handle_check(context)
        return _handle_generate(context)
    except CodegenError as exc:
        logger.error("Failed: %s", exc)
        return EXIT_CODEGEN
    finally:
        for signum, handler in previous_handlers.items():
            if handler is None:
                continue
            signal.signal(signum, handler)


if __name__ == "__main__":
    raise SystemExit(main())
