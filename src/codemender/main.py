"""
codemender entry point.

This file handles startup concerns (arg-parsing, env setup, logging) and launches the appropriate
interface (a one-off review in the terminal, or the HTTP API).
"""

import argparse
import logging
import os
import sys

from codemender.agent.gateway import (
    GatewayConfigError,
    load_gateway,
)
from codemender.client.cli import (
    EXIT_CONFIG,
    EXIT_FAILURE,
    run_cli,
)
from codemender.common import (
    AnsiColors,
    colored_print,
)
from codemender.config import (
    SECRET_FIELDS,
    settings,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stdout,
    )
    # Request logs from the HTTP client are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Review and fix a project with an LLM")
    parser.add_argument(
        "directory",
        nargs="?",
        default=os.getcwd(),
        help="Project directory to review (default: current directory)",
    )
    parser.add_argument(
        "--mode",
        choices=["review", "api"],
        type=str.lower,
        default="review",
        help="Run one review in the terminal, or serve the REST API (default: review)",
    )
    parser.add_argument(
        "--gateway",
        choices=["gemini", "openai", "anthropic"],
        type=str.lower,
        default=settings.GATEWAY,
        help="Model provider (default from env: %(default)s)",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=settings.MAX_STEPS,
        help="Maximum model round-trips (default from env: %(default)s)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.GATEWAY_TIMEOUT,
        help="Seconds allowed per model round-trip (default from env: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the codemender application.

    Returns the process exit code: 0 for a summary, 1 for a failed review, 2 for a startup or
    configuration error and 3 when the step budget ran out.
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.max_steps < 1:
        parser.error("--max-steps must be at least 1")

    # Override settings with command-line arguments
    settings.LOG_LEVEL = args.log_level
    settings.GATEWAY = args.gateway

    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting codemender [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude=SECRET_FIELDS))

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from codemender.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return 0

    directory = os.path.abspath(args.directory)
    if not os.path.isdir(directory):
        colored_print(
            f"Please open a folder first: {args.directory} is not a directory", AnsiColors.RED
        )
        return EXIT_CONFIG

    # The credential is checked here, before the first round-trip.
    try:
        gateway = load_gateway(config=settings)
    except GatewayConfigError as exc:
        logger.error("%s", exc)
        colored_print(f"❌ {exc}", AnsiColors.RED)
        return EXIT_CONFIG

    try:
        return run_cli(
            directory,
            gateway,
            max_steps=args.max_steps,
            timeout=args.timeout,
            max_retries=settings.GATEWAY_MAX_RETRIES,
        )
    except Exception:  # pylint: disable=broad-except
        logger.exception("Code review failed")
        colored_print("❌ Code review failed", AnsiColors.RED)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
