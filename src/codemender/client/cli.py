"""Terminal front-end: run one review over a directory and report the outcome."""

from __future__ import annotations

import asyncio
import logging
import signal

from codemender.agent.agent_loop import (
    CancellationToken,
    run_review,
)
from codemender.agent.gateway import BaseGateway
from codemender.common import (
    AnsiColors,
    colored_print,
    shorten,
)
from codemender.core.schema import (
    BudgetExhausted,
    ReviewOutcome,
    ReviewSummary,
    ToolCallPart,
    ToolResultPart,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_BUDGET = 3


def show_progress(call: ToolCallPart, result: ToolResultPart) -> None:
    """Print one line per executed tool call."""
    target = call.arguments.get("file_path") or call.arguments.get("directory") or ""
    if result.is_error:
        colored_print(
            f"[{call.name}] {target} failed: {shorten(str(result.result.get('message')))}",
            AnsiColors.RED,
        )
    elif call.name == "list_files":
        colored_print(
            f"[{call.name}] {target} ({len(result.result.get('files', []))} files)", AnsiColors.DIM
        )
    else:
        colored_print(f"[{call.name}] {target}", AnsiColors.GREEN)


def report_outcome(outcome: ReviewOutcome) -> int:
    """Print *outcome* and return the matching process exit code."""
    if isinstance(outcome, ReviewSummary):
        colored_print("\n📊 CODE REVIEW SUMMARY\n", AnsiColors.BLUE)
        print(outcome.summary)
        return EXIT_OK
    if isinstance(outcome, BudgetExhausted):
        colored_print(f"⚠️ {outcome.message} ({outcome.steps} steps)", AnsiColors.YELLOW)
        return EXIT_BUDGET
    colored_print(f"❌ Code review failed: {outcome.reason}", AnsiColors.RED)
    return EXIT_FAILURE


async def _review(directory: str, gateway: BaseGateway, **kwargs) -> ReviewOutcome:
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        # Ctrl+C stops the review at the next step boundary.
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler not supported on this platform")
    try:
        return await run_review(
            directory, gateway, cancel_token=token, on_tool_result=show_progress, **kwargs
        )
    finally:
        await gateway.aclose()


def run_cli(directory: str, gateway: BaseGateway, **kwargs) -> int:
    """Run the review over *directory* and return a process exit code."""
    colored_print(f"🔍 Reviewing project: {directory}", AnsiColors.YELLOW)
    outcome = asyncio.run(_review(directory, gateway, **kwargs))
    return report_outcome(outcome)
