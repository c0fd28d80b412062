"""Main review loop for codemender."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import (
    Callable,
    Optional,
)

from codemender.agent.gateway import (
    BaseGateway,
    GatewayError,
    GatewayTimeoutError,
)
from codemender.agent.tool_executor import dispatch
from codemender.core.conversation import ConversationState
from codemender.core.schema import (
    BudgetExhausted,
    GatewayResponse,
    ReviewFailure,
    ReviewOutcome,
    ReviewSummary,
    ToolCallPart,
    ToolResultPart,
)
from codemender.tools import (
    TOOL_REGISTRY,
    ToolRegistry,
)

logger = logging.getLogger(__name__)

MAX_STEPS = 15


class ReviewCancelled(Exception):
    """Raised inside the loop when the cancellation token has been set."""


class CancellationToken:
    """Flag the host can set (from any thread) to stop a running review."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ReviewCancelled()


@dataclass
class StepBudget:
    """Counts model round-trips; one step per round-trip however many tools it requested."""

    maximum: int = MAX_STEPS
    used: int = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.maximum

    def consume(self) -> int:
        self.used += 1
        return self.used


ProgressCallback = Callable[[ToolCallPart, ToolResultPart], None]


# ---------------------------------------------------------------------------
# Review Session
# ---------------------------------------------------------------------------
class ReviewSession:
    """
    Drive one review-and-fix conversation over *directory*.

    The session sends the whole conversation to *gateway*, runs the tools the model asks for in the
    order it asked for them, appends each call and its result, and repeats until the model answers
    without tool calls or *max_steps* round-trips have been made.  :meth:`run` always returns one
    of :class:`ReviewSummary`, :class:`BudgetExhausted` or :class:`ReviewFailure`.
    """

    def __init__(
        self,
        directory: str,
        gateway: BaseGateway,
        registry: ToolRegistry = TOOL_REGISTRY,
        *,
        max_steps: int = MAX_STEPS,
        timeout: float | None = None,
        max_retries: int = 0,
        cancel_token: CancellationToken | None = None,
        on_tool_result: Optional[ProgressCallback] = None,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.directory = directory
        self.gateway = gateway
        self.registry = registry
        self.timeout = timeout
        self.max_retries = max_retries
        self.cancel_token = cancel_token or CancellationToken()
        self.on_tool_result = on_tool_result
        self.system_instruction = gateway.SYSTEM_INSTRUCTION
        self.history = ConversationState.for_review(directory)
        self.budget = StepBudget(maximum=max_steps)

    async def run(self) -> ReviewOutcome:
        logger.info("Reviewing project: %s", self.directory)
        try:
            while not self.budget.exhausted:
                self.cancel_token.raise_if_cancelled()
                response = await self._round_trip()
                step = self.budget.consume()

                if response.is_terminal:
                    if not response.text or not response.text.strip():
                        logger.error("Model returned neither tool calls nor text (step %d)", step)
                        return ReviewFailure(
                            reason="Model returned an empty response.", steps=step
                        )
                    logger.info("Review finished after %d step(s)", step)
                    return ReviewSummary(summary=response.text, steps=step)

                logger.info(
                    "Step %d/%d: model requested %d tool call(s): %s",
                    step,
                    self.budget.maximum,
                    len(response.tool_calls),
                    [call.name for call in response.tool_calls],
                )
                for call in response.tool_calls:
                    self.cancel_token.raise_if_cancelled()
                    part = self.history.append_tool_call(call.name, call.args, call.id)
                    result = await dispatch(part, self.registry)
                    self.history.append_tool_result(result)
                    if self.on_tool_result is not None:
                        self.on_tool_result(part, result)

        except ReviewCancelled:
            logger.warning("Review cancelled after %d step(s)", self.budget.used)
            return ReviewFailure(reason="cancelled", steps=self.budget.used)
        except GatewayError as exc:
            logger.error("Gateway failure: %s", exc)
            return ReviewFailure(reason=str(exc), steps=self.budget.used)

        logger.warning("Step budget of %d exhausted without a final summary", self.budget.maximum)
        return BudgetExhausted(steps=self.budget.used)

    async def _round_trip(self) -> GatewayResponse:
        """Call the gateway once, retrying up to ``max_retries`` times on timeout."""
        tools = self.registry.describe()
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    self.gateway.generate(self.history, self.system_instruction, tools),
                    timeout=self.timeout,
                )
            except (asyncio.TimeoutError, GatewayTimeoutError) as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise GatewayTimeoutError(
                        f"Model round-trip timed out after {attempt} attempt(s)"
                    ) from exc
                logger.warning(
                    "Model round-trip timed out, retrying (%d/%d)", attempt, self.max_retries
                )
                self.cancel_token.raise_if_cancelled()


async def run_review(
    directory: str,
    gateway: BaseGateway,
    registry: ToolRegistry = TOOL_REGISTRY,
    **kwargs,
) -> ReviewOutcome:
    """Run a :class:`ReviewSession` over *directory* and return its outcome."""
    session = ReviewSession(directory, gateway, registry, **kwargs)
    return await session.run()
