"""Dispatches tool calls registered in ``codemender.tools`` and wraps errors."""

import asyncio
import logging
from typing import (
    Any,
    Dict,
)

from pydantic import ValidationError

from codemender.core.schema import (
    ToolCallPart,
    ToolResultPart,
)
from codemender.tools import (
    TOOL_REGISTRY,
    ToolNotFoundError,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


def execute_tool(
    name: str, args: Dict[str, Any] | None = None, registry: ToolRegistry = TOOL_REGISTRY
) -> Dict[str, Any]:
    """
    Look up *name* in *registry* and invoke it with *args*.

    Parameters
    ----------
    name:
        The registered tool name.
    args:
        Keyword arguments for the tool function.  They are checked against its signature
        before the call, without coercion.  If *None*, an empty dict is assumed.
    registry:
        Where to look the tool up (the default filesystem registry if omitted).

    Returns
    -------
    dict
        Whatever the tool function returns.

    Raises
    ------
    ToolExecutionError
        If the tool is missing, the arguments do not fit its signature or its invocation raises
        an exception.
    """

    if args is None:
        args = {}

    try:
        tool_fn = registry.lookup(name)
        kwargs = registry.validate_arguments(name, args)
    except ToolNotFoundError as exc:
        raise ToolExecutionError(str(exc)) from exc
    except ValidationError as exc:
        logger.debug("Rejected arguments for tool '%s': %s", name, args)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc

    try:
        logger.debug("Executing tool '%s' with args=%s", name, kwargs)
        return tool_fn(**kwargs)
    except TypeError as exc:
        # Argument mismatch: give the caller a clean exception.
        logger.exception("Argument error while executing tool '%s'", name)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc


async def dispatch(call: ToolCallPart, registry: ToolRegistry = TOOL_REGISTRY) -> ToolResultPart:
    """
    Run *call* off the event loop and wrap its return value in a :class:`ToolResultPart`.

    Tool failures of any kind come back as an error payload, so the caller can hand them to the
    model and keep going.  Errors the tool reports itself are logged the same way as the ones
    raised while running it.
    """
    try:
        result = await asyncio.to_thread(execute_tool, call.name, call.arguments, registry)
    except ToolExecutionError as exc:
        logger.warning("%s", exc)
        result = {"error": True, "message": str(exc)}
    else:
        if isinstance(result, dict) and result.get("error"):
            logger.warning("Tool '%s' reported an error: %s", call.name, result.get("message"))
    if not isinstance(result, dict):
        result = {"result": result}
    return ToolResultPart(name=call.name, result=result, call_id=call.call_id)
