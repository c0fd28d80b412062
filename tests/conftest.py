"""Shared fixtures: a gateway that replays a fixed script instead of calling a model."""

import asyncio
from typing import (
    Any,
    Callable,
    List,
    Sequence,
    Union,
)

import pytest

from codemender.agent.gateway import BaseGateway
from codemender.core.conversation import ConversationState
from codemender.core.schema import (
    GatewayResponse,
    ToolCall,
    ToolDescriptor,
)

Step = Union[GatewayResponse, Exception, Callable[[ConversationState], GatewayResponse]]


class ScriptedGateway(BaseGateway):
    """Replays *script* one entry per round-trip; repeats the last entry once it runs out."""

    def __init__(self, script: Sequence[Step], delays: Sequence[float] = ()) -> None:
        self.script = list(script)
        self.delays = list(delays)
        self.calls = 0
        self.paired_at_call: List[bool] = []
        self.turns_at_call: List[int] = []
        self.tools_seen: List[str] = []
        self.closed = False

    @classmethod
    def from_settings(cls, config: Any) -> "ScriptedGateway":
        return cls([GatewayResponse(text="done")])

    async def generate(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> GatewayResponse:
        index = self.calls
        self.calls += 1
        self.paired_at_call.append(history.is_paired())
        self.turns_at_call.append(len(history))
        self.tools_seen = [tool.name for tool in tools]
        if index < len(self.delays) and self.delays[index]:
            await asyncio.sleep(self.delays[index])
        step = self.script[min(index, len(self.script) - 1)]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(history)
        return step

    async def aclose(self) -> None:
        self.closed = True


def tool_calls(*calls: tuple) -> GatewayResponse:
    """``tool_calls(("read_file", {"file_path": "x"}), ...)`` -> a tool-call response."""
    return GatewayResponse(tool_calls=[ToolCall(name=name, args=args) for name, args in calls])


@pytest.fixture
def gateway_factory() -> Callable[..., ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture
def calls_response() -> Callable[..., GatewayResponse]:
    return tool_calls
