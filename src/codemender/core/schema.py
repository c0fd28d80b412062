"""
Schema definitions for gateway <-> driver <-> tool messages.

These data models serve as the contract between the model gateway, the review loop, and the
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Tuple,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Role(str, Enum):
    """Which side of the conversation produced a turn."""

    REQUESTER = "requester"  # the user and the tools answering on its behalf
    RESPONDER = "responder"  # the model


# ---------------------------------------------------------------------------
# Parts
# ---------------------------------------------------------------------------
class TextPart(BaseModel):
    """Free text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class ToolCallPart(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_call"] = "tool_call"
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: Optional[str] = Field(None, description="Provider id pairing the call with its result")


class ToolResultPart(BaseModel):
    """The payload a tool returned for a :class:`ToolCallPart`."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_result"] = "tool_result"
    name: str
    result: Dict[str, Any]
    call_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        """True when the tool reported a failure."""
        return bool(self.result.get("error"))


Part = Annotated[Union[TextPart, ToolCallPart, ToolResultPart], Field(discriminator="kind")]


class Turn(BaseModel):
    """One exchange unit in the conversation log.  Never mutated once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    parts: Tuple[Part, ...]


# ---------------------------------------------------------------------------
# Tools and gateway contract
# ---------------------------------------------------------------------------
class ToolDescriptor(BaseModel):
    """Advertised description of a registered tool."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Registered tool name")
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the keyword arguments",
    )


class ToolCall(BaseModel):
    """A call that the model wants the driver to execute."""

    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the tool")
    id: Optional[str] = None


class GatewayResponse(BaseModel):
    """What one model round-trip produced: final text or tool calls."""

    text: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return not self.tool_calls


# ---------------------------------------------------------------------------
# Session outcomes
# ---------------------------------------------------------------------------
class ReviewSummary(BaseModel):
    """The model finished and produced a summary."""

    status: Literal["summary"] = "summary"
    summary: str
    steps: int


class BudgetExhausted(BaseModel):
    """The step budget ran out before the model produced a summary."""

    status: Literal["budget_exhausted"] = "budget_exhausted"
    steps: int
    message: str = "Step budget exhausted before the model produced a final summary."


class ReviewFailure(BaseModel):
    """The session aborted."""

    status: Literal["failure"] = "failure"
    reason: str
    steps: int = 0


ReviewOutcome = Annotated[
    Union[ReviewSummary, BudgetExhausted, ReviewFailure], Field(discriminator="status")
]
