"""Append-only conversation log shared between the review loop and the gateways."""

from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
)

from codemender.core.schema import (
    Role,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    Turn,
)


class ConversationState:
    """
    Ordered sequence of :class:`Turn` objects.

    Turns can only be appended; the order they were appended in is the order the model sees them.
    The review loop appends a responder turn holding one ``ToolCallPart`` and then, before anything
    else, a requester turn holding the matching ``ToolResultPart``.  :meth:`is_paired` checks that.
    """

    def __init__(self) -> None:
        self._turns: List[Turn] = []

    @classmethod
    def for_review(cls, directory: str) -> "ConversationState":
        """Seed a new conversation with the review request for *directory*."""
        state = cls()
        state.append_text(Role.REQUESTER, f"Review and fix code in: {directory}")
        return state

    # -- appending ---------------------------------------------------------
    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        return turn

    def append_text(self, role: Role, text: str) -> Turn:
        return self.append(Turn(role=role, parts=(TextPart(text=text),)))

    def append_tool_call(
        self, name: str, arguments: Dict[str, Any], call_id: Optional[str] = None
    ) -> ToolCallPart:
        part = ToolCallPart(name=name, arguments=arguments, call_id=call_id)
        self.append(Turn(role=Role.RESPONDER, parts=(part,)))
        return part

    def append_tool_result(self, part: ToolResultPart) -> ToolResultPart:
        self.append(Turn(role=Role.REQUESTER, parts=(part,)))
        return part

    # -- reading -----------------------------------------------------------
    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def tool_calls(self) -> List[ToolCallPart]:
        """Every tool call the model has made so far, in order."""
        return [
            part
            for turn in self._turns
            for part in turn.parts
            if isinstance(part, ToolCallPart)
        ]

    def is_paired(self) -> bool:
        """
        Return True if every tool call is immediately followed by exactly one matching result.

        A call is matched by a requester turn whose only part is a ``ToolResultPart`` with the same
        tool name (and the same ``call_id`` when the call carries one).
        """
        turns = self._turns
        for idx, turn in enumerate(turns):
            for part in turn.parts:
                if isinstance(part, ToolResultPart):
                    prev = turns[idx - 1] if idx > 0 else None
                    if prev is None or not any(isinstance(p, ToolCallPart) for p in prev.parts):
                        return False
                if not isinstance(part, ToolCallPart):
                    continue
                if turn.role is not Role.RESPONDER or len(turn.parts) != 1:
                    return False
                if idx + 1 >= len(turns):
                    return False
                reply = turns[idx + 1]
                if reply.role is not Role.REQUESTER or len(reply.parts) != 1:
                    return False
                result = reply.parts[0]
                if not isinstance(result, ToolResultPart) or result.name != part.name:
                    return False
                if part.call_id is not None and result.call_id != part.call_id:
                    return False
        return True
