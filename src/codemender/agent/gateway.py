"""
Model gateways for codemender.

This module is the only place that *directly* calls an LLM.  Everything else (review loop, tools,
conversation state) stays model-agnostic and talks to a :class:`BaseGateway`.

We support three back-ends out of the box:

1. **Google Gemini** via the Generative Language REST API (``httpx``).
2. **OpenAI** via the ``openai`` SDK with native function calling.
3. **Anthropic** via the ``anthropic`` SDK with native tool use.

Additional providers can be added by subclassing :class:`BaseGateway` and registering via
:func:`register_gateway`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterator,
    List,
    Sequence,
    Tuple,
    Type,
)

import httpx
from pydantic import ValidationError

from codemender.config import Settings
from codemender.core.conversation import ConversationState
from codemender.core.schema import (
    GatewayResponse,
    Part,
    Role,
    TextPart,
    ToolCall,
    ToolCallPart,
    ToolDescriptor,
    ToolResultPart,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class GatewayError(RuntimeError):
    """Base for every failure talking to the model service."""


class GatewayConfigError(GatewayError):
    """Unknown gateway name or missing credential.  Raised before the first round-trip."""


class GatewayTimeoutError(GatewayError):
    """A round-trip did not complete in time."""


class GatewayRequestError(GatewayError):
    """The service rejected the request or could not be reached (HTTP, auth, quota)."""


class GatewayResponseError(GatewayError):
    """The service answered with something we cannot interpret."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_GATEWAY_REGISTRY: dict[str, Type["BaseGateway"]] = {}


def register_gateway(name: str) -> Callable:
    """Decorator to register a gateway class under *name*."""

    def wrapper(cls: Type["BaseGateway"]) -> Type["BaseGateway"]:
        _GATEWAY_REGISTRY[name] = cls
        return cls

    return wrapper


def load_gateway(name: str | None = None, config: Settings | None = None) -> "BaseGateway":
    """
    Factory that returns a gateway built from *config*.

    Fallback order for the provider name:
    1. *name* arg
    2. ``config.GATEWAY``

    Raises
    ------
    GatewayConfigError
        If the name is not registered or the provider's credential is missing.
    """
    if config is None:
        from codemender.config import settings as config  # pylint: disable=import-outside-toplevel

    target = (name or config.GATEWAY).lower()
    cls = _GATEWAY_REGISTRY.get(target)
    if cls is None:
        raise GatewayConfigError(f"Gateway '{target}' is not registered.")
    return cls.from_settings(config)


def _require(value: str | None, env_name: str) -> str:
    if not value:
        raise GatewayConfigError(f"Missing credential: set {env_name} in the environment or .env")
    return value


def _tool_arguments(provider: str, name: Any, raw: Any) -> Dict[str, Any]:
    """
    Arguments of a model tool call as a dict.  Anything else (``null``, a list, a bare string) is
    logged and replaced by ``{}``: the tool then rejects the call and the model gets to retry.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.error("%s sent non-object arguments for tool '%s': %r", provider, name, raw)
        return {}
    return raw


def _iter_parts(history: ConversationState) -> Iterator[Tuple[Role, Part, str]]:
    """
    Yield ``(role, part, call_id)`` for every part in *history*.

    Providers that pair calls and results by id need one even when the model did not supply it;
    a result reuses the id of the call right before it.
    """
    last_id = ""
    for index, turn in enumerate(history):
        for part in turn.parts:
            if isinstance(part, ToolCallPart):
                last_id = part.call_id or f"call_{index}"
                yield turn.role, part, last_id
            elif isinstance(part, ToolResultPart):
                yield turn.role, part, part.call_id or last_id
            else:
                yield turn.role, part, ""


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseGateway(ABC):
    """Abstract gateway: conversation + instructions + tools -> final text or tool calls."""

    SYSTEM_INSTRUCTION: ClassVar[
        str
    ] = """\
You are an expert code reviewer.
Use tools to:
1. List files
2. Read files
3. Fix real issues
4. Write corrected code
When finished, return ONLY a text summary.
"""

    @classmethod
    @abstractmethod
    def from_settings(cls, config: Settings) -> "BaseGateway":
        """Build the gateway from application settings, checking its credential."""

    @abstractmethod
    async def generate(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> GatewayResponse:
        """Run one model round-trip."""

    async def aclose(self) -> None:
        """Release network resources held by the gateway."""


# ---------------------------------------------------------------------------
# Gemini (REST via httpx)
# ---------------------------------------------------------------------------
def _gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Gemini spells JSON schema types in upper case (``OBJECT``, ``STRING``...)."""
    out: Dict[str, Any] = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            out[key] = value.upper()
        elif key == "properties" and isinstance(value, dict):
            out[key] = {prop: _gemini_schema(sub) for prop, sub in value.items()}
        elif key == "items" and isinstance(value, dict):
            out[key] = _gemini_schema(value)
        else:
            out[key] = value
    return out


def to_gemini_contents(history: ConversationState) -> List[Dict[str, Any]]:
    """Convert the conversation into Gemini ``contents``."""
    contents: List[Dict[str, Any]] = []
    for role, part, _ in _iter_parts(history):
        gemini_role = "model" if role is Role.RESPONDER else "user"
        if isinstance(part, TextPart):
            payload: Dict[str, Any] = {"text": part.text}
        elif isinstance(part, ToolCallPart):
            payload = {"functionCall": {"name": part.name, "args": part.arguments}}
        else:
            payload = {"functionResponse": {"name": part.name, "response": {"result": part.result}}}
        contents.append({"role": gemini_role, "parts": [payload]})
    return contents


def parse_gemini_response(data: Any) -> GatewayResponse:
    """Turn a ``generateContent`` JSON body into a :class:`GatewayResponse`."""
    if not isinstance(data, dict):
        raise GatewayResponseError(f"Gemini returned an unexpected body: {str(data)[:200]}")
    try:
        return _parse_gemini_candidates(data)
    except (ValidationError, AttributeError, TypeError) as e:
        raise GatewayResponseError(f"Gemini returned a malformed response: {e}") from e


def _parse_gemini_candidates(data: Dict[str, Any]) -> GatewayResponse:
    candidates = data.get("candidates") or []
    if not candidates:
        reason = (data.get("promptFeedback") or {}).get("blockReason", "no candidates returned")
        raise GatewayResponseError(f"Gemini returned no answer: {reason}")

    parts = (candidates[0].get("content") or {}).get("parts") or []
    texts: List[str] = []
    calls: List[ToolCall] = []
    for part in parts:
        if "functionCall" in part:
            call = part["functionCall"]
            if not call.get("name"):
                raise GatewayResponseError(f"Gemini function call without a name: {call}")
            calls.append(
                ToolCall(
                    name=call["name"],
                    args=_tool_arguments("Gemini", call["name"], call.get("args")),
                    id=call.get("id"),
                )
            )
        elif "text" in part and not part.get("thought"):
            texts.append(part["text"])
    return GatewayResponse(text="".join(texts) or None, tool_calls=calls)


@register_gateway("gemini")
class GeminiGateway(BaseGateway):
    """Gemini gateway talking to the Generative Language REST API with httpx."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        endpoint: str = "https://generativelanguage.googleapis.com/v1beta",
        max_output_tokens: int = 8192,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self.max_output_tokens = max_output_tokens
        self._client = httpx.AsyncClient(
            base_url=endpoint,
            headers={"x-goog-api-key": api_key},
            transport=transport,
            timeout=None,  # the review loop owns the per-call timeout
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "GeminiGateway":
        return cls(
            api_key=_require(config.GOOGLE_API_KEY, "GOOGLE_API_KEY"),
            model=config.GEMINI_MODEL,
            endpoint=config.GEMINI_ENDPOINT,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        )

    def build_payload(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": to_gemini_contents(history),
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": {"maxOutputTokens": self.max_output_tokens},
        }
        if tools:
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": tool.name,
                            "description": tool.description,
                            "parameters": _gemini_schema(tool.parameters),
                        }
                        for tool in tools
                    ]
                }
            ]
        return payload

    async def generate(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> GatewayResponse:
        payload = self.build_payload(history, system_instruction, tools)
        try:
            resp = await self._client.post(f"/models/{self.model}:generateContent", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(f"Gemini request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise GatewayRequestError(
                f"Gemini returned HTTP {e.response.status_code}: {e.response.text[:500]}"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayRequestError(f"Error calling Gemini endpoint: {e}") from e
        except ValueError as e:
            raise GatewayResponseError(f"Gemini returned invalid JSON: {e}") from e

        logger.debug("Gemini gateway response: %s", data)
        return parse_gemini_response(data)

    async def aclose(self) -> None:
        await self._client.aclose()


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------
def to_openai_messages(history: ConversationState, system_instruction: str) -> List[Dict[str, Any]]:
    """Convert the conversation into Chat Completions ``messages``."""
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system_instruction}]
    for role, part, call_id in _iter_parts(history):
        if isinstance(part, TextPart):
            messages.append(
                {"role": "assistant" if role is Role.RESPONDER else "user", "content": part.text}
            )
        elif isinstance(part, ToolCallPart):
            messages.append(
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": part.name,
                                "arguments": json.dumps(part.arguments),
                            },
                        }
                    ],
                }
            )
        else:
            messages.append(
                {"role": "tool", "tool_call_id": call_id, "content": json.dumps(part.result)}
            )
    return messages


@register_gateway("openai")
class OpenAIGateway(BaseGateway):
    """OpenAI gateway using native function calling."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini", max_output_tokens: int = 8192):
        import openai  # pylint: disable=import-outside-toplevel

        self._openai = openai
        self._client = openai.AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls, config: Settings) -> "OpenAIGateway":
        return cls(
            api_key=_require(config.OPENAI_API_KEY, "OPENAI_API_KEY"),
            model=config.OPENAI_MODEL,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        )

    async def generate(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> GatewayResponse:
        openai = self._openai
        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in tools
            ]
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=to_openai_messages(history, system_instruction),
                max_tokens=self.max_output_tokens,
                temperature=0.2,
                **kwargs,
            )
        except openai.APITimeoutError as e:
            raise GatewayTimeoutError(f"OpenAI request timed out: {e}") from e
        except openai.OpenAIError as e:
            raise GatewayRequestError(f"Error calling OpenAI: {e}") from e

        if not resp.choices:
            raise GatewayResponseError("OpenAI returned no choices")
        message = resp.choices[0].message
        logger.debug("OpenAI gateway response: %s", message)
        try:
            calls: List[ToolCall] = []
            for tc in message.tool_calls or []:
                try:
                    args = json.loads(tc.function.arguments or "{}")
                except json.JSONDecodeError as e:
                    # The tool will reject the empty arguments and the model gets to retry.
                    logger.error(
                        "Failed to parse tool arguments for '%s': %s", tc.function.name, e
                    )
                    args = {}
                args = _tool_arguments("OpenAI", tc.function.name, args)
                calls.append(ToolCall(name=tc.function.name, args=args, id=tc.id))
            return GatewayResponse(text=message.content, tool_calls=calls)
        except (ValidationError, AttributeError, TypeError) as e:
            raise GatewayResponseError(f"OpenAI returned a malformed response: {e}") from e

    async def aclose(self) -> None:
        await self._client.close()


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
def to_anthropic_messages(history: ConversationState) -> List[Dict[str, Any]]:
    """Convert the conversation into Messages API ``messages``."""
    messages: List[Dict[str, Any]] = []
    for role, part, call_id in _iter_parts(history):
        if isinstance(part, TextPart):
            block: Dict[str, Any] = {"type": "text", "text": part.text}
        elif isinstance(part, ToolCallPart):
            block = {"type": "tool_use", "id": call_id, "name": part.name, "input": part.arguments}
        else:
            block = {
                "type": "tool_result",
                "tool_use_id": call_id,
                "content": json.dumps(part.result),
                "is_error": part.is_error,
            }
        messages.append(
            {"role": "assistant" if role is Role.RESPONDER else "user", "content": [block]}
        )
    return messages


@register_gateway("anthropic")
class AnthropicGateway(BaseGateway):
    """Anthropic Claude gateway using native tool use."""

    def __init__(
        self, api_key: str, model: str = "claude-3-5-haiku-latest", max_output_tokens: int = 8192
    ):
        import anthropic  # pylint: disable=import-outside-toplevel

        self._anthropic = anthropic
        self._client = anthropic.AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls, config: Settings) -> "AnthropicGateway":
        return cls(
            api_key=_require(config.ANTHROPIC_API_KEY, "ANTHROPIC_API_KEY"),
            model=config.ANTHROPIC_MODEL,
            max_output_tokens=config.MAX_OUTPUT_TOKENS,
        )

    async def generate(
        self,
        history: ConversationState,
        system_instruction: str,
        tools: Sequence[ToolDescriptor],
    ) -> GatewayResponse:
        anthropic = self._anthropic
        kwargs: Dict[str, Any] = {}
        if tools:
            kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in tools
            ]
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_output_tokens,
                system=system_instruction,
                messages=to_anthropic_messages(history),
                temperature=0.2,
                **kwargs,
            )
        except anthropic.APITimeoutError as e:
            raise GatewayTimeoutError(f"Anthropic request timed out: {e}") from e
        except anthropic.AnthropicError as e:
            raise GatewayRequestError(f"Error calling Anthropic: {e}") from e

        logger.debug("Anthropic gateway response: %s", response.content)
        texts: List[str] = []
        calls: List[ToolCall] = []
        try:
            # Handle different content block types from Anthropic API
            for block in response.content:
                if block.type == "text":
                    texts.append(block.text)
                elif block.type == "tool_use":
                    args = _tool_arguments("Anthropic", block.name, block.input)
                    calls.append(ToolCall(name=block.name, args=args, id=block.id))
            return GatewayResponse(text="".join(texts) or None, tool_calls=calls)
        except (ValidationError, AttributeError, TypeError) as e:
            raise GatewayResponseError(f"Anthropic returned a malformed response: {e}") from e

    async def aclose(self) -> None:
        await self._client.close()
