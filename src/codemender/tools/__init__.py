"""
Tool registry for codemender.

This module provides a registry of tools the model may request, and a decorator to add tools to it.
The tools are functions that are called with keyword arguments and return a JSON-serialisable dict.
The filesystem tools are registered on the default :data:`TOOL_REGISTRY` when this package is
imported.
"""

import inspect
import logging
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Type,
    get_type_hints,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    create_model,
)

from codemender.core.schema import ToolDescriptor

logger = logging.getLogger(__name__)

_JSON_TYPES: Dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


class ToolNotFoundError(LookupError):
    """Raised when a tool name has no registered capability."""


def describe_function(name: str, fn: Callable) -> ToolDescriptor:
    """Build a :class:`ToolDescriptor` from the signature and docstring of *fn*."""
    sig = inspect.signature(fn)
    type_hints = get_type_hints(fn)
    properties: Dict[str, Dict[str, str]] = {}
    required: List[str] = []
    for param_name, param in sig.parameters.items():
        param_type = type_hints.get(param_name, str)
        properties[param_name] = {"type": _JSON_TYPES.get(param_type, "string")}
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    doc = inspect.getdoc(fn) or ""
    return ToolDescriptor(
        name=name,
        description=doc.split("\n\n", 1)[0].replace("\n", " "),
        parameters={"type": "object", "properties": properties, "required": required},
    )


def arguments_model(name: str, fn: Callable) -> Type[BaseModel]:
    """
    Build a strict pydantic model for the keyword arguments of *fn*.

    Values are never coerced: a model that sends ``3`` where the signature says ``str`` gets a
    validation error instead of an integer reaching ``open()`` as a file descriptor.  Unknown
    argument names are rejected as well.
    """
    type_hints = get_type_hints(fn)
    fields: Dict[str, Any] = {}
    for param_name, param in inspect.signature(fn).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[param_name] = (type_hints.get(param_name, Any), default)
    return create_model(
        f"{name}_arguments",
        __config__=ConfigDict(strict=True, extra="forbid"),
        **fields,
    )


class ToolRegistry:
    """
    Mapping from tool name to an executable capability and its advertised descriptor.

    Registration order is preserved and is the order :meth:`describe` advertises tools in.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, Callable[..., Dict[str, Any]]] = {}
        self._descriptors: Dict[str, ToolDescriptor] = {}
        self._arguments: Dict[str, Type[BaseModel]] = {}

    def register(self, name: str) -> Callable:
        """
        Register a tool function with the given name.
        The name must be unique and is used to look up the function in the registry.  The function
        must accept keyword arguments and return a dict.

        The function is registered as a decorator, so it can be used like this:
            @registry.register("my_tool")
            def my_tool_function(arg1: str) -> dict:
                \"\"\"What the tool does (first paragraph is advertised to the model).\"\"\"
                return {"value": arg1}

        Parameters
        ----------
        name: str
            The name of the tool.
        Returns
        -------
        Callable
            A decorator that registers the function with the given name.
        Raises
        ------
        ValueError
            If a function with the same name is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")
        logger.debug("Registering tool '%s'", name)

        def wrapper(fn: Callable) -> Callable:
            self._tools[name] = fn
            self._descriptors[name] = describe_function(name, fn)
            self._arguments[name] = arguments_model(name, fn)
            return fn

        return wrapper

    def validate_arguments(self, name: str, args: Any) -> Dict[str, Any]:
        """
        Check *args* against the signature of tool *name* and return the keyword arguments to call
        it with.  Raises :class:`pydantic.ValidationError` on a type mismatch, a missing required
        argument or an unknown one, and :class:`ToolNotFoundError` for an unknown tool.
        """
        try:
            model = self._arguments[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool '{name}' is not registered.") from None
        validated = model.model_validate(args)
        return {field: getattr(validated, field) for field in validated.model_fields_set}

    def lookup(self, name: str) -> Callable[..., Dict[str, Any]]:
        """Return the capability registered as *name*, or raise :class:`ToolNotFoundError`."""
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool '{name}' is not registered.") from None

    def describe(self) -> List[ToolDescriptor]:
        """Descriptors of every registered tool, in registration order."""
        return list(self._descriptors.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


TOOL_REGISTRY = ToolRegistry()
"""Default registry holding the filesystem tools."""

register_tool = TOOL_REGISTRY.register

# Registers list_files / read_file / write_file on TOOL_REGISTRY.
from codemender.tools import filesystem  # noqa: E402,F401  pylint: disable=wrong-import-position
