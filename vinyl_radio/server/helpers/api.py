"""Helpers for dealing with the commands exposed on the Vinyl Radio API."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Coroutine
from dataclasses import MISSING, dataclass
from enum import Enum
from types import NoneType, UnionType
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

from vinyl_radio.common.helpers.util import camel_to_snake
from vinyl_radio.common.models.errors import InvalidDataError
from vinyl_radio.constants import ROOT_LOGGER_NAME

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.api")

_F = TypeVar("_F", bound=Callable[..., Any])


@dataclass
class APICommandHandler:
    """Model for an API command handler."""

    command: str
    signature: inspect.Signature
    type_hints: dict[str, Any]
    target: Callable[..., Coroutine[Any, Any, Any] | Any]

    @classmethod
    def parse(cls, command: str, func: Callable[..., Any]) -> APICommandHandler:
        """Parse APICommandHandler by providing a function."""
        return APICommandHandler(
            command=command,
            signature=inspect.signature(func),
            type_hints=get_type_hints(func),
            target=func,
        )

    async def execute(self, args: dict[str, Any] | None) -> Any:
        """Parse the (raw) arguments and execute the command."""
        result = self.target(**parse_arguments(self.signature, self.type_hints, args))
        if inspect.isawaitable(result):
            result = await result
        return result


def api_command(command: str) -> Callable[[_F], _F]:
    """Decorate a function as API route/command."""

    def decorate(func: _F) -> _F:
        func.api_cmd = command  # type: ignore[attr-defined]
        return func

    return decorate


def parse_arguments(
    func_sig: inspect.Signature,
    func_types: dict[str, Any],
    args: dict | None,
    strict: bool = False,
) -> dict[str, Any]:
    """Parse (and convert) incoming arguments to correct types."""
    # the api accepts both camelCase and snake_case argument names
    args = {camel_to_snake(key): value for key, value in (args or {}).items()}
    if strict:
        for key in args:
            if key not in func_sig.parameters:
                raise InvalidDataError(f"Invalid parameter: '{key}'")
    final_args = {}
    for name, param in func_sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        value = args.get(name)
        default = MISSING if param.default is inspect.Parameter.empty else param.default
        final_args[name] = parse_value(name, value, func_types[name], default)
    return final_args


def parse_value(name: str, value: Any, value_type: Any, default: Any = MISSING) -> Any:
    """Try to parse a value from raw (json) data and type annotations."""
    if isinstance(value, dict) and hasattr(value_type, "from_dict"):
        try:
            return value_type.from_dict(value)
        except (LookupError, TypeError, ValueError) as err:
            raise InvalidDataError(f"Invalid value for {name}: {err}") from err
    if value is None and default is not MISSING:
        return default
    if value is None and value_type is NoneType:
        return None
    origin = get_origin(value_type)
    if origin in (tuple, list):
        return origin(
            parse_value(name, subvalue, get_args(value_type)[0])
            for subvalue in value
            if subvalue is not None
        )
    if origin is dict:
        subvalue_type = get_args(value_type)[1]
        return {
            key: parse_value(f"{name}.{key}", subvalue, subvalue_type)
            for key, subvalue in value.items()
        }
    if origin is Union or origin is UnionType:
        # try all possible types
        sub_value_types = get_args(value_type)
        for sub_arg_type in sub_value_types:
            if value is None and sub_arg_type is NoneType:
                return value
            try:
                return parse_value(name, value, sub_arg_type)
            except (KeyError, TypeError, ValueError, InvalidDataError):
                pass
        msg = (
            f"Value {value} of type {type(value)} is invalid for {name}, "
            f"expected value of type {value_type}"
        )
        raise InvalidDataError(msg)
    if value_type is Any:
        return value
    if value is None:
        msg = f"`{name}` of type `{value_type}` is required."
        raise InvalidDataError(msg)

    if isinstance(value_type, type) and issubclass(value_type, Enum):
        try:
            return value_type(value)
        except ValueError as err:
            raise InvalidDataError(f"Invalid value {value} for {name}") from err
    if value_type is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if value_type is int and isinstance(value, str) and value.isnumeric():
        return int(value)
    if not isinstance(value, value_type):
        msg = (
            f"Value {value} of type {type(value)} is invalid for {name}, "
            f"expected value of type {value_type}"
        )
        raise InvalidDataError(msg)
    return value
