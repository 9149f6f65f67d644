"""Central registry for built-in formula functions."""

from __future__ import annotations

import logging
from typing import Any, Callable, NamedTuple

from gridcalc.formulas.errors import CellError, FormulaFunctionError
from gridcalc.logging.events import FUNCTION_RAISED, EventType, emit_warning

logger = logging.getLogger(__name__)


class FunctionSpec(NamedTuple):
    """A registered function and its accepted argument count."""

    name: str
    fn: Callable[..., Any]
    min_args: int
    max_args: int | None


_FUNCTIONS: dict[str, FunctionSpec] = {}


def register_function(
    name: str, min_args: int = 0, max_args: int | None = None
) -> Callable:
    """Decorator that registers a formula function by name.

    The decorated callable receives the evaluated arguments positionally.
    Range arguments arrive as lists of rows.

    Args:
        name: The lookup name; stored uppercase.
        min_args: Fewest arguments accepted.
        max_args: Most arguments accepted, or None for no limit.

    Returns:
        The original function, unmodified.
    """

    def decorator(fn: Callable) -> Callable:
        key = name.upper()
        _FUNCTIONS[key] = FunctionSpec(key, fn, min_args, max_args)
        return fn

    return decorator


def get_function(name: str) -> FunctionSpec:
    """Look up a registered function.

    Args:
        name: The function name (any case).

    Returns:
        The ``FunctionSpec``.

    Raises:
        KeyError: If no function is registered under *name*.
    """
    key = name.upper()
    if key not in _FUNCTIONS:
        raise KeyError(f"Unknown function: {name!r}")
    return _FUNCTIONS[key]


def has_function(name: str) -> bool:
    return name.upper() in _FUNCTIONS


def function_names() -> list[str]:
    """Sorted names of every registered function."""
    return sorted(_FUNCTIONS)


def call_function(name: str, args: list[Any]) -> Any:
    """Invoke a registered function with already-evaluated *args*.

    Never raises for formula content: an unknown name yields ``#NAME?``,
    a wrong argument count yields ``#VALUE!`` and any exception raised by
    the implementation is logged and converted to ``#VALUE!``.
    """
    spec = _FUNCTIONS.get(name.upper())
    if spec is None:
        return CellError.NAME
    n = len(args)
    if n < spec.min_args or (spec.max_args is not None and n > spec.max_args):
        return CellError.VALUE
    try:
        return spec.fn(*args)
    except FormulaFunctionError as exc:
        logger.debug("%s rejected its arguments: %s", spec.name, exc)
        return CellError.VALUE
    except Exception as exc:
        logger.debug("%s raised %s", spec.name, exc, exc_info=True)
        emit_warning(
            EventType.function_error,
            f"{spec.name} raised {type(exc).__name__}: {exc}",
            {"function": spec.name, "arg_count": n},
            error_code=FUNCTION_RAISED,
        )
        return CellError.VALUE
