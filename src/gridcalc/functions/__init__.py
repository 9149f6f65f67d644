"""Built-in formula functions.

Importing this package registers every built-in::

    from gridcalc.functions import call_function
    call_function("SUM", [1, 2, [[3, 4]]])  # 10
"""

from gridcalc.functions import (  # noqa: F401
    fn_datetime,
    fn_logical,
    fn_lookup,
    fn_math,
    fn_statistical,
    fn_text,
)
from gridcalc.functions.registry import (
    FunctionSpec,
    call_function,
    function_names,
    get_function,
    has_function,
    register_function,
)

__all__ = [
    "FunctionSpec",
    "call_function",
    "function_names",
    "get_function",
    "has_function",
    "register_function",
]
