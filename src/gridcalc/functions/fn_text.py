"""Text formula functions."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from gridcalc.formulas.errors import CellError, FormulaFunctionError
from gridcalc.formulas.values import flatten, is_number, parse_number, to_bool, to_text
from gridcalc.functions.args import (
    int_arg,
    number_arg,
    scalar_arg,
    scalars,
    text_arg,
    wildcard_regex,
)
from gridcalc.functions.registry import register_function

_CONTROL_RE = re.compile(r"[\x00-\x1f]")

# Longest text a cell can hold.
MAX_TEXT_LENGTH = 32767


def _fixed(number: float, decimals: int) -> str:
    """Half-away-from-zero rounding to *decimals* places, as plain text."""
    decimals = max(decimals, 0)
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(repr(float(number))).quantize(quantum, rounding=ROUND_HALF_UP))


def _group(digits: str) -> str:
    whole, _, frac = digits.partition(".")
    sign = "-" if whole.startswith("-") else ""
    whole = whole.lstrip("-")
    grouped = f"{int(whole):,}" if whole else "0"
    return sign + grouped + ("." + frac if frac else "")


# ---------------------------------------------------------------------------
# Joining
# ---------------------------------------------------------------------------


@register_function("CONCATENATE", 1)
@scalars
def fn_concatenate(*args: Any) -> str:
    return "".join(to_text(a) for a in args)


@register_function("CONCAT", 1)
def fn_concat(*args: Any) -> Any:
    """CONCAT(val1, ...): like CONCATENATE, but ranges are flattened."""
    parts: list[str] = []
    for v in flatten(args):
        if isinstance(v, CellError):
            return v
        parts.append(to_text(v))
    return "".join(parts)


@register_function("TEXTJOIN", 3)
def fn_textjoin(delimiter: Any, ignore_empty: Any, *args: Any) -> Any:
    """TEXTJOIN(delimiter, ignore_empty, val1, ...)."""
    delim = text_arg(delimiter)
    skip = to_bool(scalar_arg(ignore_empty))
    parts: list[str] = []
    for v in flatten(args):
        if isinstance(v, CellError):
            return v
        text = to_text(v)
        if skip and text == "":
            continue
        parts.append(text)
    return delim.join(parts)


# ---------------------------------------------------------------------------
# Slicing and case
# ---------------------------------------------------------------------------


@register_function("LEN", 1, 1)
@scalars
def fn_len(value: Any) -> int:
    return len(to_text(value))


@register_function("LEFT", 1, 2)
@scalars
def fn_left(value: Any, count: Any = 1) -> Any:
    n = int_arg(count)
    if n < 0:
        return CellError.VALUE
    return to_text(value)[:n]


@register_function("RIGHT", 1, 2)
@scalars
def fn_right(value: Any, count: Any = 1) -> Any:
    n = int_arg(count)
    if n < 0:
        return CellError.VALUE
    text = to_text(value)
    return text[max(len(text) - n, 0):] if n else ""


@register_function("MID", 3, 3)
@scalars
def fn_mid(value: Any, start: Any, count: Any) -> Any:
    """MID(text, start, count): *start* is 1-based."""
    s, n = int_arg(start), int_arg(count)
    if s < 1 or n < 0:
        return CellError.VALUE
    return to_text(value)[s - 1:s - 1 + n]


@register_function("TRIM", 1, 1)
@scalars
def fn_trim(value: Any) -> str:
    """TRIM(text): strip ends and collapse inner runs of spaces."""
    return re.sub(r" +", " ", to_text(value).strip(" "))


@register_function("UPPER", 1, 1)
@scalars
def fn_upper(value: Any) -> str:
    return to_text(value).upper()


@register_function("LOWER", 1, 1)
@scalars
def fn_lower(value: Any) -> str:
    return to_text(value).lower()


@register_function("PROPER", 1, 1)
@scalars
def fn_proper(value: Any) -> str:
    """PROPER(text): capitalize the first letter of every word."""
    return re.sub(
        r"[A-Za-z]+",
        lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(),
        to_text(value),
    )


# ---------------------------------------------------------------------------
# Searching and replacing
# ---------------------------------------------------------------------------


@register_function("FIND", 2, 3)
@scalars
def fn_find(needle: Any, haystack: Any, start: Any = 1) -> Any:
    """FIND(find, within, [start]): case-sensitive 1-based position."""
    s = int_arg(start)
    text = to_text(haystack)
    if s < 1 or s > len(text) + 1:
        return CellError.VALUE
    idx = text.find(to_text(needle), s - 1)
    return CellError.VALUE if idx < 0 else idx + 1


@register_function("SEARCH", 2, 3)
@scalars
def fn_search(needle: Any, haystack: Any, start: Any = 1) -> Any:
    """SEARCH(find, within, [start]): case-insensitive, with ``*`` / ``?`` wildcards."""
    s = int_arg(start)
    text = to_text(haystack)
    if s < 1 or s > len(text) + 1:
        return CellError.VALUE
    m = wildcard_regex(to_text(needle), anchored=False).search(text, s - 1)
    return CellError.VALUE if m is None else m.start() + 1


@register_function("REPLACE", 4, 4)
@scalars
def fn_replace(value: Any, start: Any, count: Any, new_text: Any) -> Any:
    s, n = int_arg(start), int_arg(count)
    if s < 1 or n < 0:
        return CellError.VALUE
    text = to_text(value)
    return text[:s - 1] + to_text(new_text) + text[s - 1 + n:]


@register_function("SUBSTITUTE", 3, 4)
@scalars
def fn_substitute(value: Any, old: Any, new: Any, instance: Any = None) -> Any:
    """SUBSTITUTE(text, old, new, [instance]): replace all, or only the n-th match."""
    text, old_text, new_text = to_text(value), to_text(old), to_text(new)
    if old_text == "":
        return text
    if instance is None:
        return text.replace(old_text, new_text)
    n = int_arg(instance)
    if n < 1:
        return CellError.VALUE
    idx = -1
    for _ in range(n):
        idx = text.find(old_text, idx + 1)
        if idx < 0:
            return text
    return text[:idx] + new_text + text[idx + len(old_text):]


@register_function("REPT", 2, 2)
@scalars
def fn_rept(value: Any, times: Any) -> Any:
    n = int_arg(times)
    text = to_text(value)
    if n < 0 or len(text) * n > MAX_TEXT_LENGTH:
        return CellError.VALUE
    return text * n


@register_function("EXACT", 2, 2)
@scalars
def fn_exact(a: Any, b: Any) -> bool:
    return to_text(a) == to_text(b)


@register_function("CLEAN", 1, 1)
@scalars
def fn_clean(value: Any) -> str:
    """CLEAN(text): drop ASCII control characters."""
    return _CONTROL_RE.sub("", to_text(value))


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


@register_function("T", 1, 1)
def fn_t(value: Any) -> Any:
    v = scalar_arg(value)
    if isinstance(v, CellError):
        return v
    return v if isinstance(v, str) else ""


@register_function("N", 1, 1)
def fn_n(value: Any) -> Any:
    v = scalar_arg(value)
    if isinstance(v, CellError):
        return v
    if isinstance(v, bool):
        return 1 if v else 0
    return v if is_number(v) else 0


def _parse_numeric_text(text: str, decimal_sep: str = ".", group_sep: str = ",") -> Any:
    s = text.strip()
    percent = s.endswith("%")
    if percent:
        s = s[:-1]
    if group_sep:
        s = s.replace(group_sep, "")
    if decimal_sep != ".":
        s = s.replace(decimal_sep, ".")
    s = s.replace("$", "")
    num = parse_number(s)
    if num is None:
        return CellError.VALUE
    return num / 100 if percent else num


@register_function("VALUE", 1, 1)
@scalars
def fn_value(value: Any) -> Any:
    """VALUE(text): number from text; accepts ``%``, ``$`` and thousands commas."""
    if is_number(value):
        return value
    return _parse_numeric_text(to_text(value))


@register_function("NUMBERVALUE", 1, 3)
@scalars
def fn_numbervalue(value: Any, decimal_sep: Any = ".", group_sep: Any = ",") -> Any:
    return _parse_numeric_text(to_text(value), to_text(decimal_sep), to_text(group_sep))


@register_function("TEXT", 2, 2)
@scalars
def fn_text(value: Any, fmt: Any) -> Any:
    """TEXT(value, format): ``0``, ``0.00``, ``#,##0.0`` and ``0%`` style formats."""
    pattern = to_text(fmt)
    if not is_number(value):
        return to_text(value)
    decimals = 0
    if "." in pattern:
        decimals = len(re.sub(r"[^0#]", "", pattern.split(".", 1)[1]))
    number = value * 100 if "%" in pattern else value
    out = _fixed(number, decimals)
    if "," in pattern:
        out = _group(out)
    if "%" in pattern:
        out += "%"
    return out


@register_function("FIXED", 1, 3)
@scalars
def fn_fixed(value: Any, decimals: Any = 2, no_commas: Any = False) -> Any:
    out = _fixed(number_arg(value), int_arg(decimals))
    return out if to_bool(no_commas) else _group(out)


@register_function("DOLLAR", 1, 2)
@scalars
def fn_dollar(value: Any, decimals: Any = 2) -> Any:
    """DOLLAR(number, [decimals]): currency text; negatives in parentheses."""
    number = number_arg(value)
    formatted = "$" + _group(_fixed(abs(number), int_arg(decimals)))
    return f"({formatted})" if number < 0 else formatted


@register_function("CHAR", 1, 1)
@scalars
def fn_char(value: Any) -> Any:
    code = int_arg(value)
    if not 1 <= code <= 255:
        return CellError.VALUE
    return chr(code)


@register_function("CODE", 1, 1)
@scalars
def fn_code(value: Any) -> Any:
    text = to_text(value)
    if not text:
        return CellError.VALUE
    return ord(text[0])


@register_function("UNICHAR", 1, 1)
@scalars
def fn_unichar(value: Any) -> Any:
    code = int_arg(value)
    if not 1 <= code <= 0x10FFFF:
        return CellError.VALUE
    return chr(code)


@register_function("UNICODE", 1, 1)
@scalars
def fn_unicode(value: Any) -> Any:
    text = to_text(value)
    if not text:
        raise FormulaFunctionError("UNICODE", "Empty text")
    return ord(text[0])
