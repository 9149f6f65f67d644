"""Date and time formula functions.

Dates are spreadsheet serial numbers: whole days since 1899-12-30, with
the time of day as the fractional part.  Arguments may also be ISO text
(``"2024-01-15"`` or ``"2024-01-15 08:30"``).
"""

from __future__ import annotations

import calendar
import datetime
import math
from typing import Any

from gridcalc.formulas.errors import CellError, FormulaFunctionError
from gridcalc.formulas.values import flatten, is_number, parse_number
from gridcalc.functions.args import int_arg, number_arg, scalar_arg, scalars
from gridcalc.functions.registry import register_function

# Excel epoch: 1899-12-30, so serial 1 = 1900-01-01 for dates after
# February 1900
_EPOCH = datetime.datetime(1899, 12, 30)
_SECONDS_PER_DAY = 86400


def to_serial(value: datetime.date | datetime.datetime) -> float | int:
    """Serial number of a date (int) or datetime (float)."""
    if isinstance(value, datetime.datetime):
        delta = value - _EPOCH
        return delta.days + delta.seconds / _SECONDS_PER_DAY
    return (value - _EPOCH.date()).days


def from_serial(serial: float) -> datetime.datetime:
    """Datetime for a serial number, rounded to the nearest second."""
    days = math.floor(serial)
    seconds = round((serial - days) * _SECONDS_PER_DAY)
    return _EPOCH + datetime.timedelta(days=days, seconds=seconds)


def _serial_arg(value: Any) -> float:
    """Coerce a date argument to a serial number.

    Raises:
        FormulaFunctionError: For text that is neither numeric nor ISO.
    """
    value = scalar_arg(value)
    if isinstance(value, str) and not isinstance(value, CellError):
        if parse_number(value) is None and value.strip():
            try:
                parsed = datetime.datetime.fromisoformat(value.strip())
            except ValueError:
                raise FormulaFunctionError("DATE", f"Cannot parse date: {value!r}")
            return to_serial(parsed)
    serial = number_arg(value)
    if serial < 0:
        raise FormulaFunctionError("DATE", f"Invalid serial number: {serial}")
    return serial


def _date_arg(value: Any) -> datetime.date:
    return from_serial(_serial_arg(value)).date()


def _add_months(day: datetime.date, months: int) -> datetime.date:
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    last = calendar.monthrange(year, month + 1)[1]
    return datetime.date(year, month + 1, min(day.day, last))


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


@register_function("TODAY", 0, 0)
def fn_today() -> int:
    return to_serial(datetime.date.today())


@register_function("NOW", 0, 0)
def fn_now() -> float:
    return to_serial(datetime.datetime.now().replace(microsecond=0))


@register_function("DATE", 3, 3)
@scalars
def fn_date(year: Any, month: Any, day: Any) -> Any:
    """DATE(year, month, day): months and days outside their range roll over.

    ``DATE(2024, 13, 1)`` is 2025-01-01 and ``DATE(2024, 3, 0)`` is the last
    day of February.  Years 0-1899 are offset by 1900.
    """
    y, m, d = int_arg(year), int_arg(month), int_arg(day)
    if 0 <= y < 1900:
        y += 1900
    y += (m - 1) // 12
    m = (m - 1) % 12 + 1
    try:
        result = datetime.date(y, m, 1) + datetime.timedelta(days=d - 1)
    except (ValueError, OverflowError):
        return CellError.NUM
    if result < _EPOCH.date():
        return CellError.NUM
    return to_serial(result)


@register_function("TIME", 3, 3)
@scalars
def fn_time(hour: Any, minute: Any, second: Any) -> Any:
    """TIME(hour, minute, second): fraction of a day, wrapping past midnight."""
    total = int_arg(hour) * 3600 + int_arg(minute) * 60 + int_arg(second)
    if total < 0:
        return CellError.NUM
    return (total % _SECONDS_PER_DAY) / _SECONDS_PER_DAY


# ---------------------------------------------------------------------------
# Parts
# ---------------------------------------------------------------------------


@register_function("YEAR", 1, 1)
@scalars
def fn_year(value: Any) -> int:
    return _date_arg(value).year


@register_function("MONTH", 1, 1)
@scalars
def fn_month(value: Any) -> int:
    return _date_arg(value).month


@register_function("DAY", 1, 1)
@scalars
def fn_day(value: Any) -> int:
    return _date_arg(value).day


@register_function("HOUR", 1, 1)
@scalars
def fn_hour(value: Any) -> int:
    return from_serial(_serial_arg(value)).hour


@register_function("MINUTE", 1, 1)
@scalars
def fn_minute(value: Any) -> int:
    return from_serial(_serial_arg(value)).minute


@register_function("SECOND", 1, 1)
@scalars
def fn_second(value: Any) -> int:
    return from_serial(_serial_arg(value)).second


@register_function("WEEKDAY", 1, 2)
@scalars
def fn_weekday(value: Any, return_type: Any = 1) -> Any:
    """WEEKDAY(date, [type]): 1 = Sunday..Saturday, 2 = Monday..Sunday (1-7), 3 = Monday..Sunday (0-6)."""
    iso = _date_arg(value).isoweekday()  # Monday=1 .. Sunday=7
    kind = int_arg(return_type)
    if kind == 1:
        return iso % 7 + 1
    if kind == 2:
        return iso
    if kind == 3:
        return iso - 1
    return CellError.NUM


@register_function("WEEKNUM", 1, 2)
@scalars
def fn_weeknum(value: Any, return_type: Any = 1) -> Any:
    """WEEKNUM(date, [type]): week of the year; weeks start Sunday (1) or Monday (2)."""
    day = _date_arg(value)
    kind = int_arg(return_type)
    if kind not in (1, 2):
        return CellError.NUM
    jan1 = datetime.date(day.year, 1, 1)
    # Offset of Jan 1 from the start of its week
    if kind == 1:
        offset = jan1.isoweekday() % 7
    else:
        offset = jan1.isoweekday() - 1
    return ((day - jan1).days + offset) // 7 + 1


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


@register_function("EDATE", 2, 2)
@scalars
def fn_edate(start: Any, months: Any) -> int:
    """EDATE(start, months): same day *months* later, clamped to month end."""
    return to_serial(_add_months(_date_arg(start), int_arg(months)))


@register_function("EOMONTH", 2, 2)
@scalars
def fn_eomonth(start: Any, months: Any) -> int:
    """EOMONTH(start, months): last day of the month *months* away."""
    moved = _add_months(_date_arg(start).replace(day=1), int_arg(months))
    last = calendar.monthrange(moved.year, moved.month)[1]
    return to_serial(moved.replace(day=last))


@register_function("DAYS", 2, 2)
@scalars
def fn_days(end: Any, start: Any) -> int:
    return (_date_arg(end) - _date_arg(start)).days


@register_function("DATEDIF", 3, 3)
@scalars
def fn_datedif(start: Any, end: Any, unit: Any) -> Any:
    """DATEDIF(start, end, unit): difference in ``Y``, ``M``, ``D``, ``MD``, ``YM`` or ``YD``."""
    a, b = _date_arg(start), _date_arg(end)
    if a > b:
        return CellError.NUM
    u = str(unit).upper()
    months = (b.year - a.year) * 12 + (b.month - a.month)
    if b.day < a.day:
        months -= 1
    if u == "D":
        return (b - a).days
    if u == "M":
        return months
    if u == "Y":
        return months // 12
    if u == "YM":
        return months % 12
    if u == "MD":
        if b.day >= a.day:
            return b.day - a.day
        prev = _add_months(b.replace(day=1), -1)
        prev_len = calendar.monthrange(prev.year, prev.month)[1]
        return max(prev_len - a.day, 0) + b.day
    if u == "YD":
        anchor = _add_months(a, (months // 12) * 12)
        return (b - anchor).days
    return CellError.NUM


@register_function("NETWORKDAYS", 2, 3)
def fn_networkdays(start: Any, end: Any, holidays: Any = None) -> Any:
    """NETWORKDAYS(start, end, [holidays]): weekdays between two dates, inclusive."""
    for v in (scalar_arg(start), scalar_arg(end)):
        if isinstance(v, CellError):
            return v
    a, b = _date_arg(start), _date_arg(end)
    sign = 1
    if a > b:
        a, b, sign = b, a, -1
    skip: set[datetime.date] = set()
    if holidays is not None:
        for h in flatten([holidays]):
            if is_number(h) or isinstance(h, str):
                skip.add(_date_arg(h))
    count = 0
    day = a
    one = datetime.timedelta(days=1)
    while day <= b:
        if day.weekday() < 5 and day not in skip:
            count += 1
        day += one
    return sign * count
