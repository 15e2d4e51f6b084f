"""Unit conversions and missing-value handling shared by the source adapters."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Union

MS_TO_KTS = 1.94384
M_TO_FT = 3.28084
NMI_TO_MI = 1.15078
KM_TO_MI = 0.62137

MISSING_TOKENS = frozenset({"", "MM", "NAN", "NULL", "NONE", "N/A", "-"})

Number = Union[int, float]


def to_float(value: object) -> Optional[float]:
    """
    Coerce an upstream value to float.

    Missing-value sentinels (``MM``, empty strings, ``NaN``, ``None``) become ``None``,
    never zero.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        token = str(value).strip()
        if token.upper() in MISSING_TOKENS:
            return None
        try:
            number = float(token)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def convert(value: object, factor: float) -> Optional[float]:
    number = to_float(value)
    if number is None:
        return None
    return number * factor


def ms_to_knots(value: object) -> Optional[float]:
    return convert(value, MS_TO_KTS)


def meters_to_feet(value: object) -> Optional[float]:
    return convert(value, M_TO_FT)


def nautical_to_statute_miles(value: object) -> Optional[float]:
    return convert(value, NMI_TO_MI)


def km_to_statute_miles(value: object) -> Optional[float]:
    return convert(value, KM_TO_MI)


def normalize_direction(value: object) -> Optional[float]:
    """Map a compass direction into ``[0, 360)``; out-of-range readings are missing."""
    number = to_float(value)
    if number is None or number < 0 or number > 360:
        return None
    return number % 360.0


def mean_direction(values: Iterable[object]) -> Optional[float]:
    """
    Plain arithmetic mean of the readings within ``[0, 360]``, folded into ``[0, 360)``.

    Samples are averaged as reported, so 360 and 358 give 359. The fold is applied
    once to the mean, never to the individual samples.
    """
    readings = []
    for value in values:
        number = to_float(value)
        if number is not None and 0 <= number <= 360:
            readings.append(number)
    average = mean(readings)
    if average is None:
        return None
    return average % 360.0


def non_negative(value: object) -> Optional[float]:
    number = to_float(value)
    if number is None or number < 0:
        return None
    return number


def mean(values: Iterable[object]) -> Optional[float]:
    """Arithmetic mean of the non-missing values, or ``None`` when there are none."""
    numbers: List[float] = [n for n in (to_float(v) for v in values) if n is not None]
    if not numbers:
        return None
    return sum(numbers) / len(numbers)


def round_value(value: Optional[float], digits: int = 2) -> Optional[float]:
    if value is None:
        return None
    return round(value, digits)
