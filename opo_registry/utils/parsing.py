"""Cell coercion shared by every extractor.

Spreadsheet cells arrive as strings, numbers, blanks, NaN (from pandas), or
sentinel tokens such as ``"N/A"``. These helpers turn them into typed
optional values. Unparseable input is data, not a fault: nothing here raises.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

logger = logging.getLogger(__name__)

# Tokens publishers use for "no value"
NULL_TOKENS = frozenset({"", "N/A", "-"})


def is_blank(value: Any) -> bool:
    """Return True for ``None``, NaN, and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def coerce_number(value: Any) -> float | None:
    """Convert a raw cell value into a float.

    Examples
    --------
    - ``""`` -> None
    - ``"N/A"`` -> None
    - ``"-"`` -> None
    - ``"12.5"`` -> 12.5
    - ``"abc"`` -> None
    - ``3`` -> 3.0

    Parameters
    ----------
    value
        Raw cell value (string, number, ``None``, or NaN).

    Returns
    -------
    float | None
        Parsed number, or None for blanks, sentinel tokens, and anything
        that does not parse.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        text = value.strip()
        if text in NULL_TOKENS:
            return None
    else:
        text = value

    try:
        result = float(text)
    except (TypeError, ValueError):
        logger.debug("Could not parse number: %r", value)
        return None

    if math.isnan(result):
        return None
    return result


def coerce_text(value: Any) -> str | None:
    """Convert a raw cell value into a stripped string.

    Integral floats lose their trailing ``.0`` (``1.0`` -> ``"1"``) because
    spreadsheet readers hand back whole numbers as floats.
    """
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def round_half_up(value: float, digits: int = 2) -> float:
    """Round with halves going up (``12.345`` -> ``12.35``).

    Parameters
    ----------
    value
        Number to round.
    digits
        Decimal places to keep.

    Returns
    -------
    float
        Rounded value.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def format_percentage(count: int, total: int) -> str:
    """Format ``count / total`` as a whole-number percentage string (``"57%"``)."""
    if total <= 0:
        return "0%"
    pct = Decimal(count * 100) / Decimal(total)
    return f"{int(pct.quantize(Decimal(1), rounding=ROUND_HALF_UP))}%"
