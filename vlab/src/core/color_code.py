"""
Virtual Lab Assistant - Resistor Color Codes
=============================================
Deterministic resistance → color-band conversion used to answer
"what is the color code for 4.7k?" questions without calling the LLM.

Band layout
-----------
4-band: ``[digit1, digit2, multiplier, tolerance]``
5-band: ``[digit1, digit2, digit3, multiplier, tolerance]``

Digits and non-negative multipliers share the ten-color table
(Black = 0 … White = 9).  The fractional multipliers Gold (×0.1) and
Silver (×0.01) cover 1 Ω – 9.9 Ω.  Tolerance is fixed at Gold (±5%).

Representable range is ``1 Ω ≤ ohms < 10 GΩ``; anything else (including
zero, negatives, NaN and infinities) yields ``None``.

Normalisation runs on ``decimal.Decimal`` values seeded from the float's
shortest repr, so ``4700.0`` is handled as exactly 4700 and the floor
tie-break never sees accumulated float error.

Exports:
    color_code               – ohms → {"four_band": [...], "five_band": [...]} | None
    extract_ohm_values       – free text → distinct ohm values in order
    decode_bands             – band list → ohms (inverse of color_code)
    format_ohms              – compact numeric rendering for answers
    format_color_code_line   – one answer line for a value and its bands
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation
from typing import TypedDict

# ── Color tables ───────────────────────────────────────────────────────
# Index == digit value == non-negative multiplier power.
BAND_COLORS: tuple[str, ...] = ("Black", "Brown", "Red", "Orange", "Yellow", "Green", "Blue", "Violet", "Grey", "White")

FRACTIONAL_MULTIPLIERS: dict[int, str] = {-1: "Gold", -2: "Silver"}

TOLERANCE_BAND: str = "Gold (±5%)"

MAX_OHMS: Decimal = Decimal(10) ** 10

_TEN = Decimal(10)

# ── Magnitude suffixes ─────────────────────────────────────────────────
_SUFFIX_POWERS: dict[str, int] = {"k": 3, "K": 3, "M": 6, "G": 9, "g": 9}

# Spelled-out prefixes, matched case-insensitively: kilo / kilohm, mega / megohm, giga / gigohm.
_WORD_SUFFIX_POWERS: dict[str, int] = {"kil": 3, "meg": 6, "gig": 9}

# A number not glued to a preceding word (digit groups may use commas),
# an optional suffix, then either a non-letter or "ohm".  "4-band" /
# "5 band" are band counts, not values.
_OHM_TOKEN_RE = re.compile(
    r"(?<![\w.])(?P<number>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)(?!\d|\.\d)"
    r"\s*(?P<suffix>(?i:kil(?:o|ohms?)|meg(?:a|ohms?)|gig(?:a|ohms?))|[kKMGg])?"
    r"(?=[oO]hm|[^A-Za-z]|$)"
    r"(?!\s*-?\s*(?i:bands?)\b)"
)


class ColorBands(TypedDict):
    four_band: list[str]
    five_band: list[str]


def _to_decimal(ohms: float) -> Decimal | None:
    """Return *ohms* as an exact Decimal, or None when not a positive finite number."""
    if isinstance(ohms, bool):
        return None
    try:
        value = float(ohms)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return Decimal(repr(value))


def _normalise(value: Decimal, low: Decimal, high: Decimal) -> tuple[int, int]:
    """Scale *value* into ``[low, high)`` and return ``(floored mantissa, exponent)``."""
    exponent = 0
    while value >= high:
        value /= _TEN
        exponent += 1
    while value < low:
        value *= _TEN
        exponent -= 1
    return int(value), exponent


def _multiplier_color(exponent: int) -> str | None:
    if 0 <= exponent <= 9:
        return BAND_COLORS[exponent]
    return FRACTIONAL_MULTIPLIERS.get(exponent)


def _bands(value: Decimal, significant: int) -> list[str] | None:
    """Build a band list with *significant* digit bands, or None if out of range."""
    low = _TEN ** (significant - 1)
    mantissa, exponent = _normalise(value, low, low * _TEN)

    digits = [(mantissa // 10 ** power) % 10 for power in range(significant - 1, -1, -1)]
    if any(not 0 <= digit <= 9 for digit in digits):
        return None

    multiplier = _multiplier_color(exponent)
    if multiplier is None:
        return None

    return [BAND_COLORS[digit] for digit in digits] + [multiplier, TOLERANCE_BAND]


# ── Public API ─────────────────────────────────────────────────────────

def color_code(ohms: float) -> ColorBands | None:
    """
    Convert a resistance to its 4-band and 5-band color sequences.

    Examples::

        color_code(220)   → four_band  = [Red, Red, Brown, Gold (±5%)]
                            five_band  = [Red, Red, Black, Black, Gold (±5%)]
        color_code(4700)  → four_band  = [Yellow, Violet, Red, Gold (±5%)]
        color_code(0)     → None

    Returns None when *ohms* is not finite, not positive, or outside
    ``1 Ω ≤ ohms < 10 GΩ``.
    """
    value = _to_decimal(ohms)
    if value is None or value >= MAX_OHMS:
        return None

    four_band = _bands(value, 2)
    five_band = _bands(value, 3)
    if four_band is None or five_band is None:
        return None

    return {"four_band": four_band, "five_band": five_band}


def _suffix_power(suffix: str) -> int:
    if len(suffix) > 1:
        return _WORD_SUFFIX_POWERS[suffix[:3].lower()]
    return _SUFFIX_POWERS.get(suffix, 0)


def extract_ohm_values(text: str) -> list[float]:
    """
    Pull candidate resistance values out of free text.

    ``"resistor of 4.7k and 220 ohm"`` → ``[4700.0, 220.0]``.
    Suffixes: k/K/kilo/kilohm ×10³, M/mega/megohm ×10⁶, G/g/giga/gigohm
    ×10⁹.  Thousands may be grouped with commas (``"1,000 ohm"``).
    Values are returned once each, in order of first appearance.
    """
    values: list[float] = []
    for match in _OHM_TOKEN_RE.finditer(text):
        power = _suffix_power(match.group("suffix") or "")
        try:
            value = float(Decimal(match.group("number").replace(",", "")).scaleb(power))
        except (InvalidOperation, OverflowError):
            continue
        if not math.isfinite(value):
            continue
        if value not in values:
            values.append(value)
    return values


def decode_bands(bands: list[str]) -> float:
    """Reconstruct the resistance encoded by a 4- or 5-band sequence."""
    *digit_names, multiplier_name, _tolerance = bands
    significant = 0
    for name in digit_names:
        significant = significant * 10 + BAND_COLORS.index(name)

    if multiplier_name in BAND_COLORS:
        power = BAND_COLORS.index(multiplier_name)
    else:
        power = next(p for p, name in FRACTIONAL_MULTIPLIERS.items() if name == multiplier_name)

    return float(Decimal(significant).scaleb(power))


def format_ohms(ohms: float) -> str:
    """Render *ohms* rounded to two decimals without trailing zeros (``4700``, ``4.7``)."""
    return f"{ohms:.2f}".rstrip("0").rstrip(".")


def format_color_code_line(ohms: float, bands: ColorBands) -> str:
    """``"220 Ω: 4-band: Red - Red - Brown - Gold (±5%); 5-band: …"``"""
    four = " - ".join(bands["four_band"])
    five = " - ".join(bands["five_band"])
    return f"{format_ohms(ohms)} Ω: 4-band: {four}; 5-band: {five}"
