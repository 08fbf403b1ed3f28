# tipbot/amounts.py
from __future__ import annotations

import re

from tipbot.errors import ValidationError

_AMOUNT_RE = re.compile(r"(\d+)(?:\.(\d+))?", re.ASCII)

# transfer() takes a uint256
MAX_UNITS = 2**256 - 1
_MAX_DIGITS = len(str(MAX_UNITS))


def parse_amount(text: str | None, *, decimals: int = 18, fraction_digits: int = 0) -> int:
    """Parse a human amount into base units (10**decimals per token).

    Strict: no sign, exponent, separators or rounding. Any fractional digits
    beyond ``fraction_digits`` reject the whole amount.
    """
    raw = (text or "").strip()
    m = _AMOUNT_RE.fullmatch(raw)
    if not m:
        raise ValidationError(f"invalid amount: {raw!r}", code="bad_amount")

    whole, frac = m.group(1).lstrip("0") or "0", m.group(2) or ""
    if frac and len(frac) > min(fraction_digits, decimals):
        raise ValidationError(f"too many decimal places: {raw!r}", code="bad_amount")
    if len(whole) > _MAX_DIGITS:
        raise ValidationError("amount is too large", code="bad_amount")

    units = int(whole) * 10**decimals
    if frac:
        units += int(frac.ljust(decimals, "0"))
    if units > MAX_UNITS:
        raise ValidationError("amount is too large", code="bad_amount")
    if units == 0:
        raise ValidationError("amount must be greater than zero", code="zero_amount")
    return units


def format_amount(units: int, *, decimals: int = 18) -> str:
    """Exact decimal rendering of base units, without trailing zeros."""
    whole, frac = divmod(int(units), 10**decimals)
    frac_txt = str(frac).zfill(decimals).rstrip("0") if decimals else ""
    return f"{whole}.{frac_txt}" if frac_txt else str(whole)
