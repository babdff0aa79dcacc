"""Currency display helpers shared by notices and the confirmation view."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

_ARABIC_INDIC = str.maketrans("0123456789,", "٠١٢٣٤٥٦٧٨٩٬")


def format_currency(amount: Union[Decimal, int, float, str], currency: str = "SYP", locale: str = "en") -> str:
    """Render whole currency units with grouping, e.g. ``SYP 1,500``.

    Fractions are rounded half-up; the wallet currency has no minor unit.
    Locale ``ar`` swaps in Arabic-Indic digits and separators.
    """
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    digits = f"{abs(value):,}"
    if locale.lower().startswith("ar"):
        return f"{sign}{digits.translate(_ARABIC_INDIC)} {currency}"
    return f"{sign}{currency} {digits}"
