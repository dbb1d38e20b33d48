from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

_COMPETENCIA_RE = re.compile(r"(\d{4})-(\d{2})(?:-\d{2})?")


def to_decimal(value: object) -> Decimal:
    """Coerce a row value to Decimal, mapping missing/non-numeric/NaN/inf to zero.

    Accepts Brazilian formatted strings ("1.200,50") as well as plain numbers.
    """
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float)):
        d = Decimal(str(value))
    else:
        text = str(value).strip()
        if "," in text:
            text = text.replace("R$", "").replace(".", "").replace(",", ".").strip()
        try:
            d = Decimal(text)
        except InvalidOperation:
            return Decimal(0)
    if not d.is_finite():
        return Decimal(0)
    return d


def validate_monetary(value: str, *, allow_zero: bool = False) -> Decimal:
    """Validate a monetary input and return it as a Decimal with 2 places.

    Raises ValueError for invalid or non-positive values.
    """
    text = str(value).strip()
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    try:
        d = Decimal(text)
        if not d.is_finite():
            raise InvalidOperation
    except InvalidOperation:
        raise ValueError(f"Valor numerico invalido: '{value}'") from None
    if d < 0 or (d == 0 and not allow_zero):
        raise ValueError(f"Valor deve ser positivo: '{value}'")
    return d.quantize(Decimal("0.01"))


def validate_date(value: str) -> str:
    """Validate a date string, ISO (YYYY-MM-DD) or Brazilian (DD/MM/YYYY).

    Returns the ISO form. Raises ValueError for invalid dates.
    """
    text = value.strip()
    if "/" in text and len(text) == 10:
        day, month, year = text.split("/")
        text = f"{year}-{month}-{day}"
    try:
        date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Data invalida: '{value}'. Use AAAA-MM-DD.") from None
    return text


def validate_competencia(value: str) -> str:
    """Validate a competency month (YYYY-MM, or YYYY-MM-DD truncated to the month).

    Returns the first-of-month ISO date (YYYY-MM-01).
    """
    m = _COMPETENCIA_RE.fullmatch(value.strip())
    if not m or not 1 <= int(m.group(2)) <= 12:
        raise ValueError(f"Competência invalida: '{value}'. Use AAAA-MM.")
    return f"{m.group(1)}-{m.group(2)}-01"


def validate_quantity(value: object) -> int:
    """Validate a movement quantity: a strictly positive integer."""
    try:
        qty = int(str(value).strip())
    except ValueError:
        raise ValueError(f"Quantidade invalida: '{value}'") from None
    if qty <= 0:
        raise ValueError("Quantidade deve ser maior que zero.")
    return qty
