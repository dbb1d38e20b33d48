from __future__ import annotations

from decimal import Decimal

from sismog.utils.validators import to_decimal


def format_brl(value: object) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = to_decimal(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_date(value: str | None) -> str:
    """Format an ISO date (YYYY-MM-DD) as DD/MM/YYYY; empty for None."""
    if not value:
        return ""
    year, month, day = value[:10].split("-")
    return f"{day}/{month}/{year}"


def format_competencia(value: str | None) -> str:
    """Format a competency month (YYYY-MM-01) as MM/YYYY."""
    if not value:
        return ""
    return f"{value[5:7]}/{value[:4]}"


def to_row_value(value: Decimal) -> str:
    """Serialize a Decimal for a store row (plain string, 2 places)."""
    return f"{value:.2f}"
