from __future__ import annotations

from decimal import Decimal


def _swap_separators(formatted: str) -> str:
    return formatted.replace(",", "X").replace(".", ",").replace("X", ".")


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = Decimal(value)
    return f"R$ {_swap_separators(f'{d:,.2f}')}"


def format_number(value: Decimal | str, places: int = 2) -> str:
    """Format a number with Brazilian separators (1.234,56)."""
    d = Decimal(value)
    return _swap_separators(f"{d:,.{places}f}")


def format_percent(value: Decimal | str) -> str:
    """Format a percentage as 12,50%."""
    return f"{format_number(value)}%"
