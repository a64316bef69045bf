from __future__ import annotations

from decimal import Decimal


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = Decimal(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_usd(value: Decimal | str) -> str:
    """Format a numeric value as US$ X,XXX.XX."""
    d = Decimal(value)
    return f"US$ {d:,.2f}"


def format_percent(value: Decimal | str | int) -> str:
    """Format a percentage Brazilian-style: 1.65 -> '1,65%', 14 -> '14%'."""
    d = Decimal(value).normalize()
    text = f"{d:f}".replace(".", ",")
    return f"{text}%"


def format_stage_duration(days: int) -> str:
    """Human-readable estimate for a stage duration in days."""
    if days == 0:
        return "Imediato"
    if days == 1:
        return "1 dia"
    if days < 7:
        return f"{days} dias"
    if days < 30:
        weeks = int(days / 7 + 0.5)
        return "1 semana" if weeks == 1 else f"{weeks} semanas"
    months = int(days / 30 + 0.5)
    return "1 mês" if months == 1 else f"{months} meses"
