from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django import template
from django.conf import settings

register = template.Library()


def _number(value):
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@register.filter(name="cedis")
def cedis(value, places=2):
    """Format an amount as currency, e.g. 1234.5 -> "₵1,234.50"."""
    number = _number(value)
    if number is None:
        return "-"
    places = int(places)
    sign = "-" if number < 0 else ""
    return f"{sign}{settings.CURRENCY_SYMBOL}{abs(number):,.{places}f}"


@register.filter(name="weight")
def weight(value, unit="kg"):
    """1500 -> "1,500.0 kg"; grams keep one decimal as well."""
    number = _number(value)
    if number is None:
        return "-"
    return f"{number:,.1f} {unit}"


@register.filter(name="percentage")
def percentage(value, places=1):
    number = _number(value)
    if number is None:
        return "-"
    return f"{number:.{int(places)}f}%"
