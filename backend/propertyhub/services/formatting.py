"""Display strings for prices and dates, in the Hungarian admin and Spanish public styles."""

import math
from datetime import date, datetime, timezone
from typing import Any

NBSP = "\u00a0"

SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)

PRICE_ON_REQUEST = "Precio a consultar"


def to_number(value: Any, default: float | int = 0) -> float | int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and not math.isfinite(value):
        return default
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def _group(number: float | int, separator: str, decimal: str, min_grouping: int) -> str:
    negative = number < 0
    number = abs(number)
    rounded = round(number, 3)
    whole = int(rounded)
    fraction = f"{rounded - whole:.3f}"[2:].rstrip("0")

    digits = str(whole)
    if len(digits) >= 3 + min_grouping:
        groups = []
        while len(digits) > 3:
            groups.insert(0, digits[-3:])
            digits = digits[:-3]
        groups.insert(0, digits)
        digits = separator.join(groups)

    text = digits + (decimal + fraction if fraction else "")
    return "-" + text if negative else text


def format_number_hu(number: float | int) -> str:
    return _group(number, NBSP, ",", 1)


def format_number_es(number: float | int) -> str:
    # Spanish only groups numbers of five or more digits.
    return _group(number, ".", ",", 2)


def parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d")
    except ValueError:
        return None


def format_date_hu(value: Any) -> str | None:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return f"{parsed.year}. {parsed.month:02d}. {parsed.day:02d}."


def format_date_es_long(value: Any) -> str | None:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return f"{parsed.day} de {SPANISH_MONTHS[parsed.month - 1]} de {parsed.year}"


def admin_formatted_price(price: Any, currency: str | None) -> str:
    return f"{format_number_hu(to_number(price))} {currency or 'EUR'}"


def public_formatted_price(price: Any, currency: str | None = "EUR") -> str:
    number = to_number(price, 0)
    if number > 0:
        return f"{format_number_es(number)} {currency or 'EUR'}"
    return PRICE_ON_REQUEST
