"""
Utilidades reutilizables: dinero, texto y parámetros de consulta.
"""

from __future__ import annotations

import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

CENTS = Decimal("0.01")


def to_decimal(value: object, default: str = "0") -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(default)


def money(value: Decimal | int | str) -> Decimal:
    return to_decimal(value).quantize(CENTS)


def normalize_text(value: str | None) -> str:
    """
    Normaliza texto para comparaciones: trim, minúsculas y sin acentos.

    Args:
        value: Texto original (puede ser None)

    Returns:
        str: Texto normalizado, vacío si no hay contenido
    """
    if not value or not value.strip():
        return ""
    decomposed = unicodedata.normalize("NFD", value.strip().lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return unicodedata.normalize("NFC", stripped)


def parse_positive_int(value: str | None, default: int, max_value: int) -> int:
    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    if parsed < 1:
        return default
    return min(parsed, max_value)


def parse_iso_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None
