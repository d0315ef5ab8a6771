"""
Validación de cupones de descuento.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone

from ..models import Coupon, Sale

INVALID_COUPON_MESSAGE = "El cupón ingresado no es válido o ha expirado"

CONSUMING_SALE_STATUSES = [
    choice for choice in Sale.Status.values if choice not in {Sale.Status.CANCELED, Sale.Status.REVERSED}
]


def coupon_is_valid(coupon: Coupon, at: datetime | None = None) -> bool:
    now = at or timezone.now()
    if not coupon.active:
        return False
    if coupon.starts_at and coupon.starts_at > now:
        return False
    if coupon.ends_at and coupon.ends_at < now:
        return False
    if coupon.max_uses is not None:
        used = coupon.sales.filter(status__in=CONSUMING_SALE_STATUSES).count()
        if used >= coupon.max_uses:
            return False
    return True


def find_valid_coupon(code: str | None, at: datetime | None = None) -> Coupon:
    """
    Busca un cupón vigente por código (sin distinguir mayúsculas).

    Raises:
        ValidationError: Si el código no existe o no está vigente
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        raise ValidationError(INVALID_COUPON_MESSAGE)
    coupon = Coupon.objects.filter(code=normalized).first()
    if coupon is None or not coupon_is_valid(coupon, at=at):
        raise ValidationError(INVALID_COUPON_MESSAGE)
    return coupon


def discount_for(coupon: Coupon | None, subtotal: Decimal) -> Decimal:
    """Descuento efectivo: nunca mayor al subtotal"""
    if coupon is None or not coupon_is_valid(coupon):
        return Decimal("0.00")
    return min(coupon.discount_amount, subtotal)
