"""
Cálculo del envío de un carrito agrupando por vendedor.

Se cobra como máximo una tarifa por vendedor; los productos de la tienda
forman un grupo propio que se resuelve solo con reglas del administrador.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..models import Cart, Vendor
from .resolver import ShippingRateResolver

logger = logging.getLogger(__name__)

STORE_GROUP_NAME = "Tienda"


@dataclass
class VendorShippingLine:
    vendor_id: int | None
    vendor_name: str
    cost: Decimal
    has_rate: bool
    source: str | None = None
    level: str | None = None

    def as_dict(self) -> dict:
        return {
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "cost": str(self.cost),
            "has_rate": self.has_rate,
            "source": self.source,
            "level": self.level,
        }


@dataclass
class ShippingQuote:
    total: Decimal = Decimal("0.00")
    lines: list[VendorShippingLine] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "total": str(self.total),
            "per_vendor": [line.as_dict() for line in self.lines],
            "messages": list(self.messages),
        }


def _distinct(vendor_ids: Iterable[int | None]) -> list[int | None]:
    seen: list[int | None] = []
    for vendor_id in vendor_ids:
        if vendor_id not in seen:
            seen.append(vendor_id)
    return seen


def quote_for_vendors(
    vendor_ids: Iterable[int | None],
    province: str | None,
    city: str | None = None,
    resolver: ShippingRateResolver | None = None,
) -> ShippingQuote:
    """
    Calcula el envío total y por vendedor.

    Args:
        vendor_ids: IDs de vendedores presentes (se eliminan repetidos; None = tienda)
        province: Provincia destino
        city: Ciudad destino (opcional)
        resolver: Resolver a reutilizar (opcional)

    Returns:
        ShippingQuote: Total, detalle por vendedor y mensajes de vendedores sin tarifa
    """
    resolver = resolver or ShippingRateResolver()
    quote = ShippingQuote()
    province_clean = (province or "").strip()
    city_clean = (city or "").strip() or None

    distinct_ids = _distinct(vendor_ids)
    names = dict(Vendor.objects.filter(id__in=[v for v in distinct_ids if v is not None]).values_list("id", "store_name"))

    for vendor_id in distinct_ids:
        vendor_name = names.get(vendor_id, STORE_GROUP_NAME) if vendor_id is not None else STORE_GROUP_NAME
        resolved = resolver.resolve(vendor_id, province_clean, city_clean)
        if resolved is not None and resolved.price >= 0:
            quote.lines.append(
                VendorShippingLine(
                    vendor_id=vendor_id,
                    vendor_name=vendor_name,
                    cost=resolved.price,
                    has_rate=True,
                    source=resolved.source,
                    level=resolved.level,
                )
            )
            quote.total += resolved.price
        else:
            quote.lines.append(
                VendorShippingLine(vendor_id=vendor_id, vendor_name=vendor_name, cost=Decimal("0.00"), has_rate=False)
            )
            destination = f"{province_clean} / {city_clean}" if city_clean else province_clean
            quote.messages.append(f"El vendedor {vendor_name} no tiene tarifa configurada para {destination}.")
            logger.warning("Vendedor %s sin tarifa para %s", vendor_id, destination)

    return quote


def cart_vendor_ids(cart: Cart | None) -> list[int | None]:
    if cart is None:
        return []
    return _distinct(cart.items.order_by("id").values_list("product__vendor_id", flat=True))


def quote_for_cart(cart: Cart | None, province: str | None, city: str | None = None) -> ShippingQuote:
    return quote_for_vendors(cart_vendor_ids(cart), province, city)
