"""
Resolución de tarifas de envío por vendedor y destino.

Prioridad: (vendedor + ciudad) -> (vendedor + provincia) -> (admin + ciudad)
-> (admin + provincia). Solo cuentan reglas activas y la comparación de
provincia/ciudad ignora mayúsculas, espacios y acentos.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError

from ..core.utils import normalize_text
from ..models import ShippingRate

logger = logging.getLogger(__name__)

SOURCE_VENDOR = "vendor"
SOURCE_ADMIN = "admin"
LEVEL_CITY = "city"
LEVEL_PROVINCE = "province"

MIN_PROVINCE_LENGTH = 2
MAX_PROVINCE_LENGTH = 100


@dataclass(frozen=True)
class ResolvedRate:
    price: Decimal
    source: str
    level: str
    rule_id: int


@dataclass(frozen=True)
class ResolutionStep:
    source: str
    level: str
    matched: bool
    rule_id: int | None = None
    skipped: bool = False


def validate_province(province: str | None) -> str:
    """
    Valida la provincia de destino.

    Raises:
        ValidationError: Si está vacía o su longitud está fuera de rango
    """
    trimmed = (province or "").strip()
    if not trimmed:
        raise ValidationError("La provincia no puede estar vacía")
    if not MIN_PROVINCE_LENGTH <= len(trimmed) <= MAX_PROVINCE_LENGTH:
        raise ValidationError(
            f"La provincia debe tener entre {MIN_PROVINCE_LENGTH} y {MAX_PROVINCE_LENGTH} caracteres"
        )
    return trimmed


class ShippingRateResolver:
    """
    Resuelve la tarifa aplicable a un vendedor para un destino.

    Las reglas activas se cargan una vez por instancia, así un cálculo de
    carrito con varios vendedores reutiliza las reglas del administrador.
    """

    def __init__(self):
        self._admin_rules: list[ShippingRate] | None = None
        self._vendor_rules: dict[int, list[ShippingRate]] = {}

    def _load_admin_rules(self) -> list[ShippingRate]:
        if self._admin_rules is None:
            self._admin_rules = list(ShippingRate.objects.filter(vendor__isnull=True, active=True).order_by("id"))
            if not self._admin_rules:
                logger.warning("Sin reglas de envío de administrador configuradas")
        return self._admin_rules

    def _load_vendor_rules(self, vendor_id: int) -> list[ShippingRate]:
        if vendor_id not in self._vendor_rules:
            rules = list(ShippingRate.objects.filter(vendor_id=vendor_id, active=True).order_by("id"))
            if not rules:
                logger.debug("Vendedor %s sin reglas de envío activas", vendor_id)
            self._vendor_rules[vendor_id] = rules
        return self._vendor_rules[vendor_id]

    @staticmethod
    def _match_city(rules: list[ShippingRate], province: str, city: str) -> ShippingRate | None:
        if not city:
            return None
        return next(
            (
                rule
                for rule in rules
                if normalize_text(rule.province) == province
                and rule.city.strip()
                and normalize_text(rule.city) == city
            ),
            None,
        )

    @staticmethod
    def _match_province(rules: list[ShippingRate], province: str) -> ShippingRate | None:
        return next(
            (rule for rule in rules if normalize_text(rule.province) == province and not rule.city.strip()),
            None,
        )

    def _candidates(self, vendor_id: int | None):
        if vendor_id is not None:
            vendor_rules = self._load_vendor_rules(vendor_id)
            yield SOURCE_VENDOR, LEVEL_CITY, vendor_rules
            yield SOURCE_VENDOR, LEVEL_PROVINCE, vendor_rules
        admin_rules = self._load_admin_rules()
        yield SOURCE_ADMIN, LEVEL_CITY, admin_rules
        yield SOURCE_ADMIN, LEVEL_PROVINCE, admin_rules

    def resolve(self, vendor_id: int | None, province: str | None, city: str | None = None) -> ResolvedRate | None:
        """
        Tarifa detallada (precio, fuente y nivel) o None si no hay regla.

        Args:
            vendor_id: ID del vendedor (None = producto de la tienda, solo reglas admin)
            province: Provincia de destino
            city: Ciudad de destino (opcional)
        """
        province_norm = normalize_text(province)
        if not province_norm:
            return None
        city_norm = normalize_text(city)

        for source, level, rules in self._candidates(vendor_id):
            if level == LEVEL_CITY:
                rule = self._match_city(rules, province_norm, city_norm)
            else:
                rule = self._match_province(rules, province_norm)
            if rule is not None:
                logger.debug(
                    "Tarifa encontrada. Vendedor: %s, Provincia: %s, Ciudad: %s, Precio: %s, Fuente: %s, Nivel: %s",
                    vendor_id, province, city or "N/A", rule.price, source, level,
                )
                return ResolvedRate(price=rule.price, source=source, level=level, rule_id=rule.id)

        logger.info("Tarifa no encontrada. Vendedor: %s, Provincia: %s, Ciudad: %s", vendor_id, province, city or "N/A")
        return None

    def get_rate(self, vendor_id: int | None, province: str | None, city: str | None = None) -> Decimal | None:
        resolved = self.resolve(vendor_id, province, city)
        return resolved.price if resolved else None

    def rate_exists(self, vendor_id: int | None, province: str | None, city: str | None = None) -> bool:
        return self.resolve(vendor_id, province, city) is not None

    def trace(self, vendor_id: int | None, province: str | None, city: str | None = None) -> list[ResolutionStep]:
        """Pasos intentados durante la resolución, en orden, para diagnóstico"""
        province_norm = normalize_text(province)
        city_norm = normalize_text(city)
        steps: list[ResolutionStep] = []
        found = False

        for source, level, rules in self._candidates(vendor_id):
            if found or not province_norm or (level == LEVEL_CITY and not city_norm):
                steps.append(ResolutionStep(source=source, level=level, matched=False, skipped=True))
                continue
            if level == LEVEL_CITY:
                rule = self._match_city(rules, province_norm, city_norm)
            else:
                rule = self._match_province(rules, province_norm)
            steps.append(
                ResolutionStep(source=source, level=level, matched=rule is not None, rule_id=rule.id if rule else None)
            )
            found = rule is not None
        return steps
