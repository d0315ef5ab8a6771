"""
Servicios de vendedores y comisiones.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.models import Group
from django.core.exceptions import ValidationError
from django.db import transaction

from ..core.utils import to_decimal
from ..models import AuditLog, Category, CommissionRule, Vendor

logger = logging.getLogger(__name__)

VENDOR_GROUP_NAME = "Vendors"


def get_vendor_for_user(user) -> Vendor | None:
    """Perfil de vendedor activo del usuario, o None"""
    if not getattr(user, "is_authenticated", False):
        return None
    return Vendor.objects.filter(user=user, is_active=True).first()


def is_vendor(user) -> bool:
    return get_vendor_for_user(user) is not None


@transaction.atomic
def create_vendor_profile(*, user, store_name: str, performed_by: str, **fields) -> Vendor:
    """
    Crea (o reactiva) el perfil de vendedor de un usuario y lo agrega al grupo Vendors.

    Args:
        user: Usuario que será vendedor
        store_name: Nombre comercial
        performed_by: Usuario que ejecuta la acción (auditoría)
        **fields: tax_id, phone, email

    Returns:
        Vendor: Perfil creado o actualizado

    Raises:
        ValidationError: Si el usuario ya es un vendedor activo
    """
    existing = Vendor.objects.select_for_update().filter(user=user).first()
    if existing and existing.is_active:
        raise ValidationError(f"El usuario {user.username} ya es vendedor")

    if existing:
        existing.store_name = store_name
        for name, value in fields.items():
            setattr(existing, name, value)
        existing.is_active = True
        existing.save()
        vendor = existing
    else:
        vendor = Vendor.objects.create(user=user, store_name=store_name, **fields)

    vendors_group, _ = Group.objects.get_or_create(name=VENDOR_GROUP_NAME)
    user.groups.add(vendors_group)

    AuditLog.objects.create(
        action="vendor_enabled",
        entity="vendor",
        entity_id=vendor.id,
        performed_by=performed_by,
        extra_data={"user_id": user.id, "store_name": vendor.store_name},
    )
    logger.info("Vendedor %s habilitado para usuario %s", vendor.id, user.username)
    return vendor


def default_commission_percentage() -> Decimal:
    return to_decimal(getattr(settings, "STORE_DEFAULT_COMMISSION_PERCENT", "10"), default="10")


def commission_percentage_for(vendor: Vendor | None, category: Category | None = None) -> Decimal:
    """
    Porcentaje de comisión aplicable.

    Prioridad: regla del vendedor, regla de la categoría, regla global y por
    último el valor por defecto de configuración.
    """
    active_rules = CommissionRule.objects.filter(active=True)

    if vendor is not None:
        rule = active_rules.filter(vendor=vendor).order_by("-created_at", "-id").first()
        if rule:
            return rule.percentage

    if category is not None:
        rule = active_rules.filter(vendor__isnull=True, category=category).order_by("-created_at", "-id").first()
        if rule:
            return rule.percentage

    rule = active_rules.filter(vendor__isnull=True, category__isnull=True).order_by("-created_at", "-id").first()
    if rule:
        return rule.percentage

    return default_commission_percentage()


@transaction.atomic
def deactivate_vendor(*, vendor: Vendor, performed_by: str) -> Vendor:
    """Desactiva el perfil y saca al usuario del grupo Vendors; sus productos dejan de publicarse"""
    vendor.is_active = False
    vendor.save(update_fields=["is_active", "updated_at"])

    vendors_group = Group.objects.filter(name=VENDOR_GROUP_NAME).first()
    if vendors_group is not None:
        vendor.user.groups.remove(vendors_group)

    AuditLog.objects.create(
        action="vendor_disabled",
        entity="vendor",
        entity_id=vendor.id,
        performed_by=performed_by,
        extra_data={"user_id": vendor.user_id},
    )
    logger.info("Vendedor %s desactivado por %s", vendor.id, performed_by)
    return vendor
