"""
Servicios de proveedores: compras que ingresan stock a la tienda.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ..core.utils import money, to_decimal
from ..models import AuditLog, MovementInventory, Product, ProductVariant, Supplier

logger = logging.getLogger(__name__)


def _validate_purchase_line(line: dict, position: int) -> tuple[Product, ProductVariant | None, int]:
    quantity = line.get("quantity")
    if not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"Línea {position}: la cantidad de compra debe ser mayor a cero")

    unit_cost = line.get("unit_cost")
    if unit_cost is not None and to_decimal(unit_cost) <= 0:
        raise ValidationError(f"Línea {position}: el costo unitario debe ser mayor a cero")

    product = Product.objects.select_for_update().filter(pk=line.get("product_id")).first()
    if product is None:
        raise ValidationError(f"Línea {position}: el producto no existe")

    variant_id = line.get("variant_id")
    if variant_id is not None:
        variant = ProductVariant.objects.select_for_update().filter(pk=variant_id, product=product).first()
        if variant is None:
            raise ValidationError(f"Línea {position}: la variante no corresponde al producto '{product.name}'")
        return product, variant, quantity

    if product.variants.filter(active=True).exists():
        raise ValidationError(f"Línea {position}: '{product.name}' requiere indicar la variante (color y talla)")
    return product, None, quantity


@transaction.atomic
def register_purchase(*, supplier_id: int, lines: list[dict], user, observation: str = "") -> list[MovementInventory]:
    """
    Registra una compra a un proveedor.

    Cada línea suma stock a la variante (o al producto sin variantes) y deja
    un movimiento de entrada con el proveedor. Si una línea es inválida no se
    registra ninguna.

    Args:
        supplier_id: ID del proveedor
        lines: [{"product_id", "variant_id"?, "quantity", "unit_cost"?}]
        user: Usuario que registra la compra
        observation: Observación para los movimientos

    Returns:
        list[MovementInventory]: Movimientos creados

    Raises:
        ValidationError: Proveedor inactivo, sin líneas o alguna línea inválida
    """
    supplier = Supplier.objects.select_for_update().filter(pk=supplier_id).first()
    if supplier is None:
        raise ValidationError("El proveedor no existe")
    if not supplier.is_active:
        raise ValidationError(f"El proveedor '{supplier.name}' está inactivo")
    if not lines:
        raise ValidationError("Se deben proporcionar líneas para la compra")

    validated = [
        (line, *_validate_purchase_line(line, position)) for position, line in enumerate(lines, start=1)
    ]

    note = observation or f"Compra - Proveedor: {supplier.name}"
    movements = []
    total_cost = money(0)
    for line, product, variant, quantity in validated:
        target = variant if variant is not None else product
        type(target).objects.filter(pk=target.pk).update(stock=F("stock") + quantity)

        unit_cost = line.get("unit_cost")
        if unit_cost is not None:
            unit_cost = money(to_decimal(unit_cost))
            Product.objects.filter(pk=product.pk).update(cost=unit_cost)
            total_cost += unit_cost * quantity

        movements.append(
            MovementInventory.objects.create(
                product=product,
                variant=variant,
                supplier=supplier,
                movement_type=MovementInventory.MovementType.PURCHASE,
                quantity=quantity,
                observation=note,
                created_by=user.username,
            )
        )

    supplier.last_purchase_date = timezone.localdate()
    supplier.save(update_fields=["last_purchase_date", "updated_at"])

    AuditLog.objects.create(
        action="create_purchase",
        entity="supplier",
        entity_id=supplier.id,
        performed_by=user.username,
        extra_data={
            "movements": [movement.id for movement in movements],
            "units": sum(movement.quantity for movement in movements),
            "total_cost": str(money(total_cost)),
        },
    )
    logger.info("Compra registrada al proveedor %s con %s líneas", supplier.id, len(movements))
    return movements
