"""
Servicios de ventas: checkout del carrito, estados, devoluciones y reversiones.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Q, QuerySet, Sum
from django.utils import timezone

from ..catalog.services import ImageService
from ..models import (
    AuditLog,
    Cart,
    CustomerProfile,
    MovementInventory,
    Product,
    ProductVariant,
    Sale,
    SaleDetail,
    SaleReturn,
    SaleReversal,
    SaleStatusHistory,
)
from ..payments.resolver import resolve_payment_decision
from ..promotions.services import coupon_is_valid
from ..shipping.resolver import validate_province
from ..shipping.services import quote_for_vendors
from ..vendors.services import get_vendor_for_user

logger = logging.getLogger(__name__)

ORDER_TRANSITIONS = {
    Sale.Status.PENDING: {Sale.Status.PAID, Sale.Status.CANCELED},
    Sale.Status.PAID: {Sale.Status.SHIPPED, Sale.Status.CANCELED},
    Sale.Status.SHIPPED: {Sale.Status.DELIVERED},
    Sale.Status.DELIVERED: {Sale.Status.COMPLETED},
    Sale.Status.COMPLETED: set(),
    Sale.Status.CANCELED: set(),
    Sale.Status.REVERSED: set(),
}

STATUS_TIMESTAMP_FIELDS = {
    Sale.Status.PAID: "paid_at",
    Sale.Status.SHIPPED: "shipped_at",
    Sale.Status.DELIVERED: "delivered_at",
    Sale.Status.CANCELED: "canceled_at",
    Sale.Status.REVERSED: "canceled_at",
}

RETURNABLE_STATUSES = {Sale.Status.PAID, Sale.Status.SHIPPED, Sale.Status.DELIVERED, Sale.Status.COMPLETED}
CLOSED_STATUSES = {Sale.Status.CANCELED, Sale.Status.REVERSED}


def sales_visible_to(user) -> QuerySet:
    """
    Ventas visibles: staff ve todas, un vendedor las que incluyen sus
    productos y un cliente las propias.
    """
    queryset = Sale.objects.select_related("customer", "coupon")
    if user.is_staff:
        return queryset
    vendor = get_vendor_for_user(user)
    if vendor is not None:
        return queryset.filter(Q(details__vendor=vendor) | Q(customer=user)).distinct()
    return queryset.filter(customer=user)


def _append_history(sale: Sale, from_status: str, to_status: str, user, comment: str = "") -> None:
    SaleStatusHistory.objects.create(
        sale=sale,
        from_status=from_status,
        to_status=to_status,
        comment=comment[:255],
        changed_by=user if getattr(user, "is_authenticated", False) else None,
    )


def _restock(detail: SaleDetail, quantity: int, *, performed_by: str, observation: str) -> MovementInventory:
    if detail.variant_id:
        ProductVariant.objects.filter(pk=detail.variant_id).update(stock=F("stock") + quantity)
    else:
        Product.objects.filter(pk=detail.product_id).update(stock=F("stock") + quantity)
    return MovementInventory(
        product_id=detail.product_id,
        variant_id=detail.variant_id,
        sale_id=detail.sale_id,
        movement_type=MovementInventory.MovementType.SALE_RETURN,
        quantity=quantity,
        observation=observation,
        created_by=performed_by,
    )


def returned_quantities(sale: Sale) -> dict[int, int]:
    """Unidades ya devueltas por detalle de venta"""
    rows = (
        SaleReturn.objects.filter(detail__sale=sale, approved=True)
        .values("detail_id")
        .annotate(total=Sum("quantity"))
    )
    return {row["detail_id"]: row["total"] for row in rows}


def _lock_stock_rows(lines) -> tuple[dict[int, ProductVariant], dict[int, Product]]:
    variant_ids = sorted({line.variant_id for line in lines if line.variant_id})
    product_ids = sorted({line.product_id for line in lines if not line.variant_id})
    variants = {
        variant.id: variant
        for variant in ProductVariant.objects.select_for_update().filter(id__in=variant_ids).order_by("id")
    }
    products = {
        product.id: product
        for product in Product.objects.select_for_update().filter(id__in=product_ids).order_by("id")
    }
    return variants, products


@transaction.atomic
def checkout_cart(
    *,
    user,
    province: str = "",
    city: str = "",
    address: str = "",
    phone: str = "",
    payment_method: str = Sale.PaymentMethod.TRANSFER,
    payment_reference: str = "",
) -> Sale:
    """
    Procesa el carrito abierto del usuario y genera la venta.

    1. Valida cuenta, ítems, variantes y stock (con bloqueo de filas)
    2. Descuenta stock y registra movimientos de salida
    3. Crea la venta pendiente con sus detalles, cupón y envío por vendedor
    4. Cierra el carrito y elimina sus ítems

    Args:
        user: Cliente que compra
        province: Provincia de envío (por defecto la del perfil)
        city: Ciudad de envío (por defecto la del perfil)
        address: Dirección de envío
        phone: Teléfono de contacto
        payment_method: Método de pago
        payment_reference: Referencia del depósito (opcional)

    Returns:
        Sale: Venta creada en estado pendiente

    Raises:
        ValidationError: Si el carrito no puede procesarse
    """
    if not user.is_active:
        raise ValidationError("Tu cuenta está desactivada")

    cart = Cart.objects.select_for_update().filter(user=user).exclude(status=Cart.Status.CLOSED).first()
    if cart is None:
        raise ValidationError("No tienes un carrito abierto")

    lines = list(cart.items.select_related("product__vendor", "variant").order_by("id"))
    if not lines:
        logger.warning("El carrito %s no tiene productos", cart.id)
        raise ValidationError(f"El carrito {cart.id} no tiene productos")

    profile = CustomerProfile.objects.filter(user=user).first()
    if profile is not None:
        province = province or profile.province
        city = city or profile.city
        address = address or profile.address
        phone = phone or profile.phone
    province = validate_province(province)

    variants, products = _lock_stock_rows(lines)
    products_with_variants = set(
        ProductVariant.objects.filter(product_id__in={line.product_id for line in lines}, active=True)
        .values_list("product_id", flat=True)
    )

    errors: list[str] = []
    for line in lines:
        if line.variant_id:
            variant = variants[line.variant_id]
            if variant.product_id != line.product_id:
                errors.append("La variante del carrito no corresponde al producto")
            elif variant.stock < line.quantity:
                errors.append(
                    f"Stock insuficiente para la combinación seleccionada de '{line.product.name}': "
                    f"disponible {variant.stock}, solicitado {line.quantity}"
                )
        elif line.product_id in products_with_variants:
            errors.append(
                f"El producto '{line.product.name}' requiere color y talla. "
                "Elimina el ítem y vuelve a agregarlo seleccionando una variante"
            )
        elif products[line.product_id].stock < line.quantity:
            errors.append(
                f"Stock insuficiente para '{line.product.name}': "
                f"disponible {products[line.product_id].stock}, solicitado {line.quantity}"
            )
    if errors:
        logger.warning("Checkout rechazado para carrito %s: %s", cart.id, errors)
        raise ValidationError(errors)

    subtotal = sum((line.unit_price * line.quantity for line in lines), start=Decimal("0.00"))
    coupon = cart.coupon if cart.coupon_id and coupon_is_valid(cart.coupon) else None
    discount = min(coupon.discount_amount, subtotal) if coupon else Decimal("0.00")
    shipping = quote_for_vendors([line.product.vendor_id for line in lines], province, city)
    decision = resolve_payment_decision(cart)

    sale = Sale.objects.create(
        customer=user,
        status=Sale.Status.PENDING,
        payment_method=payment_method,
        payment_reference=payment_reference,
        coupon=coupon,
        subtotal=subtotal,
        discount=discount,
        shipping_total=shipping.total,
        total=max(subtotal - discount, Decimal("0.00")) + shipping.total,
        shipping_province=province,
        shipping_city=city,
        shipping_address=address,
        phone=phone,
        is_multi_vendor=decision.is_multi_vendor,
    )

    SaleDetail.objects.bulk_create(
        [
            SaleDetail(
                sale=sale,
                product_id=line.product_id,
                variant_id=line.variant_id,
                vendor_id=line.product.vendor_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount=Decimal("0.00"),
                subtotal=line.unit_price * line.quantity,
            )
            for line in lines
        ]
    )

    movements: list[MovementInventory] = []
    for line in lines:
        if line.variant_id:
            ProductVariant.objects.filter(pk=line.variant_id).update(stock=F("stock") - line.quantity)
            variant = variants[line.variant_id]
            observation = f"Venta #{sale.id} - Carrito #{cart.id} (variante: {variant.color} / {variant.size})"
        else:
            Product.objects.filter(pk=line.product_id).update(stock=F("stock") - line.quantity)
            observation = f"Venta #{sale.id} - Carrito #{cart.id}"
        movements.append(
            MovementInventory(
                product_id=line.product_id,
                variant_id=line.variant_id,
                sale=sale,
                movement_type=MovementInventory.MovementType.SALE_OUT,
                quantity=-line.quantity,
                observation=observation,
                created_by=user.username,
            )
        )
    MovementInventory.objects.bulk_create(movements)

    _append_history(sale, "", Sale.Status.PENDING, user, comment="Pedido creado desde el carrito")

    cart.items.all().delete()
    cart.status = Cart.Status.CLOSED
    cart.save(update_fields=["status", "updated_at"])

    AuditLog.objects.create(
        action="checkout",
        entity="sale",
        entity_id=sale.id,
        performed_by=user.username,
        extra_data={
            "cart_id": cart.id,
            "total": str(sale.total),
            "shipping_total": str(sale.shipping_total),
            "coupon": coupon.code if coupon else None,
            "shipping_messages": shipping.messages,
        },
    )
    logger.info("Venta %s creada desde carrito %s por %s (total %s)", sale.id, cart.id, user.username, sale.total)
    sale.shipping_messages = shipping.messages
    return sale


@transaction.atomic
def change_sale_status(*, sale_id: int, new_status: str, user, comment: str = "") -> Sale:
    """
    Cambia el estado de una venta respetando las transiciones permitidas.

    Cancelar repone el stock de las unidades no devueltas.

    Raises:
        Sale.DoesNotExist: Si la venta no existe
        ValidationError: Si el estado o la transición no son válidos
    """
    sale = Sale.objects.select_for_update().get(pk=sale_id)
    if new_status not in Sale.Status.values:
        raise ValidationError(f"Estado no válido: {new_status}")

    previous = sale.status
    if new_status not in ORDER_TRANSITIONS.get(previous, set()):
        logger.warning("Transición rechazada para venta %s: %s -> %s", sale.id, previous, new_status)
        raise ValidationError(
            f"Transición no permitida: {Sale.Status(previous).label} -> {Sale.Status(new_status).label}"
        )

    if new_status == Sale.Status.CANCELED:
        already_returned = returned_quantities(sale)
        movements = []
        for detail in sale.details.all():
            remaining = detail.quantity - already_returned.get(detail.id, 0)
            if remaining > 0:
                movements.append(
                    _restock(
                        detail,
                        remaining,
                        performed_by=user.username,
                        observation=f"Cancelación de venta #{sale.id}",
                    )
                )
        MovementInventory.objects.bulk_create(movements)

    sale.status = new_status
    update_fields = ["status", "updated_at"]
    timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
    if timestamp_field:
        setattr(sale, timestamp_field, timezone.now())
        update_fields.append(timestamp_field)
    sale.save(update_fields=update_fields)

    _append_history(sale, previous, new_status, user, comment=comment)
    AuditLog.objects.create(
        action="sale_status_changed",
        entity="sale",
        entity_id=sale.id,
        performed_by=user.username,
        extra_data={"from": previous, "to": new_status, "comment": comment},
    )
    logger.info("Venta %s: %s -> %s por %s", sale.id, previous, new_status, user.username)
    return sale


def _canonical_reversal_reason(reason: str | None) -> str:
    canonical = (reason or "").strip().lower()
    if canonical in SaleReversal.Reason.values:
        return canonical
    return SaleReversal.Reason.OTHER


@transaction.atomic
def reverse_sale(*, sale_id: int, reason: str, user, note: str = "") -> Sale:
    """
    Revierte una venta: repone stock, registra devoluciones y la marca revertida.

    Args:
        sale_id: ID de la venta
        reason: "deposito_falso", "devolucion" u "otro" (cualquier otro valor se toma como "otro")
        user: Administrador que revierte
        note: Nota opcional

    Raises:
        ValidationError: Si la venta ya está cancelada o revertida
    """
    if not (reason or "").strip():
        raise ValidationError("Debes indicar el motivo de la reversión")

    sale = Sale.objects.select_for_update().get(pk=sale_id)
    if sale.status in CLOSED_STATUSES:
        raise ValidationError("La venta ya se encuentra cancelada")

    reason_code = _canonical_reversal_reason(reason)
    note = (note or "").strip()
    reason_text = f"{reason_code}: {note}" if note else reason_code

    already_returned = returned_quantities(sale)
    returns: list[SaleReturn] = []
    movements: list[MovementInventory] = []
    for detail in sale.details.all():
        remaining = detail.quantity - already_returned.get(detail.id, 0)
        if remaining <= 0:
            continue
        movements.append(
            _restock(detail, remaining, performed_by=user.username, observation=f"Reversión de venta #{sale.id}")
        )
        returns.append(SaleReturn(detail=detail, quantity=remaining, reason=reason_text[:255], created_by=user))
    SaleReturn.objects.bulk_create(returns)
    MovementInventory.objects.bulk_create(movements)

    SaleReversal.objects.create(sale=sale, reason=reason_code, note=note, admin=user)

    previous = sale.status
    sale.status = Sale.Status.REVERSED
    sale.canceled_at = timezone.now()
    sale.save(update_fields=["status", "canceled_at", "updated_at"])
    _append_history(sale, previous, Sale.Status.REVERSED, user, comment=reason_text)

    AuditLog.objects.create(
        action="sale_reversed",
        entity="sale",
        entity_id=sale.id,
        performed_by=user.username,
        extra_data={"reason": reason_code, "note": note, "restocked_lines": len(movements)},
    )
    logger.info("Venta %s revertida. Motivo: %s", sale.id, reason_code)
    return sale


@transaction.atomic
def register_returns(*, sale_id: int, lines: list[dict], reason: str, user) -> dict:
    """
    Registra devoluciones por línea y repone stock.

    Cada cantidad debe ser como máximo lo vendido menos lo ya devuelto; con
    cualquier línea inválida no se registra nada. Si se devuelve todo lo
    vendido la venta queda cancelada.

    Args:
        sale_id: ID de la venta
        lines: Lista de {"detail_id": int, "quantity": int}
        reason: Motivo de la devolución
        user: Usuario que registra

    Returns:
        dict: {"returns": [SaleReturn, ...], "sale_canceled": bool}
    """
    if not (reason or "").strip():
        raise ValidationError("Debes indicar el motivo de la devolución")
    if not lines:
        raise ValidationError("Debes indicar al menos una línea a devolver")

    sale = Sale.objects.select_for_update().get(pk=sale_id)
    if sale.status not in RETURNABLE_STATUSES:
        raise ValidationError(
            f"No se pueden registrar devoluciones para una venta en estado {sale.get_status_display()}"
        )

    details = {detail.id: detail for detail in sale.details.all()}
    requested: dict[int, int] = defaultdict(int)
    errors: list[str] = []
    for line in lines:
        detail_id = int(line["detail_id"])
        quantity = int(line["quantity"])
        if detail_id not in details:
            errors.append(f"La línea #{detail_id} no pertenece a la venta #{sale.id}")
            continue
        if quantity < 1:
            errors.append(f"La cantidad a devolver de la línea #{detail_id} debe ser mayor que cero")
            continue
        requested[detail_id] += quantity

    already_returned = returned_quantities(sale)
    for detail_id, quantity in requested.items():
        max_allowed = details[detail_id].quantity - already_returned.get(detail_id, 0)
        if quantity > max_allowed:
            errors.append(f"La línea #{detail_id} permite devolver como máximo {max_allowed} unidades")

    if errors:
        logger.warning("Devolución rechazada para venta %s: %s", sale.id, errors)
        raise ValidationError(errors)

    returns: list[SaleReturn] = []
    movements: list[MovementInventory] = []
    for detail_id, quantity in requested.items():
        detail = details[detail_id]
        returns.append(SaleReturn(detail=detail, quantity=quantity, reason=reason.strip()[:255], created_by=user))
        movements.append(
            _restock(
                detail,
                quantity,
                performed_by=user.username,
                observation=f"Devolución venta #{sale.id} (detalle #{detail.id})",
            )
        )
    created_returns = SaleReturn.objects.bulk_create(returns)
    MovementInventory.objects.bulk_create(movements)

    total_sold = sum(detail.quantity for detail in details.values())
    total_returned = sum(already_returned.values()) + sum(requested.values())
    sale_canceled = total_returned >= total_sold
    if sale_canceled:
        previous = sale.status
        sale.status = Sale.Status.CANCELED
        sale.canceled_at = timezone.now()
        sale.save(update_fields=["status", "canceled_at", "updated_at"])
        _append_history(sale, previous, Sale.Status.CANCELED, user, comment="Devolución total")

    AuditLog.objects.create(
        action="sale_returns_registered",
        entity="sale",
        entity_id=sale.id,
        performed_by=user.username,
        extra_data={"lines": {str(k): v for k, v in requested.items()}, "sale_canceled": sale_canceled},
    )
    logger.info("Devolución procesada para venta %s: %s líneas, cancelada=%s", sale.id, len(returns), sale_canceled)
    return {"returns": created_returns, "sale_canceled": sale_canceled}


def upload_payment_proof(*, sale: Sale, image, user, reference: str = "") -> Sale:
    """
    Adjunta el comprobante de transferencia a una venta pendiente del cliente.

    Raises:
        ValidationError: Si la venta no es del usuario, no está pendiente o la imagen no es válida
    """
    if sale.customer_id != user.id:
        raise ValidationError("Solo el cliente de la venta puede subir el comprobante")
    if sale.status != Sale.Status.PENDING:
        raise ValidationError("Solo se puede subir el comprobante de una venta pendiente")

    max_mb = int(getattr(settings, "STORE_PAYMENT_PROOF_MAX_MB", 5))
    ImageService.validate_image_file(image, max_size=max_mb * 1024 * 1024)

    sale.payment_proof = image
    update_fields = ["payment_proof", "updated_at"]
    if reference:
        sale.payment_reference = reference.strip()[:80]
        update_fields.append("payment_reference")
    sale.save(update_fields=update_fields)

    AuditLog.objects.create(
        action="payment_proof_uploaded",
        entity="sale",
        entity_id=sale.id,
        performed_by=user.username,
        extra_data={"reference": sale.payment_reference},
    )
    return sale
