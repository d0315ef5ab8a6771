"""
Servicio del carrito persistente.

Estados: Vacio (sin ítems), En Uso (con ítems) y Cerrado (ya procesado).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Sum

from ..models import Cart, CartItem, Product, ProductVariant
from ..promotions.services import discount_for, find_valid_coupon

logger = logging.getLogger(__name__)


def _max_item_quantity() -> int:
    return int(getattr(settings, "STORE_MAX_ITEM_QUANTITY", 99))


def get_open_cart(user) -> Cart | None:
    return Cart.objects.filter(user=user).exclude(status=Cart.Status.CLOSED).first()


def get_or_create_open_cart(user) -> Cart:
    """
    Retorna el carrito no cerrado del usuario, creándolo vacío si no existe.

    La restricción única por usuario resuelve la carrera entre dos creaciones.
    """
    cart = get_open_cart(user)
    if cart:
        return cart
    try:
        with transaction.atomic():
            return Cart.objects.create(user=user, status=Cart.Status.EMPTY)
    except IntegrityError:
        return get_open_cart(user)


def cart_item_count(user) -> int:
    """Suma de cantidades del carrito abierto (0 si no hay)"""
    if not getattr(user, "is_authenticated", False):
        return 0
    return (
        CartItem.objects.filter(cart__user=user)
        .exclude(cart__status=Cart.Status.CLOSED)
        .aggregate(total=Sum("quantity"))["total"]
        or 0
    )


def _product_has_variants(product: Product) -> bool:
    return product.variants.filter(active=True).exists()


def _check_stock(product: Product, variant: ProductVariant | None, requested: int) -> None:
    if variant is not None:
        if variant.stock < requested:
            raise ValidationError(
                "Stock insuficiente para la combinación seleccionada. "
                f"Disponible: {variant.stock}, solicitado: {requested}"
            )
    elif product.stock < requested:
        raise ValidationError(
            f"Stock insuficiente de '{product.name}'. Disponible: {product.stock}, solicitado: {requested}"
        )


def _check_quantity_cap(quantity: int) -> None:
    cap = _max_item_quantity()
    if quantity > cap:
        raise ValidationError(f"La cantidad máxima por producto es {cap}")


@transaction.atomic
def add_item(*, user, product_id: int, quantity: int, variant_id: int | None = None) -> CartItem:
    """
    Añade un producto (o variante) al carrito abierto del usuario.

    Args:
        user: Usuario dueño del carrito
        product_id: ID del producto
        quantity: Cantidad a sumar (>= 1)
        variant_id: ID de la variante (obligatoria si el producto tiene variantes)

    Returns:
        CartItem: Línea creada o actualizada

    Raises:
        ValidationError: Cantidad inválida, variante incorrecta o stock insuficiente
    """
    if quantity < 1:
        raise ValidationError("La cantidad debe ser mayor que cero")

    product = Product.objects.select_related("vendor").filter(pk=product_id, active=True).first()
    if product is None:
        raise ValidationError(f"Producto {product_id} no disponible")
    if product.vendor_id and not product.vendor.is_active:
        raise ValidationError(f"Producto {product_id} no disponible")

    variant = None
    if variant_id is not None:
        variant = ProductVariant.objects.filter(pk=variant_id, active=True).first()
        if variant is None or variant.product_id != product.id:
            raise ValidationError("La variante seleccionada no corresponde a este producto")
    elif _product_has_variants(product):
        raise ValidationError("Debes seleccionar color y talla para este producto")

    cart = get_or_create_open_cart(user)
    cart = Cart.objects.select_for_update().get(pk=cart.pk)

    existing = CartItem.objects.filter(cart=cart, product=product, variant=variant).first()
    new_total = (existing.quantity if existing else 0) + quantity
    _check_quantity_cap(new_total)
    _check_stock(product, variant, new_total)

    unit_price = variant.effective_price if variant is not None else product.price
    if existing is None:
        item = CartItem.objects.create(
            cart=cart, product=product, variant=variant, quantity=quantity, unit_price=unit_price
        )
    else:
        existing.quantity = new_total
        existing.unit_price = unit_price
        existing.save(update_fields=["quantity", "unit_price"])
        item = existing

    if cart.status == Cart.Status.EMPTY:
        cart.status = Cart.Status.IN_USE
    cart.save(update_fields=["status", "updated_at"])

    logger.info("Carrito %s: producto %s (variante %s) cantidad %s", cart.id, product.id, variant_id, new_total)
    return item


def _owned_item(user, item_id: int) -> CartItem:
    item = (
        CartItem.objects.select_related("cart", "product__vendor", "variant")
        .filter(pk=item_id, cart__user=user)
        .exclude(cart__status=Cart.Status.CLOSED)
        .first()
    )
    if item is None:
        raise CartItem.DoesNotExist(f"No se encontró el ítem {item_id} del carrito")
    return item


@transaction.atomic
def update_item_quantity(*, user, item_id: int, quantity: int) -> tuple[CartItem, Decimal]:
    """
    Cambia la cantidad absoluta de una línea y refresca su precio.

    Returns:
        tuple: (línea actualizada, subtotal de la línea)
    """
    if quantity < 1:
        raise ValidationError("La cantidad debe ser mayor que cero")

    item = _owned_item(user, item_id)
    _check_quantity_cap(quantity)

    product = item.product
    if not product.active or (product.vendor_id and not product.vendor.is_active):
        raise ValidationError(f"Producto {product.id} no disponible")
    if item.variant is not None and not item.variant.active:
        raise ValidationError("La variante seleccionada ya no está disponible")

    if item.variant is not None:
        _check_stock(item.product, item.variant, quantity)
        item.unit_price = item.variant.effective_price
    else:
        if _product_has_variants(item.product):
            raise ValidationError(
                f"El producto '{item.product.name}' requiere color y talla. "
                "Elimina el ítem y vuelve a agregarlo seleccionando una variante"
            )
        _check_stock(item.product, None, quantity)
        item.unit_price = item.product.price

    item.quantity = quantity
    item.save(update_fields=["quantity", "unit_price"])
    return item, item.subtotal


@transaction.atomic
def remove_item(*, user, item_id: int) -> Cart:
    """Elimina una línea; si el carrito queda sin ítems vuelve a Vacio"""
    item = _owned_item(user, item_id)
    cart = item.cart
    item.delete()

    if not cart.items.exists():
        cart.status = Cart.Status.EMPTY
        cart.coupon = None
        cart.save(update_fields=["status", "coupon", "updated_at"])
    return cart


@transaction.atomic
def clear_cart(*, user) -> Cart | None:
    cart = get_open_cart(user)
    if cart is None:
        return None
    cart.items.all().delete()
    cart.status = Cart.Status.EMPTY
    cart.coupon = None
    cart.save(update_fields=["status", "coupon", "updated_at"])
    return cart


def apply_coupon(*, user, code: str) -> Cart:
    """
    Aplica un cupón vigente al carrito abierto.

    Un código inválido quita cualquier cupón aplicado antes de fallar.
    """
    cart = get_or_create_open_cart(user)
    try:
        coupon = find_valid_coupon(code)
    except ValidationError:
        if cart.coupon_id:
            cart.coupon = None
            cart.save(update_fields=["coupon", "updated_at"])
        logger.warning("Cupón rechazado para usuario %s: %s", user.username, code)
        raise
    cart.coupon = coupon
    cart.save(update_fields=["coupon", "updated_at"])
    return cart


def remove_coupon(*, user) -> Cart | None:
    cart = get_open_cart(user)
    if cart and cart.coupon_id:
        cart.coupon = None
        cart.save(update_fields=["coupon", "updated_at"])
    return cart


def cart_lines(cart: Cart) -> list[CartItem]:
    return list(
        cart.items.select_related("product__vendor", "product__category", "variant").order_by("id")
    )


def cart_summary(cart: Cart | None) -> dict:
    """
    Resumen del carrito: líneas, cantidades, subtotal, descuento y total sin envío.
    """
    if cart is None:
        return {
            "cart_id": None,
            "status": Cart.Status.EMPTY,
            "status_label": Cart.Status.EMPTY.label,
            "items": [],
            "items_count": 0,
            "subtotal": "0.00",
            "coupon": None,
            "discount": "0.00",
            "total_before_shipping": "0.00",
        }

    lines = cart_lines(cart)
    subtotal = sum((line.subtotal for line in lines), start=Decimal("0.00"))
    discount = discount_for(cart.coupon, subtotal) if cart.coupon_id else Decimal("0.00")

    return {
        "cart_id": cart.id,
        "status": cart.status,
        "status_label": cart.get_status_display(),
        "items": [
            {
                "id": line.id,
                "product_id": line.product_id,
                "product_name": line.product.name,
                "variant_id": line.variant_id,
                "variant_info": f"{line.variant.color} / {line.variant.size}" if line.variant else None,
                "vendor_id": line.product.vendor_id,
                "vendor_name": line.product.vendor.store_name if line.product.vendor else None,
                "quantity": line.quantity,
                "unit_price": str(line.unit_price),
                "subtotal": str(line.subtotal),
            }
            for line in lines
        ],
        "items_count": sum(line.quantity for line in lines),
        "subtotal": str(subtotal),
        "coupon": cart.coupon.code if cart.coupon_id else None,
        "discount": str(discount),
        "total_before_shipping": str(max(subtotal - discount, Decimal("0.00"))),
    }
