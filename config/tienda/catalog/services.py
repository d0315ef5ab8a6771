"""
Servicios del catálogo: consultas públicas, ajustes de stock e imágenes.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Prefetch, Q, QuerySet
from PIL import Image, UnidentifiedImageError

from ..attributes.services import filter_by_attributes
from ..core.utils import to_decimal
from ..models import AuditLog, MovementInventory, Product, ProductAttributeValue, ProductImage, ProductVariant

logger = logging.getLogger(__name__)


def catalog_queryset() -> QuerySet:
    """
    Productos visibles en la tienda pública.

    Incluye productos activos de categorías activas cuyo vendedor no existe
    (tienda) o está activo. Las variantes activas quedan en `active_variants`
    y los atributos visibles en `detail_attributes`.
    """
    return (
        Product.objects.filter(active=True, category__active=True)
        .filter(Q(vendor__isnull=True) | Q(vendor__is_active=True))
        .select_related("vendor", "category", "subcategory")
        .prefetch_related(
            Prefetch(
                "variants",
                queryset=ProductVariant.objects.filter(active=True).order_by("color", "size"),
                to_attr="active_variants",
            ),
            Prefetch("images", queryset=ProductImage.objects.order_by("-is_primary", "sort_order", "id")),
            Prefetch(
                "attribute_values",
                queryset=ProductAttributeValue.objects.filter(
                    attribute__active=True, attribute__show_in_detail=True
                ).select_related("attribute"),
                to_attr="detail_attributes",
            ),
        )
    )


def filter_catalog(queryset: QuerySet, params) -> QuerySet:
    """Aplica filtros de consulta sobre el catálogo"""
    category = params.get("category")
    if category:
        queryset = queryset.filter(category_id=category) if str(category).isdigit() else queryset.filter(
            category__name__iexact=category
        )

    subcategory = params.get("subcategory")
    if subcategory and str(subcategory).isdigit():
        queryset = queryset.filter(subcategory_id=subcategory)

    vendor = params.get("vendor")
    if vendor and str(vendor).isdigit():
        queryset = queryset.filter(vendor_id=vendor)

    q = params.get("q")
    if q:
        queryset = queryset.filter(
            Q(name__icontains=q) | Q(brand__icontains=q) | Q(description__icontains=q)
        )
    return filter_by_attributes(queryset, params)


def with_stock_and_price_filters(products: list[Product], params) -> list[Product]:
    """
    Filtros que dependen de valores calculados (precio efectivo y stock disponible)
    y el ordenamiento del catálogo.
    """
    include_out_of_stock = str(params.get("include_out_of_stock", "")).lower() in {"1", "true", "yes"}
    if not include_out_of_stock:
        products = [product for product in products if product.available_stock > 0]

    min_price = params.get("min_price")
    if min_price not in (None, ""):
        floor = to_decimal(min_price)
        products = [product for product in products if product.effective_price >= floor]

    max_price = params.get("max_price")
    if max_price not in (None, ""):
        ceiling = to_decimal(max_price)
        products = [product for product in products if product.effective_price <= ceiling]

    ordering = params.get("ordering", "name")
    sorters = {
        "name": (lambda product: product.name.lower(), False),
        "-name": (lambda product: product.name.lower(), True),
        "price": (lambda product: product.effective_price, False),
        "-price": (lambda product: product.effective_price, True),
        "newest": (lambda product: product.created_at, True),
    }
    key, reverse = sorters.get(ordering, sorters["name"])
    return sorted(products, key=key, reverse=reverse)


def record_opening_stock(*, product: Product, user, variant: ProductVariant | None = None) -> MovementInventory | None:
    """
    Registra como entrada el stock con el que nace un producto o una variante.

    Debe llamarse dentro de la misma transacción que crea el registro.
    """
    target = variant if variant is not None else product
    if target.stock <= 0:
        return None

    movement = MovementInventory.objects.create(
        product=product,
        variant=variant,
        movement_type=MovementInventory.MovementType.PURCHASE,
        quantity=target.stock,
        observation="Stock inicial",
        created_by=user.username,
    )
    logger.info(
        "Stock inicial registrado para producto %s (variante %s): %s",
        product.id,
        variant.id if variant is not None else None,
        target.stock,
    )
    return movement


@transaction.atomic
def adjust_stock(
    *,
    product_id: int,
    quantity: int,
    user,
    variant_id: int | None = None,
    mode: str = "increment",
    observation: str = "",
) -> int:
    """
    Ajusta el stock de una variante o de un producto sin variantes.

    Args:
        product_id: ID del producto
        quantity: Cantidad (delta con signo en modo increment, valor final en modo set)
        user: Usuario que realiza el ajuste
        variant_id: ID de la variante (requerido si el producto tiene variantes)
        mode: "increment" o "set"
        observation: Observación del movimiento

    Returns:
        int: Stock resultante

    Raises:
        ValidationError: Si el ajuste deja stock negativo o la variante no corresponde
    """
    if mode not in {"increment", "set"}:
        raise ValidationError("Modo de ajuste inválido. Use 'increment' o 'set'")

    product = Product.objects.select_for_update().get(pk=product_id)
    has_variants = product.variants.filter(active=True).exists()

    if variant_id is not None:
        target = ProductVariant.objects.select_for_update().filter(pk=variant_id, product=product).first()
        if target is None:
            raise ValidationError("La variante seleccionada no corresponde a este producto")
    elif has_variants:
        raise ValidationError("Debes indicar la variante (color y talla) para ajustar el stock")
    else:
        target = product

    current = target.stock
    delta = quantity if mode == "increment" else quantity - current
    new_stock = current + delta
    if new_stock < 0:
        raise ValidationError(f"El ajuste deja stock negativo. Disponible: {current}, ajuste: {delta}")
    if delta == 0:
        return current

    type(target).objects.filter(pk=target.pk).update(stock=F("stock") + delta)

    MovementInventory.objects.create(
        product=product,
        variant=target if variant_id is not None else None,
        movement_type=MovementInventory.MovementType.ADJUSTMENT,
        quantity=delta,
        observation=observation or "Ajuste manual de stock",
        created_by=user.username,
    )
    AuditLog.objects.create(
        action="stock_adjusted",
        entity="product",
        entity_id=product.id,
        performed_by=user.username,
        extra_data={"variant_id": variant_id, "delta": delta, "stock": new_stock},
    )
    logger.info("Stock ajustado para producto %s (variante %s): %s -> %s", product.id, variant_id, current, new_stock)
    return new_stock


class ImageService:
    """Servicio para validación y gestión de imágenes de productos y comprobantes"""

    MAX_FILE_SIZE = 2 * 1024 * 1024  # 2MB en bytes
    ALLOWED_FORMATS = ["JPEG", "PNG", "WEBP"]

    @classmethod
    def validate_image_file(cls, image_file, max_size: int | None = None):
        """
        Valida que el archivo de imagen cumpla con los requisitos

        Args:
            image_file: Archivo de imagen a validar
            max_size: Tamaño máximo en bytes (por defecto MAX_FILE_SIZE)

        Raises:
            ValidationError: Si la imagen no cumple los requisitos
        """
        limit = max_size or cls.MAX_FILE_SIZE
        if image_file.size > limit:
            raise ValidationError(
                f"La imagen es demasiado grande. Máximo permitido: {limit // (1024 * 1024)}MB"
            )

        try:
            with Image.open(image_file) as img:
                image_format = (img.format or "").upper()
        except UnidentifiedImageError as exc:
            raise ValidationError(f"El archivo no es una imagen válida: {exc}")
        finally:
            if hasattr(image_file, "seek"):
                image_file.seek(0)

        if image_format not in cls.ALLOWED_FORMATS:
            raise ValidationError(
                f"Formato de imagen no permitido. Formatos válidos: {', '.join(cls.ALLOWED_FORMATS)}"
            )

    @classmethod
    def extract_image_metadata(cls, image_file) -> dict:
        """Extrae tamaño, dimensiones y formato de la imagen"""
        try:
            with Image.open(image_file) as img:
                metadata = {
                    "file_size": image_file.size,
                    "width": img.width,
                    "height": img.height,
                    "format": img.format,
                }
        except (UnidentifiedImageError, OSError):
            metadata = {"file_size": image_file.size, "width": 0, "height": 0, "format": "Unknown"}
        if hasattr(image_file, "seek"):
            image_file.seek(0)
        return metadata

    @classmethod
    def process_product_image(cls, product_image: ProductImage) -> ProductImage:
        """Valida la imagen y completa sus metadatos"""
        cls.validate_image_file(product_image.image)
        metadata = cls.extract_image_metadata(product_image.image)
        product_image.file_size = metadata["file_size"]
        product_image.width = metadata["width"]
        product_image.height = metadata["height"]
        return product_image

    @classmethod
    def set_primary_image(cls, product: Product, image_id: int) -> None:
        """Marca una imagen como principal y desmarca las demás del producto"""
        with transaction.atomic():
            ProductImage.objects.filter(product=product).exclude(id=image_id).update(is_primary=False)
            ProductImage.objects.filter(id=image_id, product=product).update(is_primary=True)
