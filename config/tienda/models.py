from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q


# Create your models here.


class Vendor(models.Model):
    """Vendedor externo que publica productos en la tienda

    Attributes:
        user (OneToOneField): Usuario dueño del perfil
        store_name (CharField): Nombre comercial
        tax_id (CharField): RUC o cédula del vendedor
        phone (CharField): Teléfono de contacto
        email (EmailField): Correo de contacto
        is_active (BooleanField): Si puede vender
        created_at (DateTimeField): Fecha de creación
        updated_at (DateTimeField): Fecha de actualización
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="vendor_profile"
    )
    store_name = models.CharField(max_length=120)
    tax_id = models.CharField(max_length=20, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["store_name"]

    def __str__(self):
        return self.store_name


class CustomerProfile(models.Model):
    """Datos de contacto y destino de envío por defecto del cliente"""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="customer_profile"
    )
    phone = models.CharField(max_length=20, blank=True, default="")
    province = models.CharField(max_length=120, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    address = models.CharField(max_length=255, blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Perfil de {self.user}"


class Supplier(models.Model):
    """Proveedor de la tienda

    Attributes:
        name (CharField): Nombre del proveedor
        contact (CharField): Persona de contacto (opcional)
        phone (CharField): Teléfono (opcional)
        email (EmailField): Correo (opcional)
        address (TextField): Dirección (opcional)
        tax_id (CharField): RUC del proveedor (opcional)
        last_purchase_date (DateField): Última fecha de compra
        is_active (BooleanField): Sigue siendo proveedor
        created_at (DateTimeField): Fecha de creación
        updated_at (DateTimeField): Fecha de actualización
        created_by (CharField): Usuario que creó el proveedor
    """

    name = models.CharField(max_length=120)
    contact = models.CharField(max_length=120, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")
    tax_id = models.CharField(max_length=20, blank=True, default="")
    last_purchase_date = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Category(models.Model):
    """Categoría del catálogo"""

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, default="")
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "Categories"

    def __str__(self):
        return self.name


class Subcategory(models.Model):
    """Subcategoría dentro de una categoría"""

    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="subcategories"
    )
    name = models.CharField(max_length=100)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["category__name", "name"]
        unique_together = ("category", "name")
        verbose_name_plural = "Subcategories"

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class CategoryAttribute(models.Model):
    """Atributo propio de una categoría (Largo, Escote, Material...)

    Attributes:
        category (ForeignKey): Categoría dueña del atributo
        name (CharField): Nombre visible
        technical_name (CharField): Nombre técnico sin espacios, único por categoría
        field_type (CharField): Tipo de campo del valor
        options (JSONField): Opciones para select/multiselect
        unit (CharField): Unidad de medida (cm, kg, ml)
        required (BooleanField): Obligatorio al publicar el producto
        filterable (BooleanField): Se puede usar como filtro del catálogo
        show_in_detail (BooleanField): Se muestra en la ficha del producto
        show_in_card (BooleanField): Se muestra en el listado
        min_value / max_value (DecimalField): Rango para number/range
        validation_pattern (CharField): Regex para validar texto
        error_message (CharField): Mensaje de error personalizado
        group (CharField): Sección donde se agrupa
        sort_order (PositiveIntegerField): Orden de visualización
        usage_count (PositiveIntegerField): Productos que usan el atributo
    """

    class FieldType(models.TextChoices):
        TEXT = "text", "Texto"
        TEXTAREA = "textarea", "Texto largo"
        NUMBER = "number", "Número"
        RANGE = "range", "Rango"
        SELECT = "select", "Selección"
        MULTISELECT = "multiselect", "Selección múltiple"
        CHECKBOX = "checkbox", "Sí/No"
        COLOR = "color", "Color"
        DATE = "date", "Fecha"

    category = models.ForeignKey(
        Category, on_delete=models.CASCADE, related_name="attributes"
    )
    name = models.CharField(max_length=100)
    technical_name = models.CharField(max_length=100, blank=True)
    description = models.CharField(max_length=300, blank=True, default="")
    field_type = models.CharField(max_length=20, choices=FieldType.choices, default=FieldType.SELECT)
    options = models.JSONField(default=list, blank=True)
    unit = models.CharField(max_length=20, blank=True, default="")
    required = models.BooleanField(default=False)
    filterable = models.BooleanField(default=True)
    show_in_detail = models.BooleanField(default=True)
    show_in_card = models.BooleanField(default=False)
    min_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_value = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    validation_pattern = models.CharField(max_length=200, blank=True, default="")
    error_message = models.CharField(max_length=200, blank=True, default="")
    group = models.CharField(max_length=100, blank=True, default="")
    sort_order = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)
    usage_count = models.PositiveIntegerField(default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category__name", "sort_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["category", "technical_name"], name="unique_attribute_technical_name_per_category"
            ),
        ]

    def __str__(self):
        return f"{self.category.name} / {self.name}"


class Product(models.Model):
    """Producto base

    El stock propio solo aplica cuando el producto no tiene variantes; con
    variantes el disponible es la suma de las variantes activas.

    Attributes:
        vendor (ForeignKey): Vendedor dueño (nulo = producto de la tienda)
        category (ForeignKey): Categoría del producto
        subcategory (ForeignKey): Subcategoría (opcional, de la misma categoría)
        supplier (ForeignKey): Proveedor habitual (opcional)
        name (CharField): Nombre del producto
        brand (CharField): Marca del producto
        description (TextField): Descripción del producto
        price (DecimalField): Precio de venta
        cost (DecimalField): Costo de compra
        stock (PositiveIntegerField): Stock propio (sin variantes)
        stock_minimum (PositiveIntegerField): Stock mínimo para alertas
        active (BooleanField): Estado del producto
        created_at (DateTimeField): Fecha de creación
        updated_at (DateTimeField): Fecha de actualización
        created_by (CharField): Usuario que creó el producto
        updated_by (CharField): Usuario que actualizó el producto
    """

    vendor = models.ForeignKey(
        Vendor,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="products",
        help_text="Vacío cuando el producto pertenece a la tienda",
    )
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="products"
    )
    subcategory = models.ForeignKey(
        Subcategory,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="products",
    )
    supplier = models.ForeignKey(
        Supplier,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="products",
    )
    name = models.CharField(max_length=150)
    brand = models.CharField(max_length=80, blank=True, default="")
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    stock = models.PositiveIntegerField(default=0)
    stock_minimum = models.PositiveIntegerField(default=1)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.CharField(max_length=150, blank=True, default="")
    updated_by = models.CharField(max_length=150, blank=True, default="")

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(condition=Q(price__gt=0), name="product_price_positive"),
            models.CheckConstraint(condition=Q(cost__gte=0), name="product_cost_non_negative"),
            models.CheckConstraint(condition=Q(stock__gte=0), name="product_stock_non_negative"),
        ]
        permissions = [
            ("manage_inventory", "Can manage inventory"),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.subcategory_id and self.category_id and self.subcategory.category_id != self.category_id:
            raise ValidationError({"subcategory": "La subcategoría no pertenece a la categoría seleccionada"})

    def _active_variants(self) -> list["ProductVariant"]:
        # Usa el prefetch de la vista cuando existe
        prefetched = getattr(self, "active_variants", None)
        if prefetched is not None:
            return list(prefetched)
        return list(self.variants.filter(active=True))

    @property
    def has_variants(self) -> bool:
        return bool(self._active_variants())

    @property
    def effective_price(self) -> Decimal:
        variant_prices = [variant.price for variant in self._active_variants() if variant.price is not None]
        if variant_prices:
            return min(variant_prices)
        return self.price

    @property
    def available_stock(self) -> int:
        variants = self._active_variants()
        if variants:
            return sum(variant.stock for variant in variants)
        return self.stock


class ProductVariant(models.Model):
    """Variante de producto (color y talla)

    Attributes:
        product (ForeignKey): Producto al que pertenece la variante
        color (CharField): Color de la variante
        size (CharField): Talla de la variante
        price (DecimalField): Precio propio (nulo = precio del producto)
        stock (PositiveIntegerField): Stock de la variante
        sku (CharField): Código único opcional
        active (BooleanField): Estado de la variante
    """

    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="variants"
    )
    color = models.CharField(max_length=50)
    size = models.CharField(max_length=20)
    price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    stock = models.PositiveIntegerField(default=0)
    sku = models.CharField(max_length=60, unique=True, null=True, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["product_id", "color", "size"]
        unique_together = ("product", "color", "size")
        constraints = [
            models.CheckConstraint(condition=Q(stock__gte=0), name="variant_stock_non_negative"),
            models.CheckConstraint(
                condition=Q(price__isnull=True) | Q(price__gt=0), name="variant_price_positive_or_null"
            ),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.color} / {self.size}"

    @property
    def effective_price(self) -> Decimal:
        return self.price if self.price is not None else self.product.price


class ProductImage(models.Model):
    """Imagen de producto

    Attributes:
        product (ForeignKey): Producto al que pertenece la imagen
        image (ImageField): Archivo de imagen
        is_primary (BooleanField): Si es la imagen principal del producto
        alt_text (CharField): Texto alternativo para accesibilidad y SEO
        sort_order (PositiveIntegerField): Orden en la galería
        file_size (IntegerField): Tamaño del archivo en bytes (autocompletado)
        width (IntegerField): Ancho de la imagen en píxeles (autocompletado)
        height (IntegerField): Alto de la imagen en píxeles (autocompletado)
    """

    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="images"
    )
    image = models.ImageField(upload_to="products/")
    is_primary = models.BooleanField(default=False)
    alt_text = models.CharField(max_length=200, blank=True, default="")
    sort_order = models.PositiveIntegerField(default=0)
    file_size = models.IntegerField(null=True, blank=True, editable=False)
    width = models.IntegerField(null=True, blank=True, editable=False)
    height = models.IntegerField(null=True, blank=True, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-is_primary", "sort_order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product"], condition=Q(is_primary=True), name="unique_primary_image_per_product"
            ),
        ]

    def __str__(self):
        return f"Image for {self.product.name}"


class ProductAttributeValue(models.Model):
    """Valor de un atributo de categoría para un producto

    `value` guarda el dato normalizado (multiselect como lista JSON) y
    `display_value` el texto listo para mostrar ("15 cm", "Sí").
    """

    product = models.ForeignKey(
        Product, on_delete=models.CASCADE, related_name="attribute_values"
    )
    attribute = models.ForeignKey(
        CategoryAttribute, on_delete=models.PROTECT, related_name="product_values"
    )
    value = models.TextField()
    display_value = models.CharField(max_length=500, blank=True, default="")
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "id"]
        unique_together = ("product", "attribute")

    def __str__(self):
        return f"{self.product.name} - {self.attribute.name}: {self.display_value or self.value}"


class Favorite(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="favorites")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="favorited_by")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        unique_together = ("user", "product")

    def __str__(self):
        return f"{self.user} ♥ {self.product}"


class Coupon(models.Model):
    """Cupón de descuento de monto fijo

    Attributes:
        code (CharField): Código del cupón (se guarda en mayúsculas)
        description (CharField): Descripción visible
        discount_amount (DecimalField): Monto a descontar del subtotal
        starts_at (DateTimeField): Inicio de vigencia (opcional)
        ends_at (DateTimeField): Fin de vigencia (opcional)
        active (BooleanField): Si está habilitado
        max_uses (PositiveIntegerField): Usos máximos en ventas (opcional)
    """

    code = models.CharField(max_length=40, unique=True)
    description = models.CharField(max_length=200, blank=True, default="")
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=Q(discount_amount__gt=0), name="coupon_discount_positive"),
        ]

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)


class Cart(models.Model):
    """Carrito persistente del cliente

    Un usuario tiene como máximo un carrito no cerrado.
    """

    class Status(models.TextChoices):
        EMPTY = "empty", "Vacio"
        IN_USE = "in_use", "En Uso"
        CLOSED = "closed", "Cerrado"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="carts")
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.EMPTY)
    coupon = models.ForeignKey(
        Coupon, on_delete=models.SET_NULL, null=True, blank=True, related_name="carts"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user"], condition=~Q(status="closed"), name="unique_open_cart_per_user"
            ),
        ]

    def __str__(self):
        return f"Cart #{self.pk} ({self.get_status_display()})"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="cart_items")
    variant = models.ForeignKey(
        ProductVariant, on_delete=models.CASCADE, null=True, blank=True, related_name="cart_items"
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="cart_item_quantity_min_1"),
            models.CheckConstraint(condition=Q(unit_price__gt=0), name="cart_item_price_positive"),
            models.UniqueConstraint(
                fields=["cart", "product", "variant"], name="unique_cart_product_variant"
            ),
            models.UniqueConstraint(
                fields=["cart", "product"],
                condition=Q(variant__isnull=True),
                name="unique_cart_product_without_variant",
            ),
        ]

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Sale(models.Model):
    """Venta generada desde el carrito

    Attributes:
        customer (ForeignKey): Cliente comprador
        status (CharField): Estado de la venta
        payment_method (CharField): Método de pago
        payment_reference (CharField): Referencia del depósito
        payment_proof (ImageField): Comprobante de transferencia
        subtotal (DecimalField): Suma de los detalles
        discount (DecimalField): Descuento por cupón
        shipping_total (DecimalField): Envío total (una tarifa por vendedor)
        total (DecimalField): Total a pagar
        is_multi_vendor (BooleanField): Si incluye productos de varios vendedores
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pendiente"
        PAID = "paid", "Pagada"
        SHIPPED = "shipped", "Enviado"
        DELIVERED = "delivered", "Entregado"
        COMPLETED = "completed", "Completada"
        CANCELED = "canceled", "Cancelada"
        REVERSED = "reversed", "Cancelada (revertida)"

    class PaymentMethod(models.TextChoices):
        TRANSFER = "transfer", "Transferencia"
        CASH = "cash", "Efectivo"
        CARD = "card", "Tarjeta"

    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="purchases")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.TRANSFER
    )
    payment_reference = models.CharField(max_length=80, blank=True, default="")
    payment_proof = models.ImageField(upload_to="payment_proofs/", null=True, blank=True)
    coupon = models.ForeignKey(
        Coupon, on_delete=models.SET_NULL, null=True, blank=True, related_name="sales"
    )
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    shipping_province = models.CharField(max_length=120, blank=True, default="")
    shipping_city = models.CharField(max_length=120, blank=True, default="")
    shipping_address = models.CharField(max_length=255, blank=True, default="")
    phone = models.CharField(max_length=20, blank=True, default="")
    is_multi_vendor = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("change_sale_status", "Can change sale status"),
            ("reverse_sale", "Can reverse sales"),
        ]

    def __str__(self):
        return f"Sale #{self.pk} - {self.get_status_display()}"


class SaleDetail(models.Model):
    """Detalle de venta

    Attributes:
        sale (ForeignKey): Venta a la que pertenece el detalle
        product (ForeignKey): Producto vendido
        variant (ForeignKey): Variante vendida (opcional)
        vendor (ForeignKey): Vendedor del producto al momento de la venta
        quantity (PositiveIntegerField): Cantidad vendida
        unit_price (DecimalField): Precio unitario
        discount (DecimalField): Descuento de línea
        subtotal (DecimalField): Cantidad por precio menos descuento
    """

    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="details")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="sale_details")
    variant = models.ForeignKey(
        ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name="sale_details"
    )
    vendor = models.ForeignKey(
        Vendor, on_delete=models.PROTECT, null=True, blank=True, related_name="sale_details"
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="sale_detail_quantity_min_1"),
            models.CheckConstraint(condition=Q(unit_price__gt=0), name="sale_detail_price_positive"),
        ]

    def __str__(self):
        return f"Detail of {self.sale} - {self.product.name} x {self.quantity}"


class SaleStatusHistory(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name="history")
    from_status = models.CharField(max_length=20, blank=True, default="")
    to_status = models.CharField(max_length=20)
    comment = models.CharField(max_length=255, blank=True, default="")
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        verbose_name_plural = "Sale status history"

    def __str__(self):
        return f"{self.sale_id}: {self.from_status or '-'} -> {self.to_status}"


class SaleReturn(models.Model):
    """Devolución parcial o total de una línea de venta"""

    detail = models.ForeignKey(SaleDetail, on_delete=models.CASCADE, related_name="returns")
    quantity = models.PositiveIntegerField()
    reason = models.CharField(max_length=255)
    approved = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="sale_return_quantity_min_1"),
        ]

    def __str__(self):
        return f"Return of detail {self.detail_id} x {self.quantity}"


class SaleReversal(models.Model):
    class Reason(models.TextChoices):
        FAKE_DEPOSIT = "deposito_falso", "Depósito falso"
        RETURN = "devolucion", "Devolución"
        OTHER = "otro", "Otro"

    sale = models.OneToOneField(Sale, on_delete=models.CASCADE, related_name="reversal")
    reason = models.CharField(max_length=20, choices=Reason.choices)
    note = models.TextField(blank=True, default="")
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Reversal of sale {self.sale_id} ({self.reason})"


class MovementInventory(models.Model):
    """Movimiento de inventario

    Attributes:
        product (ForeignKey): Producto afectado
        variant (ForeignKey): Variante afectada (opcional)
        sale (ForeignKey): Venta relacionada (salidas y devoluciones)
        supplier (ForeignKey): Proveedor de la entrada (compras)
        movement_type (CharField): Tipo de movimiento
        quantity (IntegerField): Cantidad con signo (negativa = salida)
        observation (TextField): Observación del movimiento
        created_at (DateTimeField): Fecha de creación
        created_by (CharField): Usuario que originó el movimiento
    """

    class MovementType(models.TextChoices):
        """Tipos de movimiento de inventario"""

        PURCHASE = "purchase", "Entrada"
        SALE_OUT = "sale_out", "Salida"
        SALE_RETURN = "sale_return", "Entrada por devolución"
        ADJUSTMENT = "adjustment", "Ajuste"

    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="movements")
    variant = models.ForeignKey(
        ProductVariant, on_delete=models.PROTECT, null=True, blank=True, related_name="movements"
    )
    sale = models.ForeignKey(
        Sale,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inventory_movements",
    )
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, null=True, blank=True, related_name="movements"
    )
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)
    quantity = models.IntegerField()
    observation = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.CharField(max_length=150)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Movement of {self.product.name} - {self.movement_type} {self.quantity}"


class BankAccount(models.Model):
    """Cuenta bancaria para pagos por transferencia

    Sin vendedor es una cuenta de la tienda.
    """

    class AccountType(models.TextChoices):
        SAVINGS = "savings", "Cuenta de Ahorros"
        CHECKING = "checking", "Cuenta Corriente"

    vendor = models.ForeignKey(
        Vendor, on_delete=models.CASCADE, null=True, blank=True, related_name="bank_accounts"
    )
    bank_code = models.CharField(max_length=50)
    bank_name = models.CharField(max_length=120)
    number = models.CharField(max_length=64)
    account_type = models.CharField(max_length=10, choices=AccountType.choices, default=AccountType.SAVINGS)
    holder = models.CharField(max_length=120, blank=True, default="")
    tax_id = models.CharField(max_length=20, blank=True, default="")
    logo_url = models.CharField(max_length=200, blank=True, default="")
    active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self):
        return f"{self.bank_name} {self.number}"


class ShippingRate(models.Model):
    """Regla de tarifa de envío

    Sin vendedor es una regla del administrador. Ciudad vacía cubre toda la
    provincia.
    """

    vendor = models.ForeignKey(
        Vendor, on_delete=models.CASCADE, null=True, blank=True, related_name="shipping_rates"
    )
    province = models.CharField(max_length=120)
    city = models.CharField(max_length=120, blank=True, default="")
    price = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("9999.99"))],
    )
    active = models.BooleanField(default=True)
    note = models.CharField(max_length=120, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["province", "city", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(price__gte=0), name="shipping_rate_price_non_negative"),
        ]

    def __str__(self):
        destination = f"{self.province} / {self.city}" if self.city else self.province
        return f"{destination}: {self.price}"


class CommissionRule(models.Model):
    """Porcentaje de comisión por vendedor, categoría o global"""

    vendor = models.ForeignKey(
        Vendor, on_delete=models.CASCADE, null=True, blank=True, related_name="commission_rules"
    )
    category = models.ForeignKey(
        Category, on_delete=models.CASCADE, null=True, blank=True, related_name="commission_rules"
    )
    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(
                condition=Q(percentage__gte=0) & Q(percentage__lte=100), name="commission_percentage_range"
            ),
        ]

    def __str__(self):
        scope = self.vendor or self.category or "global"
        return f"{scope}: {self.percentage}%"


class AuditLog(models.Model):
    """
    Log de auditoría para rastrear acciones realizadas en el sistema
    """
    action = models.CharField(max_length=100)
    entity = models.CharField(max_length=100)
    entity_id = models.PositiveIntegerField()
    performed_by = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)
    extra_data = models.JSONField(blank=True, null=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.action} - {self.entity} ({self.entity_id})"
