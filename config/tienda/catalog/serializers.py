"""
Serializers del catálogo: categorías, productos, variantes, imágenes y favoritos
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from ..models import Category, Favorite, Product, ProductImage, ProductVariant, Subcategory
from .services import ImageService


def _resolve_image_url(image_field):
    if not image_field:
        return None
    try:
        return image_field.url
    except ValueError:
        return getattr(image_field, "name", None)


class SubcategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Subcategory
        fields = ["id", "category", "name", "active", "created_at"]
        read_only_fields = ["created_at"]


class CategorySerializer(serializers.ModelSerializer):
    subcategories = SubcategorySerializer(many=True, read_only=True)

    class Meta:
        model = Category
        fields = ["id", "name", "description", "active", "subcategories", "created_at"]
        read_only_fields = ["created_at"]


class ProductImageSerializer(serializers.ModelSerializer):
    """
    Serializer para imágenes de productos con validación y metadatos
    """
    url = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = ProductImage
        fields = [
            "id", "product", "image", "url", "is_primary", "alt_text", "sort_order",
            "file_size", "width", "height", "created_at",
        ]
        read_only_fields = ["file_size", "width", "height", "created_at"]

    def get_url(self, obj):
        return _resolve_image_url(obj.image)

    def validate_image(self, value):
        try:
            ImageService.validate_image_file(value)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(exc.messages)
        return value


class ProductVariantSerializer(serializers.ModelSerializer):
    """Serializer para variantes (color y talla)"""
    effective_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = ProductVariant
        fields = [
            "id", "product", "color", "size", "price", "effective_price",
            "stock", "sku", "active", "created_at", "updated_at",
        ]
        read_only_fields = ["created_at", "updated_at"]
        extra_kwargs = {"sku": {"allow_null": True, "required": False}}

    def validate_sku(self, value):
        # SKU vacío se guarda como NULL
        value = (value or "").strip()
        return value or None

    def validate(self, attrs):
        if self.instance is not None and "stock" in attrs and attrs["stock"] != self.instance.stock:
            raise serializers.ValidationError(
                {"stock": "El stock solo se modifica con el ajuste de stock del producto"}
            )
        return attrs


class ProductReadSerializer(serializers.ModelSerializer):
    """Producto con variantes activas, imágenes y precio efectivo"""
    category_name = serializers.CharField(source="category.name", read_only=True)
    subcategory_name = serializers.CharField(source="subcategory.name", read_only=True, default=None)
    vendor_name = serializers.CharField(source="vendor.store_name", read_only=True, default=None)
    effective_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    available_stock = serializers.IntegerField(read_only=True)
    has_variants = serializers.BooleanField(read_only=True)
    variants = serializers.SerializerMethodField()
    images = ProductImageSerializer(many=True, read_only=True)
    image_url = serializers.SerializerMethodField()
    attributes = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = [
            "id", "name", "brand", "description",
            "category", "category_name", "subcategory", "subcategory_name",
            "vendor", "vendor_name",
            "price", "effective_price", "available_stock", "has_variants",
            "variants", "images", "image_url", "attributes", "created_at",
        ]

    def get_variants(self, obj):
        return ProductVariantSerializer(obj._active_variants(), many=True).data

    def get_attributes(self, obj):
        values = getattr(obj, "detail_attributes", None)
        if values is None:
            values = obj.attribute_values.filter(
                attribute__active=True, attribute__show_in_detail=True
            ).select_related("attribute")
        return [
            {
                "name": value.attribute.name,
                "technical_name": value.attribute.technical_name,
                "group": value.attribute.group,
                "value": value.value,
                "display_value": value.display_value,
            }
            for value in values
        ]

    def get_image_url(self, obj):
        images = list(obj.images.all())
        if not images:
            return None
        primary = next((img for img in images if img.is_primary), images[0])
        return _resolve_image_url(primary.image)


class ProductSerializer(serializers.ModelSerializer):
    """Serializer de escritura para productos"""

    class Meta:
        model = Product
        fields = [
            "id", "vendor", "category", "subcategory", "supplier", "name", "brand", "description",
            "price", "cost", "stock", "stock_minimum", "active",
            "created_at", "updated_at", "created_by", "updated_by",
        ]
        read_only_fields = ("created_at", "updated_at", "created_by", "updated_by")

    def validate_supplier(self, value):
        if value is None:
            return value
        request = self.context.get("request")
        if request is not None and not request.user.is_staff:
            raise serializers.ValidationError("Solo un administrador puede asignar el proveedor")
        if not value.is_active:
            raise serializers.ValidationError(f"El proveedor '{value.name}' está inactivo")
        return value

    def validate(self, attrs):
        category = attrs.get("category", getattr(self.instance, "category", None))
        subcategory = attrs.get("subcategory", getattr(self.instance, "subcategory", None))
        if subcategory is not None and category is not None and subcategory.category_id != category.id:
            raise serializers.ValidationError(
                {"subcategory": "La subcategoría no pertenece a la categoría seleccionada"}
            )
        if self.instance is not None and "stock" in attrs and attrs["stock"] != self.instance.stock:
            raise serializers.ValidationError(
                {"stock": "El stock solo se modifica con el ajuste de stock del producto"}
            )
        return attrs


class StockAdjustmentSerializer(serializers.Serializer):
    variant_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField()
    mode = serializers.ChoiceField(choices=["increment", "set"], default="increment")
    observation = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["mode"] == "set" and attrs["quantity"] < 0:
            raise serializers.ValidationError({"quantity": "El stock final no puede ser negativo"})
        return attrs


class FavoriteSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = Favorite
        fields = ["id", "product", "product_name", "created_at"]
        read_only_fields = ["created_at"]

    def validate_product(self, value):
        if not value.active:
            raise serializers.ValidationError("Producto no disponible")
        return value
