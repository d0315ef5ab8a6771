from rest_framework import serializers

from ..models import Category, CategoryAttribute, ProductAttributeValue
from .services import validate_definition


class CategoryAttributeSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)
    field_type_label = serializers.CharField(source="get_field_type_display", read_only=True)

    class Meta:
        model = CategoryAttribute
        fields = [
            "id", "category", "category_name", "name", "technical_name", "description",
            "field_type", "field_type_label", "options", "unit", "required", "filterable",
            "show_in_detail", "show_in_card", "min_value", "max_value", "validation_pattern",
            "error_message", "group", "sort_order", "active", "usage_count",
            "created_at", "updated_at",
        ]
        read_only_fields = ["technical_name", "usage_count", "created_at", "updated_at"]
        extra_kwargs = {"sort_order": {"required": False}}

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("El nombre del atributo es obligatorio")
        return value

    def validate_options(self, value):
        if not isinstance(value, list):
            raise serializers.ValidationError("Las opciones deben ser una lista")
        return [str(option).strip() for option in value if str(option).strip()]

    def validate(self, attrs):
        def current(field, default=None):
            return attrs.get(field, getattr(self.instance, field, default))

        errors = validate_definition(
            field_type=current("field_type", CategoryAttribute.FieldType.SELECT),
            options=current("options", []) or [],
            min_value=current("min_value"),
            max_value=current("max_value"),
            validation_pattern=current("validation_pattern", "") or "",
        )
        if errors:
            raise serializers.ValidationError({"definition": errors})
        if self.instance is not None and "category" in attrs and attrs["category"] != self.instance.category:
            if self.instance.product_values.exists():
                raise serializers.ValidationError(
                    {"category": "No se puede cambiar la categoría de un atributo que ya tiene valores"}
                )
        return attrs


class CopyAttributesSerializer(serializers.Serializer):
    source_category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())
    target_category = serializers.PrimaryKeyRelatedField(queryset=Category.objects.all())


class ProductAttributeValueSerializer(serializers.ModelSerializer):
    attribute_name = serializers.CharField(source="attribute.name", read_only=True)
    technical_name = serializers.CharField(source="attribute.technical_name", read_only=True)
    field_type = serializers.CharField(source="attribute.field_type", read_only=True)
    group = serializers.CharField(source="attribute.group", read_only=True)

    class Meta:
        model = ProductAttributeValue
        fields = [
            "id", "attribute", "attribute_name", "technical_name", "field_type", "group",
            "value", "display_value", "sort_order",
        ]


class ProductAttributeValuesInputSerializer(serializers.Serializer):
    values = serializers.DictField(child=serializers.JSONField(allow_null=True), allow_empty=True)
