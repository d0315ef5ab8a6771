from rest_framework import serializers

from ..models import MovementInventory, Supplier


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            "id", "name", "contact", "phone", "email", "address", "tax_id",
            "last_purchase_date", "is_active", "created_at", "updated_at", "created_by",
        ]
        read_only_fields = ["last_purchase_date", "created_at", "updated_at", "created_by"]

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("El nombre del proveedor es obligatorio")
        duplicates = Supplier.objects.filter(name__iexact=value)
        if self.instance is not None:
            duplicates = duplicates.exclude(pk=self.instance.pk)
        if duplicates.exists():
            raise serializers.ValidationError(f"Ya existe un proveedor con el nombre '{value}'")
        return value


class PurchaseLineSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)


class PurchaseSerializer(serializers.Serializer):
    lines = PurchaseLineSerializer(many=True, allow_empty=False)
    observation = serializers.CharField(required=False, allow_blank=True, default="")


class SupplierMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = MovementInventory
        fields = [
            "id", "product", "product_name", "variant", "movement_type",
            "quantity", "observation", "created_at", "created_by",
        ]
