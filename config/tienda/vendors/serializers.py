from django.contrib.auth import get_user_model
from rest_framework import serializers

from ..models import CommissionRule, Vendor

User = get_user_model()


class VendorSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source="user.username", read_only=True)

    class Meta:
        model = Vendor
        fields = [
            "id", "user", "username", "store_name", "tax_id", "phone", "email",
            "is_active", "created_at", "updated_at",
        ]
        read_only_fields = ["user", "is_active", "created_at", "updated_at"]


class VendorCreateSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    store_name = serializers.CharField(max_length=120)
    tax_id = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    email = serializers.EmailField(required=False, allow_blank=True, default="")


class CommissionRuleSerializer(serializers.ModelSerializer):
    vendor_name = serializers.CharField(source="vendor.store_name", read_only=True, default=None)
    category_name = serializers.CharField(source="category.name", read_only=True, default=None)

    class Meta:
        model = CommissionRule
        fields = [
            "id", "vendor", "vendor_name", "category", "category_name", "percentage", "active", "created_at",
        ]
        read_only_fields = ["created_at"]
