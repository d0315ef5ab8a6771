from django.contrib import admin

from .models import (
    AuditLog,
    BankAccount,
    Cart,
    CartItem,
    Category,
    CategoryAttribute,
    CommissionRule,
    Coupon,
    CustomerProfile,
    Favorite,
    MovementInventory,
    Product,
    ProductAttributeValue,
    ProductImage,
    ProductVariant,
    Sale,
    SaleDetail,
    SaleReturn,
    SaleReversal,
    SaleStatusHistory,
    ShippingRate,
    Subcategory,
    Supplier,
    Vendor,
)


class SubcategoryInline(admin.TabularInline):
    model = Subcategory
    extra = 0


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    readonly_fields = ("file_size", "width", "height")


class ProductAttributeValueInline(admin.TabularInline):
    model = ProductAttributeValue
    extra = 0
    readonly_fields = ("display_value",)


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0


class SaleDetailInline(admin.TabularInline):
    model = SaleDetail
    extra = 0
    readonly_fields = ("product", "variant", "vendor", "quantity", "unit_price", "discount", "subtotal")


class SaleStatusHistoryInline(admin.TabularInline):
    model = SaleStatusHistory
    extra = 0
    readonly_fields = ("from_status", "to_status", "comment", "changed_by", "created_at")


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("store_name", "user", "tax_id", "is_active", "created_at")
    list_filter = ("is_active",)
    search_fields = ("store_name", "user__username", "tax_id")


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "phone", "province", "city")
    search_fields = ("user__username", "user__email", "phone")


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "active", "created_at")
    search_fields = ("name",)
    inlines = [SubcategoryInline]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "vendor", "category", "price", "stock", "active")
    list_filter = ("active", "category", "vendor")
    search_fields = ("name", "brand", "description")
    inlines = [ProductVariantInline, ProductImageInline, ProductAttributeValueInline]


@admin.register(CategoryAttribute)
class CategoryAttributeAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "technical_name", "field_type", "required", "filterable", "active", "usage_count")
    list_filter = ("field_type", "active", "category")
    search_fields = ("name", "technical_name", "group")
    readonly_fields = ("usage_count",)


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ("name", "contact", "phone", "tax_id", "last_purchase_date", "is_active")
    list_filter = ("is_active",)
    search_fields = ("name", "contact", "tax_id")


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_amount", "starts_at", "ends_at", "active", "max_uses")
    list_filter = ("active",)
    search_fields = ("code",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "coupon", "updated_at")
    list_filter = ("status",)
    inlines = [CartItemInline]


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "status", "payment_method", "total", "is_multi_vendor", "created_at")
    list_filter = ("status", "payment_method", "is_multi_vendor")
    search_fields = ("customer__username", "payment_reference")
    inlines = [SaleDetailInline, SaleStatusHistoryInline]


@admin.register(MovementInventory)
class MovementInventoryAdmin(admin.ModelAdmin):
    list_display = ("product", "variant", "movement_type", "quantity", "sale", "supplier", "created_by", "created_at")
    list_filter = ("movement_type",)


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "entity", "entity_id", "performed_by", "created_at")
    list_filter = ("action", "entity")
    search_fields = ("performed_by",)


admin.site.register(
    [
        BankAccount,
        CommissionRule,
        Favorite,
        SaleReturn,
        SaleReversal,
        ShippingRate,
    ]
)
