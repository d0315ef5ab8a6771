import shutil
import tempfile
from datetime import timedelta
from decimal import Decimal
from io import BytesIO, StringIO

from django.contrib.auth.models import Group, User
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from PIL import Image
from rest_framework.test import APITestCase

from .attributes.services import (
    attribute_filters_for_category,
    clean_attribute_value,
    copy_attributes,
    duplicate_attribute,
    filter_by_attributes,
    generate_technical_name,
    save_product_attribute_values,
    unique_technical_name,
)
from .cart import services as cart_services
from .catalog.services import ImageService, adjust_stock
from .core.utils import normalize_text
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
    ShippingRate,
    Subcategory,
    Supplier,
    Vendor,
)
from .payments.resolver import bank_accounts_for, resolve_payment_decision
from .promotions.services import coupon_is_valid, discount_for, find_valid_coupon
from .reports.services import low_stock, sales_overview, vendor_commissions
from .sales.services import change_sale_status, checkout_cart, register_returns, reverse_sale
from .shipping.resolver import ShippingRateResolver, validate_province
from .shipping.services import quote_for_vendors
from .suppliers.services import register_purchase
from .vendors.services import (
    VENDOR_GROUP_NAME,
    commission_percentage_for,
    create_vendor_profile,
    deactivate_vendor,
)


def png_upload(name="comprobante.png", size=(20, 20)):
    buffer = BytesIO()
    Image.new("RGB", size, color="white").save(buffer, format="PNG")
    return SimpleUploadedFile(name, buffer.getvalue(), content_type="image/png")


class StoreFixturesMixin:
    """Catálogo mínimo: dos vendedores, un producto de la tienda y una tarifa base"""

    def create_store_fixtures(self):
        self.customer = User.objects.create_user(
            username="cliente", email="cliente@example.com", password="clave-segura-123"
        )
        CustomerProfile.objects.create(
            user=self.customer,
            province="Pichincha",
            city="Quito",
            address="Av. Amazonas 123",
            phone="0999999999",
        )
        self.admin = User.objects.create_user(username="admin", password="clave-segura-123", is_staff=True)

        self.vendor_user = User.objects.create_user(username="ana", password="clave-segura-123")
        self.vendor = Vendor.objects.create(user=self.vendor_user, store_name="Moda Ana")
        self.other_vendor_user = User.objects.create_user(username="lucia", password="clave-segura-123")
        self.other_vendor = Vendor.objects.create(user=self.other_vendor_user, store_name="Bolsos Lu")

        self.category = Category.objects.create(name="Blusas")
        self.bags = Category.objects.create(name="Bolsas")

        self.vendor_product = Product.objects.create(
            vendor=self.vendor,
            category=self.category,
            name="Blusa Campesina",
            price=Decimal("25.00"),
            stock=10,
            stock_minimum=2,
        )
        self.variant_product = Product.objects.create(
            vendor=self.other_vendor,
            category=self.bags,
            name="Bolso Tote",
            price=Decimal("40.00"),
        )
        self.variant = ProductVariant.objects.create(
            product=self.variant_product, color="Negro", size="U", stock=5
        )
        self.store_product = Product.objects.create(
            category=self.category,
            name="Top Básico",
            price=Decimal("12.00"),
            stock=3,
        )

        ShippingRate.objects.create(province="Pichincha", price=Decimal("5.00"))
        ShippingRate.objects.create(vendor=self.vendor, province="Pichincha", city="Quito", price=Decimal("3.00"))

    def checkout_basic_sale(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=2)
        cart_services.add_item(
            user=self.customer, product_id=self.variant_product.id, variant_id=self.variant.id, quantity=1
        )
        return checkout_cart(user=self.customer)


class NormalizeTextTest(TestCase):
    def test_normalize_text_ignores_case_spaces_and_accents(self):
        """La normalización permite comparar destinos escritos de distinta forma"""
        self.assertEqual(normalize_text("  Los Ríos "), "los rios")
        self.assertEqual(normalize_text("GALÁPAGOS"), normalize_text("galapagos"))
        self.assertEqual(normalize_text("   "), "")
        self.assertEqual(normalize_text(None), "")


class ShippingRateResolverTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.resolver = ShippingRateResolver()

    def test_vendor_city_rule_has_priority(self):
        """La regla del vendedor por ciudad gana a la de provincia y a las del administrador"""
        ShippingRate.objects.create(vendor=self.vendor, province="Pichincha", price=Decimal("4.00"))
        ShippingRate.objects.create(province="Pichincha", city="Quito", price=Decimal("6.00"))

        resolved = self.resolver.resolve(self.vendor.id, "Pichincha", "Quito")

        self.assertEqual(resolved.price, Decimal("3.00"))
        self.assertEqual(resolved.source, "vendor")
        self.assertEqual(resolved.level, "city")

    def test_vendor_province_rule_when_city_has_no_rule(self):
        """Sin regla de ciudad se usa la de provincia del vendedor"""
        ShippingRate.objects.create(vendor=self.vendor, province="Pichincha", price=Decimal("4.00"))

        resolved = self.resolver.resolve(self.vendor.id, "Pichincha", "Cayambe")

        self.assertEqual(resolved.price, Decimal("4.00"))
        self.assertEqual((resolved.source, resolved.level), ("vendor", "province"))

    def test_falls_back_to_admin_rules(self):
        """Un vendedor sin reglas usa las del administrador"""
        ShippingRate.objects.create(province="Pichincha", city="Quito", price=Decimal("6.00"))

        city_rate = self.resolver.resolve(self.other_vendor.id, "Pichincha", "Quito")
        province_rate = self.resolver.resolve(self.other_vendor.id, "Pichincha", "Sangolquí")

        self.assertEqual((city_rate.price, city_rate.source, city_rate.level), (Decimal("6.00"), "admin", "city"))
        self.assertEqual(
            (province_rate.price, province_rate.source, province_rate.level),
            (Decimal("5.00"), "admin", "province"),
        )

    def test_comparison_ignores_case_and_accents(self):
        """La provincia y ciudad se comparan normalizadas"""
        rate = self.resolver.get_rate(self.vendor.id, "  PICHINCHA ", "quito")
        self.assertEqual(rate, Decimal("3.00"))

        ShippingRate.objects.create(province="Los Ríos", price=Decimal("7.50"))
        self.assertEqual(ShippingRateResolver().get_rate(None, "los rios"), Decimal("7.50"))

    def test_store_products_use_only_admin_rules(self):
        """Los productos de la tienda no usan reglas de vendedores"""
        resolved = self.resolver.resolve(None, "Pichincha", "Quito")
        self.assertEqual(resolved.source, "admin")
        self.assertEqual(resolved.price, Decimal("5.00"))

    def test_inactive_rules_are_ignored(self):
        ShippingRate.objects.filter(vendor=self.vendor).update(active=False)
        resolved = ShippingRateResolver().resolve(self.vendor.id, "Pichincha", "Quito")
        self.assertEqual(resolved.source, "admin")

    def test_missing_destination_returns_none(self):
        self.assertIsNone(self.resolver.resolve(self.vendor.id, "", "Quito"))
        self.assertIsNone(self.resolver.resolve(self.vendor.id, "Azuay"))
        self.assertFalse(self.resolver.rate_exists(self.vendor.id, "Azuay"))

    def test_trace_skips_steps_after_match(self):
        """El diagnóstico marca como omitidos los pasos posteriores a la coincidencia"""
        steps = self.resolver.trace(self.vendor.id, "Pichincha", "Quito")

        self.assertEqual(len(steps), 4)
        self.assertTrue(steps[0].matched)
        self.assertTrue(all(step.skipped for step in steps[1:]))

    def test_trace_skips_city_levels_without_city(self):
        steps = self.resolver.trace(self.other_vendor.id, "Pichincha")

        self.assertTrue(steps[0].skipped)
        self.assertTrue(steps[2].skipped)
        self.assertTrue(steps[3].matched)

    def test_validate_province(self):
        self.assertEqual(validate_province("  Guayas "), "Guayas")
        with self.assertRaises(ValidationError):
            validate_province("   ")
        with self.assertRaises(ValidationError):
            validate_province("G")


class ShippingQuoteTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    def test_one_rate_per_distinct_vendor(self):
        """Se cobra una tarifa por vendedor aunque tenga varios productos"""
        quote = quote_for_vendors([self.vendor.id, self.vendor.id, self.other_vendor.id, None], "Pichincha", "Quito")

        self.assertEqual(quote.total, Decimal("13.00"))
        self.assertEqual(len(quote.lines), 3)
        self.assertEqual(quote.messages, [])

    def test_vendor_without_rate_adds_message(self):
        """Un vendedor sin tarifa aporta 0 y deja un mensaje"""
        quote = quote_for_vendors([self.vendor.id], "Azuay", "Cuenca")

        self.assertEqual(quote.total, Decimal("0.00"))
        self.assertFalse(quote.lines[0].has_rate)
        self.assertEqual(
            quote.messages, ["El vendedor Moda Ana no tiene tarifa configurada para Azuay / Cuenca."]
        )


class PaymentDecisionTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.store_account = BankAccount.objects.create(
            bank_code="pichincha", bank_name="Banco Pichincha", number="2200000000"
        )

    def test_single_vendor_pays_to_vendor_accounts(self):
        vendor_account = BankAccount.objects.create(
            vendor=self.vendor, bank_code="guayaquil", bank_name="Banco Guayaquil", number="1100"
        )
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        cart_services.add_item(user=self.customer, product_id=self.store_product.id, quantity=1)

        decision = resolve_payment_decision(cart_services.get_open_cart(self.customer))

        self.assertFalse(decision.is_multi_vendor)
        self.assertEqual(decision.single_vendor_id, self.vendor.id)
        self.assertEqual(list(bank_accounts_for(decision)), [vendor_account])

    def test_single_vendor_without_accounts_pays_to_store(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        decision = resolve_payment_decision(cart_services.get_open_cart(self.customer))
        self.assertEqual(list(bank_accounts_for(decision)), [self.store_account])

    def test_multi_vendor_cart_pays_to_store(self):
        BankAccount.objects.create(vendor=self.vendor, bank_code="guayaquil", bank_name="Banco Guayaquil", number="1100")
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        cart_services.add_item(
            user=self.customer, product_id=self.variant_product.id, variant_id=self.variant.id, quantity=1
        )

        decision = resolve_payment_decision(cart_services.get_open_cart(self.customer))

        self.assertTrue(decision.is_multi_vendor)
        self.assertIsNone(decision.single_vendor_id)
        self.assertEqual(list(bank_accounts_for(decision)), [self.store_account])

    def test_store_only_cart_is_not_multi_vendor(self):
        cart_services.add_item(user=self.customer, product_id=self.store_product.id, quantity=1)
        decision = resolve_payment_decision(cart_services.get_open_cart(self.customer))
        self.assertFalse(decision.is_multi_vendor)
        self.assertEqual(decision.vendor_ids, [])


class CommissionTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    @override_settings(STORE_DEFAULT_COMMISSION_PERCENT="10")
    def test_commission_priority(self):
        """Prioridad: vendedor, categoría, global y valor por defecto"""
        self.assertEqual(commission_percentage_for(self.vendor, self.category), Decimal("10"))

        CommissionRule.objects.create(percentage=Decimal("8.00"))
        self.assertEqual(commission_percentage_for(self.vendor, self.category), Decimal("8.00"))

        CommissionRule.objects.create(category=self.category, percentage=Decimal("12.00"))
        self.assertEqual(commission_percentage_for(self.vendor, self.category), Decimal("12.00"))
        self.assertEqual(commission_percentage_for(self.vendor, self.bags), Decimal("8.00"))

        CommissionRule.objects.create(vendor=self.vendor, percentage=Decimal("15.00"))
        self.assertEqual(commission_percentage_for(self.vendor, self.category), Decimal("15.00"))
        self.assertEqual(commission_percentage_for(self.other_vendor, self.category), Decimal("12.00"))

    def test_inactive_rules_are_ignored(self):
        CommissionRule.objects.create(vendor=self.vendor, percentage=Decimal("20.00"), active=False)
        self.assertEqual(commission_percentage_for(self.vendor), Decimal("10"))


class VendorServiceTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="vendedora", password="clave-segura-123")

    def test_create_vendor_profile_adds_group(self):
        vendor = create_vendor_profile(user=self.user, store_name="Moda Ana", performed_by="admin")

        self.assertTrue(vendor.is_active)
        self.assertTrue(self.user.groups.filter(name=VENDOR_GROUP_NAME).exists())
        self.assertTrue(AuditLog.objects.filter(action="vendor_enabled", entity_id=vendor.id).exists())

    def test_create_vendor_profile_twice_fails(self):
        create_vendor_profile(user=self.user, store_name="Moda Ana", performed_by="admin")
        with self.assertRaises(ValidationError) as context:
            create_vendor_profile(user=self.user, store_name="Otra", performed_by="admin")
        self.assertIn("ya es vendedor", str(context.exception))

    def test_deactivated_vendor_can_be_reactivated(self):
        vendor = create_vendor_profile(user=self.user, store_name="Moda Ana", performed_by="admin")
        deactivate_vendor(vendor=vendor, performed_by="admin")
        vendor.refresh_from_db()
        self.assertFalse(vendor.is_active)
        self.assertFalse(self.user.groups.filter(name=VENDOR_GROUP_NAME).exists())

        again = create_vendor_profile(user=self.user, store_name="Moda Ana 2", performed_by="admin")
        self.assertEqual(again.id, vendor.id)
        self.assertTrue(again.is_active)
        self.assertEqual(again.store_name, "Moda Ana 2")


class CouponServiceTest(TestCase):
    def setUp(self):
        self.coupon = Coupon.objects.create(code=" bienvenida ", discount_amount=Decimal("10.00"))

    def test_code_is_stored_uppercase(self):
        self.assertEqual(self.coupon.code, "BIENVENIDA")

    def test_find_valid_coupon_is_case_insensitive(self):
        self.assertEqual(find_valid_coupon("Bienvenida"), self.coupon)

    def test_invalid_coupons(self):
        now = timezone.now()
        self.assertTrue(coupon_is_valid(self.coupon))

        self.coupon.active = False
        self.assertFalse(coupon_is_valid(self.coupon))

        self.coupon.active = True
        self.coupon.starts_at = now + timedelta(days=1)
        self.assertFalse(coupon_is_valid(self.coupon))

        self.coupon.starts_at = None
        self.coupon.ends_at = now - timedelta(days=1)
        self.assertFalse(coupon_is_valid(self.coupon))

        with self.assertRaises(ValidationError):
            find_valid_coupon("NOEXISTE")
        with self.assertRaises(ValidationError):
            find_valid_coupon("")

    def test_max_uses_counts_non_canceled_sales(self):
        customer = User.objects.create_user(username="cliente", password="clave-segura-123")
        self.coupon.max_uses = 1
        self.coupon.save()

        Sale.objects.create(customer=customer, coupon=self.coupon, status=Sale.Status.CANCELED)
        self.assertTrue(coupon_is_valid(self.coupon))

        Sale.objects.create(customer=customer, coupon=self.coupon, status=Sale.Status.PENDING)
        self.assertFalse(coupon_is_valid(self.coupon))

    def test_discount_never_exceeds_subtotal(self):
        self.assertEqual(discount_for(self.coupon, Decimal("50.00")), Decimal("10.00"))
        self.assertEqual(discount_for(self.coupon, Decimal("6.00")), Decimal("6.00"))
        self.assertEqual(discount_for(None, Decimal("6.00")), Decimal("0.00"))


class CartServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    def test_add_item_creates_cart_in_use(self):
        item = cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=2)

        self.assertEqual(item.cart.status, Cart.Status.IN_USE)
        self.assertEqual(item.unit_price, Decimal("25.00"))
        self.assertEqual(cart_services.cart_item_count(self.customer), 2)

    def test_add_same_product_accumulates_quantity(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=2)
        item = cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=3)

        self.assertEqual(item.quantity, 5)
        self.assertEqual(CartItem.objects.filter(cart__user=self.customer).count(), 1)

    def test_product_with_variants_requires_variant(self):
        with self.assertRaises(ValidationError) as context:
            cart_services.add_item(user=self.customer, product_id=self.variant_product.id, quantity=1)
        self.assertIn("color y talla", str(context.exception))

    def test_variant_must_belong_to_product(self):
        with self.assertRaises(ValidationError):
            cart_services.add_item(
                user=self.customer, product_id=self.vendor_product.id, variant_id=self.variant.id, quantity=1
            )

    def test_insufficient_stock(self):
        with self.assertRaises(ValidationError) as context:
            cart_services.add_item(
                user=self.customer, product_id=self.variant_product.id, variant_id=self.variant.id, quantity=6
            )
        self.assertIn("Stock insuficiente", str(context.exception))

    @override_settings(STORE_MAX_ITEM_QUANTITY=5)
    def test_quantity_cap(self):
        with self.assertRaises(ValidationError) as context:
            cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=6)
        self.assertIn("La cantidad máxima por producto es 5", str(context.exception))

    def test_inactive_vendor_products_are_unavailable(self):
        self.vendor.is_active = False
        self.vendor.save()
        with self.assertRaises(ValidationError):
            cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)

    def test_update_and_remove_item(self):
        item = cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)

        updated, subtotal = cart_services.update_item_quantity(user=self.customer, item_id=item.id, quantity=4)
        self.assertEqual(updated.quantity, 4)
        self.assertEqual(subtotal, Decimal("100.00"))

        cart = cart_services.remove_item(user=self.customer, item_id=item.id)
        self.assertEqual(cart.status, Cart.Status.EMPTY)
        self.assertEqual(cart_services.cart_item_count(self.customer), 0)

    def test_update_rejects_variant_deactivated_after_adding(self):
        """Una variante desactivada después de agregarla ya no admite cambios de cantidad"""
        item = cart_services.add_item(
            user=self.customer, product_id=self.variant_product.id, variant_id=self.variant.id, quantity=1
        )
        ProductVariant.objects.filter(pk=self.variant.pk).update(active=False)

        with self.assertRaises(ValidationError) as context:
            cart_services.update_item_quantity(user=self.customer, item_id=item.id, quantity=2)

        self.assertIn("ya no está disponible", str(context.exception))
        item.refresh_from_db()
        self.assertEqual(item.quantity, 1)

    def test_update_rejects_deactivated_product(self):
        item = cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        Product.objects.filter(pk=self.vendor_product.pk).update(active=False)

        with self.assertRaises(ValidationError):
            cart_services.update_item_quantity(user=self.customer, item_id=item.id, quantity=2)

    def test_other_users_item_is_not_found(self):
        item = cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        with self.assertRaises(CartItem.DoesNotExist):
            cart_services.remove_item(user=self.admin, item_id=item.id)

    def test_cart_summary_with_coupon(self):
        Coupon.objects.create(code="DESC5", discount_amount=Decimal("5.00"))
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=2)
        cart = cart_services.apply_coupon(user=self.customer, code="desc5")

        summary = cart_services.cart_summary(cart)

        self.assertEqual(summary["items_count"], 2)
        self.assertEqual(summary["subtotal"], "50.00")
        self.assertEqual(summary["coupon"], "DESC5")
        self.assertEqual(summary["discount"], "5.00")
        self.assertEqual(summary["total_before_shipping"], "45.00")

    def test_invalid_coupon_removes_applied_coupon(self):
        Coupon.objects.create(code="DESC5", discount_amount=Decimal("5.00"))
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        cart_services.apply_coupon(user=self.customer, code="DESC5")

        with self.assertRaises(ValidationError):
            cart_services.apply_coupon(user=self.customer, code="NOEXISTE")

        self.assertIsNone(cart_services.get_open_cart(self.customer).coupon)


class CheckoutServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    def test_checkout_creates_pending_sale(self):
        """El checkout crea una venta pendiente, descuenta stock y cierra el carrito"""
        sale = self.checkout_basic_sale()

        self.assertEqual(sale.status, Sale.Status.PENDING)
        self.assertEqual(sale.subtotal, Decimal("90.00"))
        # Moda Ana: 3.00 (ciudad), Bolsos Lu: 5.00 (admin provincia)
        self.assertEqual(sale.shipping_total, Decimal("8.00"))
        self.assertEqual(sale.total, Decimal("98.00"))
        self.assertTrue(sale.is_multi_vendor)
        self.assertEqual((sale.shipping_province, sale.shipping_city), ("Pichincha", "Quito"))
        self.assertEqual(sale.details.count(), 2)
        self.assertEqual(set(sale.details.values_list("vendor_id", flat=True)), {self.vendor.id, self.other_vendor.id})

        self.vendor_product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 8)
        self.assertEqual(self.variant.stock, 4)

        movements = MovementInventory.objects.filter(sale=sale, movement_type=MovementInventory.MovementType.SALE_OUT)
        self.assertEqual(sorted(movements.values_list("quantity", flat=True)), [-2, -1])

        cart = Cart.objects.get(user=self.customer)
        self.assertEqual(cart.status, Cart.Status.CLOSED)
        self.assertFalse(cart.items.exists())
        self.assertEqual(sale.history.get().to_status, Sale.Status.PENDING)
        self.assertEqual(sale.shipping_messages, [])

    def test_checkout_applies_coupon(self):
        coupon = Coupon.objects.create(code="BIENVENIDA", discount_amount=Decimal("10.00"))
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=2)
        cart_services.apply_coupon(user=self.customer, code="BIENVENIDA")

        sale = checkout_cart(user=self.customer)

        self.assertEqual(sale.coupon, coupon)
        self.assertEqual(sale.discount, Decimal("10.00"))
        self.assertEqual(sale.total, Decimal("43.00"))

    def test_checkout_requires_province(self):
        CustomerProfile.objects.filter(user=self.customer).update(province="")
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)

        with self.assertRaises(ValidationError) as context:
            checkout_cart(user=self.customer)
        self.assertIn("La provincia no puede estar vacía", str(context.exception))
        self.assertFalse(Sale.objects.exists())

    def test_checkout_reports_vendor_without_rate(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)

        sale = checkout_cart(user=self.customer, province="Azuay", city="Cuenca")

        self.assertEqual(sale.shipping_total, Decimal("0.00"))
        self.assertEqual(len(sale.shipping_messages), 1)

    def test_checkout_insufficient_stock_changes_nothing(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=4)
        Product.objects.filter(pk=self.vendor_product.pk).update(stock=3)

        with self.assertRaises(ValidationError) as context:
            checkout_cart(user=self.customer)

        self.assertIn("Stock insuficiente", str(context.exception))
        self.assertFalse(Sale.objects.exists())
        self.vendor_product.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 3)
        self.assertEqual(cart_services.get_open_cart(self.customer).status, Cart.Status.IN_USE)

    def test_checkout_without_cart_or_items(self):
        with self.assertRaises(ValidationError):
            checkout_cart(user=self.customer)

        cart_services.get_or_create_open_cart(self.customer)
        with self.assertRaises(ValidationError) as context:
            checkout_cart(user=self.customer)
        self.assertIn("no tiene productos", str(context.exception))

    def test_checkout_inactive_user(self):
        cart_services.add_item(user=self.customer, product_id=self.vendor_product.id, quantity=1)
        self.customer.is_active = False
        self.customer.save()

        with self.assertRaises(ValidationError) as context:
            checkout_cart(user=self.customer)
        self.assertIn("desactivada", str(context.exception))


class SaleStatusServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.sale = self.checkout_basic_sale()

    def test_allowed_transitions_set_timestamps(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.SHIPPED, user=self.admin)
        sale = change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.DELIVERED, user=self.admin)

        self.assertEqual(sale.status, Sale.Status.DELIVERED)
        self.assertIsNotNone(sale.paid_at)
        self.assertIsNotNone(sale.shipped_at)
        self.assertIsNotNone(sale.delivered_at)
        self.assertEqual(
            list(sale.history.values_list("to_status", flat=True)),
            ["pending", "paid", "shipped", "delivered"],
        )

    def test_invalid_transition(self):
        with self.assertRaises(ValidationError) as context:
            change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.SHIPPED, user=self.admin)
        self.assertIn("Transición no permitida", str(context.exception))

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            change_sale_status(sale_id=self.sale.id, new_status="lost", user=self.admin)

    def test_cancel_restocks(self):
        sale = change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.CANCELED, user=self.admin)

        self.assertIsNotNone(sale.canceled_at)
        self.vendor_product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 10)
        self.assertEqual(self.variant.stock, 5)
        self.assertEqual(
            MovementInventory.objects.filter(sale=sale, movement_type=MovementInventory.MovementType.SALE_RETURN).count(),
            2,
        )

        with self.assertRaises(ValidationError):
            change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)


class ReverseSaleServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.sale = self.checkout_basic_sale()
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)

    def test_reverse_sale_restocks_and_records_reversal(self):
        sale = reverse_sale(sale_id=self.sale.id, reason="DEPOSITO_FALSO", user=self.admin)

        self.assertEqual(sale.status, Sale.Status.REVERSED)
        self.assertIsNotNone(sale.canceled_at)
        self.assertEqual(SaleReversal.objects.get(sale=sale).reason, SaleReversal.Reason.FAKE_DEPOSIT)
        self.assertEqual(SaleReturn.objects.filter(detail__sale=sale).count(), 2)

        self.vendor_product.refresh_from_db()
        self.variant.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 10)
        self.assertEqual(self.variant.stock, 5)

    def test_unknown_reason_is_stored_as_other(self):
        reverse_sale(sale_id=self.sale.id, reason="cliente arrepentido", note="Llamó por teléfono", user=self.admin)

        reversal = SaleReversal.objects.get(sale=self.sale)
        self.assertEqual(reversal.reason, SaleReversal.Reason.OTHER)
        self.assertEqual(
            set(SaleReturn.objects.filter(detail__sale=self.sale).values_list("reason", flat=True)),
            {"otro: Llamó por teléfono"},
        )

    def test_reverse_twice_fails(self):
        reverse_sale(sale_id=self.sale.id, reason="otro", user=self.admin)
        with self.assertRaises(ValidationError) as context:
            reverse_sale(sale_id=self.sale.id, reason="otro", user=self.admin)
        self.assertIn("ya se encuentra cancelada", str(context.exception))

    def test_reverse_only_restocks_units_not_returned(self):
        detail = self.sale.details.get(product=self.vendor_product)
        register_returns(
            sale_id=self.sale.id, lines=[{"detail_id": detail.id, "quantity": 1}], reason="Talla", user=self.admin
        )

        reverse_sale(sale_id=self.sale.id, reason="devolucion", user=self.admin)

        self.vendor_product.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 10)
        self.assertEqual(
            sum(SaleReturn.objects.filter(detail=detail).values_list("quantity", flat=True)), 2
        )

    def test_blank_reason_fails(self):
        with self.assertRaises(ValidationError):
            reverse_sale(sale_id=self.sale.id, reason="  ", user=self.admin)


class RegisterReturnsServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.sale = self.checkout_basic_sale()
        self.detail = self.sale.details.get(product=self.vendor_product)
        self.variant_detail = self.sale.details.get(variant=self.variant)

    def test_returns_require_paid_sale(self):
        with self.assertRaises(ValidationError):
            register_returns(
                sale_id=self.sale.id, lines=[{"detail_id": self.detail.id, "quantity": 1}], reason="x", user=self.admin
            )

    def test_partial_return_restocks(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)

        result = register_returns(
            sale_id=self.sale.id,
            lines=[{"detail_id": self.detail.id, "quantity": 1}],
            reason="Talla incorrecta",
            user=self.admin,
        )

        self.assertFalse(result["sale_canceled"])
        self.assertEqual(len(result["returns"]), 1)
        self.vendor_product.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 9)
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.status, Sale.Status.PAID)

    def test_return_over_remaining_quantity_fails_without_changes(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)
        register_returns(
            sale_id=self.sale.id, lines=[{"detail_id": self.detail.id, "quantity": 1}], reason="Talla", user=self.admin
        )

        with self.assertRaises(ValidationError) as context:
            register_returns(
                sale_id=self.sale.id,
                lines=[
                    {"detail_id": self.variant_detail.id, "quantity": 1},
                    {"detail_id": self.detail.id, "quantity": 2},
                ],
                reason="Talla",
                user=self.admin,
            )

        self.assertIn("permite devolver como máximo 1 unidades", str(context.exception))
        self.assertEqual(SaleReturn.objects.count(), 1)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 4)

    def test_duplicate_lines_are_merged(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)

        result = register_returns(
            sale_id=self.sale.id,
            lines=[{"detail_id": self.detail.id, "quantity": 1}, {"detail_id": self.detail.id, "quantity": 1}],
            reason="Defecto",
            user=self.admin,
        )

        self.assertEqual(len(result["returns"]), 1)
        self.assertEqual(SaleReturn.objects.get().quantity, 2)

    def test_full_return_cancels_sale(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)

        result = register_returns(
            sale_id=self.sale.id,
            lines=[
                {"detail_id": self.detail.id, "quantity": 2},
                {"detail_id": self.variant_detail.id, "quantity": 1},
            ],
            reason="No le gustó",
            user=self.admin,
        )

        self.assertTrue(result["sale_canceled"])
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.status, Sale.Status.CANCELED)

    def test_line_from_another_sale_fails(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)
        with self.assertRaises(ValidationError) as context:
            register_returns(
                sale_id=self.sale.id, lines=[{"detail_id": 999999, "quantity": 1}], reason="x", user=self.admin
            )
        self.assertIn("no pertenece a la venta", str(context.exception))


class SaleTotalsSignalTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    def test_sale_totals_follow_details(self):
        sale = Sale.objects.create(customer=self.customer, shipping_total=Decimal("5.00"))
        detail = SaleDetail.objects.create(
            sale=sale,
            product=self.vendor_product,
            vendor=self.vendor,
            quantity=2,
            unit_price=Decimal("25.00"),
            subtotal=Decimal("50.00"),
        )
        sale.refresh_from_db()
        self.assertEqual(sale.subtotal, Decimal("50.00"))
        self.assertEqual(sale.total, Decimal("55.00"))

        detail.delete()
        sale.refresh_from_db()
        self.assertEqual(sale.total, Decimal("5.00"))


class StockAdjustmentServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()

    def test_increment_and_set(self):
        self.assertEqual(adjust_stock(product_id=self.vendor_product.id, quantity=5, user=self.admin), 15)
        self.assertEqual(
            adjust_stock(product_id=self.vendor_product.id, quantity=4, mode="set", user=self.admin), 4
        )
        self.assertEqual(
            list(
                MovementInventory.objects.filter(product=self.vendor_product)
                .order_by("id")
                .values_list("quantity", flat=True)
            ),
            [5, -11],
        )

    def test_negative_result_fails(self):
        with self.assertRaises(ValidationError):
            adjust_stock(product_id=self.vendor_product.id, quantity=-11, user=self.admin)

    def test_variant_required_for_products_with_variants(self):
        with self.assertRaises(ValidationError):
            adjust_stock(product_id=self.variant_product.id, quantity=1, user=self.admin)

        stock = adjust_stock(
            product_id=self.variant_product.id, variant_id=self.variant.id, quantity=2, user=self.admin
        )
        self.assertEqual(stock, 7)


class ImageServiceTest(TestCase):
    def test_validate_image_file_success(self):
        ImageService.validate_image_file(png_upload())

    def test_validate_image_file_too_large(self):
        with self.assertRaises(ValidationError) as context:
            ImageService.validate_image_file(png_upload(), max_size=10)
        self.assertIn("demasiado grande", str(context.exception))

    def test_validate_image_file_invalid_format(self):
        fake = SimpleUploadedFile("archivo.png", b"no es una imagen", content_type="image/png")
        with self.assertRaises(ValidationError):
            ImageService.validate_image_file(fake)

    def test_extract_image_metadata(self):
        metadata = ImageService.extract_image_metadata(png_upload(size=(30, 15)))
        self.assertEqual((metadata["width"], metadata["height"], metadata["format"]), (30, 15, "PNG"))


class ReportsServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.sale = self.checkout_basic_sale()

    def test_vendor_commissions(self):
        CommissionRule.objects.create(vendor=self.vendor, percentage=Decimal("15.00"))

        rows = {row["vendor_name"]: row for row in vendor_commissions()}

        self.assertEqual(rows["Moda Ana"]["gross"], "50.00")
        self.assertEqual(rows["Moda Ana"]["commission"], "7.50")
        self.assertEqual(rows["Moda Ana"]["net"], "42.50")
        self.assertEqual(rows["Bolsos Lu"]["gross"], "40.00")
        self.assertEqual(rows["Bolsos Lu"]["commission"], "4.00")
        self.assertEqual(rows["Bolsos Lu"]["sales_count"], 1)

    def test_commissions_exclude_canceled_sales(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.CANCELED, user=self.admin)
        self.assertEqual(vendor_commissions(), [])

    def test_commissions_filtered_by_vendor(self):
        rows = vendor_commissions(vendor=self.other_vendor)
        self.assertEqual([row["vendor_id"] for row in rows], [self.other_vendor.id])

    def test_sales_overview(self):
        report = sales_overview()

        self.assertEqual(report["total_sales"], 1)
        self.assertEqual(report["revenue"], "98.00")
        self.assertEqual(report["units_sold"], 3)
        self.assertEqual(report["sales_by_status"]["pending"]["count"], 1)
        self.assertEqual(report["top_products"][0]["product_name"], "Blusa Campesina")
        # cliente y vendedores, sin staff
        self.assertEqual(report["new_customers"], 3)

    def test_low_stock(self):
        data = low_stock(threshold=3)
        names = {row["product_name"] for row in data}

        # Top Básico (3) y Bolso Tote (variante con 4 > 3 no aparece)
        self.assertIn("Top Básico", names)
        self.assertNotIn("Bolso Tote", names)
        self.assertNotIn("Blusa Campesina", names)

        vendor_data = low_stock(vendor=self.vendor, threshold=10)
        self.assertEqual([row["product_name"] for row in vendor_data], ["Blusa Campesina"])


class ManagementCommandsTest(TestCase):
    def test_seed_store_is_idempotent(self):
        call_command("seed_store", "--with-demo", stdout=StringIO())
        call_command("seed_store", "--with-demo", stdout=StringIO())

        self.assertEqual(Category.objects.count(), 10)
        self.assertTrue(Subcategory.objects.filter(category__name="Jeans", name="Mom").exists())
        self.assertEqual(ShippingRate.objects.filter(vendor__isnull=True).count(), 1)
        self.assertEqual(BankAccount.objects.filter(vendor__isnull=True).count(), 1)

    def test_setup_permissions_creates_groups(self):
        call_command("setup_permissions", stdout=StringIO())

        for name in ["Customers", "Vendors", "StoreOps", "Managers"]:
            self.assertTrue(Group.objects.filter(name=name).exists())
        self.assertTrue(Group.objects.get(name="Managers").permissions.filter(codename="reverse_sale").exists())

    def test_create_vendor(self):
        call_command(
            "create_vendor",
            "--username=ana",
            "--email=ana@example.com",
            "--store-name=Moda Ana",
            "--password=clave-segura-123",
            stdout=StringIO(),
        )
        vendor = Vendor.objects.get(user__username="ana")
        self.assertEqual(vendor.store_name, "Moda Ana")
        self.assertTrue(vendor.is_active)


class ApiTestBase(StoreFixturesMixin, APITestCase):
    def setUp(self):
        self.create_store_fixtures()


class CatalogApiTest(ApiTestBase):
    def test_catalog_is_public(self):
        response = self.client.get("/api/catalog/products/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "CATALOG_OK")
        self.assertEqual(response.data["count"], 3)
        self.assertNotIn("X-Cart-Items", response)

    def test_catalog_hides_inactive_vendors_and_out_of_stock(self):
        self.other_vendor.is_active = False
        self.other_vendor.save()
        Product.objects.filter(pk=self.store_product.pk).update(stock=0)

        response = self.client.get("/api/catalog/products/")

        names = [product["name"] for product in response.data["products"]]
        self.assertEqual(names, ["Blusa Campesina"])

    def test_catalog_filters_by_price(self):
        response = self.client.get("/api/catalog/products/", {"min_price": "20", "ordering": "-price"})
        names = [product["name"] for product in response.data["products"]]
        self.assertEqual(names, ["Bolso Tote", "Blusa Campesina"])

    def test_catalog_can_include_out_of_stock(self):
        Product.objects.filter(pk=self.store_product.pk).update(stock=0)

        default = self.client.get("/api/catalog/products/")
        with_out_of_stock = self.client.get("/api/catalog/products/", {"include_out_of_stock": "true"})

        self.assertEqual(default.data["count"], 2)
        self.assertEqual(with_out_of_stock.data["count"], 3)
        self.assertIn("Top Básico", [product["name"] for product in with_out_of_stock.data["products"]])

    def test_catalog_orderings(self):
        now = timezone.now()
        Product.objects.filter(pk=self.vendor_product.pk).update(created_at=now - timedelta(days=2))
        Product.objects.filter(pk=self.variant_product.pk).update(created_at=now - timedelta(days=1))
        Product.objects.filter(pk=self.store_product.pk).update(created_at=now)

        def names(ordering):
            response = self.client.get("/api/catalog/products/", {"ordering": ordering})
            return [product["name"] for product in response.data["products"]]

        self.assertEqual(names("name"), ["Blusa Campesina", "Bolso Tote", "Top Básico"])
        self.assertEqual(names("-name"), ["Top Básico", "Bolso Tote", "Blusa Campesina"])
        self.assertEqual(names("newest"), ["Top Básico", "Bolso Tote", "Blusa Campesina"])
        self.assertEqual(names("desconocido"), names("name"))

    def test_product_detail_not_found(self):
        Product.objects.filter(pk=self.vendor_product.pk).update(active=False)
        response = self.client.get(f"/api/catalog/products/{self.vendor_product.id}/")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "PRODUCT_NOT_FOUND")


class CartApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)

    def test_cart_count_header(self):
        response = self.client.post(
            "/api/cart/items/", {"product_id": self.vendor_product.id, "quantity": 3}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "CART_ITEM_ADDED")
        self.assertEqual(response["X-Cart-Items"], "3")

        response = self.client.get("/api/catalog/products/")
        self.assertEqual(response["X-Cart-Items"], "3")

    def test_add_item_stock_conflict_returns_409(self):
        response = self.client.post(
            "/api/cart/items/", {"product_id": self.store_product.id, "quantity": 4}, format="json"
        )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "CART_ADD_FAILED")
        self.assertIn("Stock insuficiente", response.data["detail"])

    def test_update_missing_item_returns_404(self):
        response = self.client.patch("/api/cart/items/999999/", {"quantity": 2}, format="json")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "CART_ITEM_NOT_FOUND")

    def test_coupon_apply_and_remove(self):
        Coupon.objects.create(code="DESC5", discount_amount=Decimal("5.00"))
        self.client.post("/api/cart/items/", {"product_id": self.vendor_product.id}, format="json")

        response = self.client.post("/api/cart/coupon/", {"code": "desc5"}, format="json")
        self.assertEqual(response.data["code"], "COUPON_APPLIED")
        self.assertEqual(response.data["cart"]["discount"], "5.00")

        response = self.client.delete("/api/cart/coupon/")
        self.assertEqual(response.data["code"], "COUPON_REMOVED")
        self.assertIsNone(response.data["cart"]["coupon"])

    def test_cart_requires_authentication(self):
        self.client.force_authenticate(user=None)
        response = self.client.get("/api/cart/")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data["code"], "NOT_AUTHENTICATED")


class CouponValidateApiTest(ApiTestBase):
    def test_valid_coupon(self):
        Coupon.objects.create(code="BIENVENIDA", discount_amount=Decimal("10.00"))
        response = self.client.get("/api/coupons/validate/", {"code": "bienvenida"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "COUPON_VALID")
        self.assertEqual(response.data["coupon"]["discount_amount"], "10.00")

    def test_invalid_coupon(self):
        response = self.client.get("/api/coupons/validate/", {"code": "NOEXISTE"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "COUPON_INVALID")


class CheckoutApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)

    def test_checkout_creates_sale(self):
        self.client.post("/api/cart/items/", {"product_id": self.vendor_product.id, "quantity": 2}, format="json")

        response = self.client.post("/api/checkout/", {}, format="json")

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "CHECKOUT_CREATED")
        self.assertEqual(response.data["sale"]["status"], "pending")
        self.assertEqual(response.data["shipping_messages"], [])
        self.assertEqual(response["X-Cart-Items"], "0")

    def test_checkout_stock_conflict_returns_409(self):
        self.client.post("/api/cart/items/", {"product_id": self.vendor_product.id, "quantity": 5}, format="json")
        Product.objects.filter(pk=self.vendor_product.pk).update(stock=1)

        response = self.client.post("/api/checkout/", {"province": "Pichincha"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "CHECKOUT_FAILED")
        self.assertFalse(Sale.objects.exists())

    def test_checkout_empty_cart_returns_400(self):
        response = self.client.post("/api/checkout/", {}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "CHECKOUT_FAILED")


class SaleApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.sale = self.checkout_basic_sale()
        self.media_root = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_customer_cannot_change_status(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.post(f"/api/sales/{self.sale.id}/status/", {"status": "paid"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data["code"], "PERMISSION_DENIED")

    def test_admin_changes_status(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f"/api/sales/{self.sale.id}/status/", {"status": "paid"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "SALE_STATUS_CHANGED")
        self.assertEqual(response.data["status"], "paid")

    def test_invalid_transition_returns_400(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f"/api/sales/{self.sale.id}/status/", {"status": "delivered"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "SALE_STATUS_CHANGE_FAILED")

    def test_admin_reverses_sale(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            f"/api/sales/{self.sale.id}/reverse/", {"reason": "deposito_falso"}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "SALE_REVERSED")
        self.assertEqual(response.data["status"], "reversed")

    def test_admin_registers_return(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)
        detail = self.sale.details.get(product=self.vendor_product)
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            f"/api/sales/{self.sale.id}/returns/",
            {"reason": "Talla", "lines": [{"detail_id": detail.id, "quantity": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "SALE_RETURN_CREATED")
        self.assertFalse(response.data["sale_canceled"])

    def test_sales_visibility(self):
        """El cliente ve sus ventas, un vendedor las que incluyen sus productos"""
        stranger = User.objects.create_user(username="otro", password="clave-segura-123")
        self.client.force_authenticate(user=stranger)
        self.assertEqual(self.client.get(f"/api/sales/{self.sale.id}/").status_code, 404)

        self.client.force_authenticate(user=self.vendor_user)
        self.assertEqual(self.client.get(f"/api/sales/{self.sale.id}/").status_code, 200)

        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/sales/")
        self.assertEqual(response.data["count"], 1)

    def test_customer_uploads_payment_proof(self):
        self.client.force_authenticate(user=self.customer)
        with override_settings(MEDIA_ROOT=self.media_root):
            response = self.client.post(
                f"/api/sales/{self.sale.id}/payment-proof/",
                {"image": png_upload(), "payment_reference": "DEP-001"},
                format="multipart",
            )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "PAYMENT_PROOF_UPLOADED")
        self.sale.refresh_from_db()
        self.assertEqual(self.sale.payment_reference, "DEP-001")
        self.assertTrue(self.sale.payment_proof)

    def test_payment_proof_only_for_pending_sales(self):
        change_sale_status(sale_id=self.sale.id, new_status=Sale.Status.PAID, user=self.admin)
        self.client.force_authenticate(user=self.customer)

        response = self.client.post(
            f"/api/sales/{self.sale.id}/payment-proof/", {"image": png_upload()}, format="multipart"
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "PAYMENT_PROOF_FAILED")


class ReportsApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.checkout_basic_sale()

    def test_overview_requires_staff(self):
        self.client.force_authenticate(user=self.customer)
        self.assertEqual(self.client.get("/api/reports/overview/").status_code, 403)

        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/reports/overview/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "REPORT_OVERVIEW_OK")
        self.assertEqual(response.data["report"]["total_sales"], 1)

    def test_invalid_date_range(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/reports/overview/", {"start": "2025-02-01", "end": "2025-01-01"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "INVALID_DATE_RANGE")

    def test_vendor_sees_only_own_commissions(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.get("/api/reports/commissions/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "REPORT_COMMISSIONS_OK")
        self.assertEqual([row["vendor_id"] for row in response.data["vendors"]], [self.vendor.id])

    def test_low_stock_for_vendor(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.get("/api/reports/low-stock/", {"threshold": 10})

        self.assertEqual(response.data["code"], "REPORT_LOW_STOCK_OK")
        self.assertEqual([row["product_name"] for row in response.data["products"]], ["Blusa Campesina"])


class ExportApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.checkout_basic_sale()

    def test_export_sales_csv(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/export/sales/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        self.assertIn("attachment", response["Content-Disposition"])
        content = response.content.decode("utf-8-sig")
        self.assertIn("Blusa Campesina", content)
        self.assertIn("Bolsos Lu", content)

    def test_export_sales_excel(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/export/sales/", {"file_format": "excel"})

        self.assertEqual(response.status_code, 200)
        self.assertIn(".xlsx", response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"PK"))

    def test_vendor_exports_only_own_commissions(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.get("/api/export/commissions/")

        content = response.content.decode("utf-8-sig")
        self.assertIn("Moda Ana", content)
        self.assertNotIn("Bolsos Lu", content)

    def test_empty_export_keeps_header_row(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/export/sales/", {"status": Sale.Status.CANCELED})

        self.assertEqual(response.status_code, 200)
        lines = response.content.decode("utf-8-sig").splitlines()
        self.assertEqual(len(lines), 1)
        self.assertTrue(lines[0].startswith("ID Venta,Cliente,Estado,Fecha"))

    def test_empty_low_stock_export_keeps_header_row(self):
        self.client.force_authenticate(user=self.other_vendor_user)
        ProductVariant.objects.filter(pk=self.variant.pk).update(stock=100)

        response = self.client.get("/api/export/low-stock/")

        lines = response.content.decode("utf-8-sig").splitlines()
        self.assertEqual(lines, ["Producto,Variante,Vendedor,Stock Actual,Stock Mínimo,Diferencia Stock"])

    def test_customer_cannot_export(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/export/sales/")
        self.assertEqual(response.status_code, 403)


class VendorProductApiTest(ApiTestBase):
    def test_vendor_creates_product_for_itself(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.post(
            "/api/products/",
            {
                "vendor": self.other_vendor.id,
                "category": self.category.id,
                "name": "Blusa Formal",
                "price": "30.00",
                "stock": 4,
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        product = Product.objects.get(name="Blusa Formal")
        self.assertEqual(product.vendor, self.vendor)
        self.assertEqual(product.created_by, "ana")

    def test_vendor_cannot_see_other_vendor_products(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.get(f"/api/products/{self.variant_product.id}/")
        self.assertEqual(response.status_code, 404)

    def test_customer_cannot_manage_products(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/products/")
        self.assertEqual(response.status_code, 403)

    def test_vendor_adjusts_stock(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.post(
            f"/api/products/{self.vendor_product.id}/adjust-stock/", {"quantity": 5}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "STOCK_ADJUSTED")
        self.assertEqual(response.data["stock"], 15)

    def test_delete_product_deactivates_it(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.delete(f"/api/products/{self.store_product.id}/")

        self.assertEqual(response.status_code, 204)
        self.store_product.refresh_from_db()
        self.assertFalse(self.store_product.active)

    def test_variants_without_sku_are_stored_as_null(self):
        """Varias variantes sin SKU conviven porque el SKU vacío se guarda como nulo"""
        self.client.force_authenticate(user=self.other_vendor_user)

        for color in ["Beige", "Rojo"]:
            response = self.client.post(
                "/api/product-variants/",
                {"product": self.variant_product.id, "color": color, "size": "U", "sku": "", "stock": 0},
                format="json",
            )
            self.assertEqual(response.status_code, 201)
            self.assertIsNone(response.data["sku"])

        blank_skus = ProductVariant.objects.filter(product=self.variant_product, color__in=["Beige", "Rojo"])
        self.assertEqual(blank_skus.filter(sku__isnull=True).count(), 2)

    def test_variant_sku_is_trimmed(self):
        self.client.force_authenticate(user=self.other_vendor_user)
        response = self.client.post(
            "/api/product-variants/",
            {"product": self.variant_product.id, "color": "Café", "size": "U", "sku": "  BT-CAFE "},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["sku"], "BT-CAFE")

    def test_product_creation_records_opening_stock(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            "/api/products/",
            {"category": self.category.id, "name": "Falda Plisada", "price": "28.00", "stock": 30},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        movement = MovementInventory.objects.get(product__name="Falda Plisada")
        self.assertEqual(movement.movement_type, MovementInventory.MovementType.PURCHASE)
        self.assertEqual(movement.quantity, 30)
        self.assertIsNone(movement.variant)
        self.assertEqual(movement.created_by, "admin")

    def test_variant_creation_records_opening_stock(self):
        self.client.force_authenticate(user=self.other_vendor_user)
        response = self.client.post(
            "/api/product-variants/",
            {"product": self.variant_product.id, "color": "Azul", "size": "U", "stock": 50},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        movement = MovementInventory.objects.get(variant_id=response.data["id"])
        self.assertEqual(movement.movement_type, MovementInventory.MovementType.PURCHASE)
        self.assertEqual(movement.quantity, 50)
        self.assertEqual(movement.product, self.variant_product)

    def test_product_without_stock_records_no_movement(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.post(
            "/api/products/",
            {"category": self.category.id, "name": "Blusa Sin Stock", "price": "18.00", "stock": 0},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertFalse(MovementInventory.objects.filter(product__name="Blusa Sin Stock").exists())

    def test_subcategory_must_belong_to_category(self):
        wallets = Subcategory.objects.create(category=self.bags, name="Carteras")
        self.client.force_authenticate(user=self.vendor_user)

        response = self.client.post(
            "/api/products/",
            {
                "category": self.category.id,
                "subcategory": wallets.id,
                "name": "Blusa Cruzada",
                "price": "22.00",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Product.objects.filter(name="Blusa Cruzada").exists())

    def test_only_staff_assign_supplier(self):
        supplier = Supplier.objects.create(name="Textiles Andinos")
        payload = {"category": self.category.id, "name": "Blusa Lino", "price": "35.00", "supplier": supplier.id}

        self.client.force_authenticate(user=self.vendor_user)
        self.assertEqual(self.client.post("/api/products/", payload, format="json").status_code, 400)

        self.client.force_authenticate(user=self.admin)
        response = self.client.post("/api/products/", payload, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Product.objects.get(name="Blusa Lino").supplier, supplier)


class ShippingAndPaymentApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)
        self.client.post("/api/cart/items/", {"product_id": self.vendor_product.id, "quantity": 1}, format="json")

    def test_shipping_quote_uses_profile_destination(self):
        response = self.client.get("/api/shipping/quote/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "SHIPPING_QUOTE_OK")
        self.assertEqual(response.data["shipping"]["total"], "3.00")

    def test_payment_options(self):
        BankAccount.objects.create(bank_code="pichincha", bank_name="Banco Pichincha", number="2200000000")
        response = self.client.get("/api/payments/options/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "PAYMENT_OPTIONS_OK")
        self.assertEqual(len(response.data["bank_accounts"]), 1)

    def test_payment_options_rejects_invalid_province(self):
        response = self.client.get("/api/payments/options/", {"province": "X"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "SHIPPING_DESTINATION_INVALID")

    def test_payment_options_include_shipping_for_profile_destination(self):
        response = self.client.get("/api/payments/options/")
        self.assertEqual(response.data["shipping"]["total"], "3.00")

    def test_vendor_toggles_own_bank_account(self):
        account = BankAccount.objects.create(
            vendor=self.vendor, bank_code="pichincha", bank_name="Banco Pichincha", number="2200000001"
        )
        self.client.force_authenticate(user=self.vendor_user)

        response = self.client.post(f"/api/bank-accounts/{account.id}/toggle/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "BANK_ACCOUNT_TOGGLED")
        self.assertFalse(response.data["account"]["active"])
        self.assertTrue(AuditLog.objects.filter(action="bank_account_toggled", entity_id=account.id).exists())

        response = self.client.post(f"/api/bank-accounts/{account.id}/toggle/")
        self.assertTrue(response.data["account"]["active"])

    def test_vendor_cannot_toggle_other_vendor_account(self):
        account = BankAccount.objects.create(
            vendor=self.other_vendor, bank_code="guayaquil", bank_name="Banco Guayaquil", number="0011223344"
        )
        self.client.force_authenticate(user=self.vendor_user)

        response = self.client.post(f"/api/bank-accounts/{account.id}/toggle/")

        self.assertEqual(response.status_code, 404)
        account.refresh_from_db()
        self.assertTrue(account.active)


class ShippingTraceApiTest(ApiTestBase):
    def test_staff_gets_resolution_steps(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(
            "/api/shipping/trace/", {"vendor": self.vendor.id, "province": "Pichincha", "city": "Quito"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "SHIPPING_TRACE_OK")
        self.assertEqual(response.data["resolved"]["price"], "3.00")
        self.assertEqual(response.data["resolved"]["source"], "vendor")
        self.assertEqual(len(response.data["steps"]), 4)
        self.assertTrue(response.data["steps"][0]["matched"])

    def test_trace_without_matching_rule(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/shipping/trace/", {"vendor": self.other_vendor.id, "province": "Azuay"})

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.data["resolved"])
        self.assertFalse(any(step["matched"] for step in response.data["steps"]))

    def test_customer_cannot_trace(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get("/api/shipping/trace/", {"province": "Pichincha"})
        self.assertEqual(response.status_code, 403)


class CustomerApiTest(APITestCase):
    def test_register_returns_tokens(self):
        response = self.client.post(
            "/api/customers/register/",
            {
                "username": "nueva",
                "email": "nueva@example.com",
                "password": "clave-segura-123",
                "province": "Guayas",
                "city": "Guayaquil",
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "CUSTOMER_REGISTERED")
        self.assertIn("access", response.data)
        user = User.objects.get(username="nueva")
        self.assertEqual(user.customer_profile.province, "Guayas")
        self.assertTrue(user.groups.filter(name="Customers").exists())

    def test_register_validation_error_contract(self):
        response = self.client.post("/api/customers/register/", {"username": "x"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "VALIDATION_ERROR")
        self.assertTrue(response.data["errors"])

    def test_login(self):
        User.objects.create_user(username="cliente", password="clave-segura-123")
        response = self.client.post(
            "/api/customers/login/", {"username": "cliente", "password": "clave-segura-123"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "CUSTOMER_LOGIN_OK")


class FavoriteApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.customer)

    def test_add_list_and_remove_favorite(self):
        response = self.client.post("/api/favorites/", {"product": self.vendor_product.id}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["product_name"], "Blusa Campesina")

        again = self.client.post("/api/favorites/", {"product": self.vendor_product.id}, format="json")
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.data["id"], response.data["id"])
        self.assertEqual(Favorite.objects.filter(user=self.customer).count(), 1)

        listing = self.client.get("/api/favorites/")
        self.assertEqual(listing.data["count"], 1)
        self.assertEqual(listing.data["results"][0]["product"], self.vendor_product.id)

        removed = self.client.delete(f"/api/favorites/{response.data['id']}/")
        self.assertEqual(removed.status_code, 204)
        self.assertFalse(Favorite.objects.filter(user=self.customer).exists())

    def test_inactive_product_cannot_be_favorite(self):
        Product.objects.filter(pk=self.store_product.pk).update(active=False)
        response = self.client.post("/api/favorites/", {"product": self.store_product.id}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_favorites_are_private(self):
        favorite = Favorite.objects.create(user=self.admin, product=self.vendor_product)

        self.assertEqual(self.client.get("/api/favorites/").data["count"], 0)
        self.assertEqual(self.client.delete(f"/api/favorites/{favorite.id}/").status_code, 404)

    def test_favorites_require_authentication(self):
        self.client.force_authenticate(user=None)
        self.assertEqual(self.client.get("/api/favorites/").status_code, 401)


class ProductImageApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.client.force_authenticate(user=self.vendor_user)

    def tearDown(self):
        shutil.rmtree(self.media_root, ignore_errors=True)

    def upload(self, name, product=None, **extra):
        product = product or self.vendor_product
        with override_settings(MEDIA_ROOT=self.media_root):
            return self.client.post(
                "/api/product-images/",
                {"product": product.id, "image": png_upload(name, size=(40, 30)), **extra},
                format="multipart",
            )

    def primary_ids(self):
        return list(
            ProductImage.objects.filter(product=self.vendor_product, is_primary=True).values_list("id", flat=True)
        )

    def test_first_image_becomes_primary_with_metadata(self):
        response = self.upload("frente.png")

        self.assertEqual(response.status_code, 201)
        image = ProductImage.objects.get(pk=response.data["id"])
        self.assertTrue(image.is_primary)
        self.assertEqual((image.width, image.height), (40, 30))
        self.assertGreater(image.file_size, 0)

    def test_set_primary_keeps_a_single_primary_image(self):
        first = self.upload("frente.png")
        second = self.upload("espalda.png")
        self.assertFalse(second.data["is_primary"])

        response = self.client.post(f"/api/product-images/{second.data['id']}/set-primary/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["code"], "PRIMARY_IMAGE_SET")
        self.assertEqual(self.primary_ids(), [second.data["id"]])
        self.assertNotEqual(first.data["id"], second.data["id"])

    def test_upload_marked_primary_replaces_previous(self):
        self.upload("frente.png")
        second = self.upload("detalle.png", is_primary="true")

        self.assertEqual(self.primary_ids(), [second.data["id"]])

    def test_invalid_file_is_rejected(self):
        fake = SimpleUploadedFile("foto.png", b"no es una imagen", content_type="image/png")
        response = self.client.post(
            "/api/product-images/", {"product": self.vendor_product.id, "image": fake}, format="multipart"
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(ProductImage.objects.exists())

    def test_vendor_cannot_add_images_to_other_vendor_product(self):
        response = self.upload("ajeno.png", product=self.variant_product)
        self.assertEqual(response.status_code, 403)
        self.assertFalse(ProductImage.objects.filter(product=self.variant_product).exists())


class SupplierPurchaseServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        self.supplier = Supplier.objects.create(name="Textiles Andinos")

    def test_purchase_adds_stock_and_records_entries(self):
        movements = register_purchase(
            supplier_id=self.supplier.id,
            lines=[
                {"product_id": self.store_product.id, "quantity": 7, "unit_cost": Decimal("4.50")},
                {"product_id": self.variant_product.id, "variant_id": self.variant.id, "quantity": 3},
            ],
            user=self.admin,
        )

        self.store_product.refresh_from_db()
        self.variant.refresh_from_db()
        self.supplier.refresh_from_db()
        self.assertEqual(self.store_product.stock, 10)
        self.assertEqual(self.store_product.cost, Decimal("4.50"))
        self.assertEqual(self.variant.stock, 8)
        self.assertEqual(len(movements), 2)
        for movement in movements:
            self.assertEqual(movement.movement_type, MovementInventory.MovementType.PURCHASE)
            self.assertEqual(movement.supplier, self.supplier)
            self.assertEqual(movement.observation, "Compra - Proveedor: Textiles Andinos")
        self.assertEqual(self.supplier.last_purchase_date, timezone.localdate())
        audit = AuditLog.objects.get(action="create_purchase", entity_id=self.supplier.id)
        self.assertEqual(audit.extra_data["total_cost"], "31.50")
        self.assertEqual(audit.extra_data["units"], 10)

    def test_product_with_variants_requires_variant(self):
        with self.assertRaises(ValidationError) as context:
            register_purchase(
                supplier_id=self.supplier.id,
                lines=[{"product_id": self.variant_product.id, "quantity": 2}],
                user=self.admin,
            )
        self.assertIn("requiere indicar la variante", str(context.exception))

    def test_invalid_line_changes_nothing(self):
        with self.assertRaises(ValidationError):
            register_purchase(
                supplier_id=self.supplier.id,
                lines=[
                    {"product_id": self.store_product.id, "quantity": 5},
                    {"product_id": self.vendor_product.id, "variant_id": self.variant.id, "quantity": 1},
                ],
                user=self.admin,
            )

        self.store_product.refresh_from_db()
        self.assertEqual(self.store_product.stock, 3)
        self.assertFalse(MovementInventory.objects.filter(supplier=self.supplier).exists())

    def test_inactive_supplier_and_empty_purchase_fail(self):
        with self.assertRaises(ValidationError):
            register_purchase(supplier_id=self.supplier.id, lines=[], user=self.admin)

        self.supplier.is_active = False
        self.supplier.save()
        with self.assertRaises(ValidationError) as context:
            register_purchase(
                supplier_id=self.supplier.id,
                lines=[{"product_id": self.store_product.id, "quantity": 1}],
                user=self.admin,
            )
        self.assertIn("inactivo", str(context.exception))


class SupplierApiTest(ApiTestBase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.admin)

    def test_create_supplier_rejects_duplicate_name(self):
        response = self.client.post(
            "/api/suppliers/", {"name": "Textiles Andinos", "contact": "Rosa Pérez"}, format="json"
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Supplier.objects.get(name="Textiles Andinos").created_by, "admin")

        duplicate = self.client.post("/api/suppliers/", {"name": "textiles andinos"}, format="json")
        self.assertEqual(duplicate.status_code, 400)

    def test_purchase_and_history(self):
        supplier = Supplier.objects.create(name="Hilos del Sur")

        response = self.client.post(
            f"/api/suppliers/{supplier.id}/purchase/",
            {"lines": [{"product_id": self.vendor_product.id, "quantity": 5}], "observation": "Factura 001"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["code"], "PURCHASE_CREATED")
        self.assertEqual(response.data["movements"][0]["observation"], "Factura 001")
        self.vendor_product.refresh_from_db()
        self.assertEqual(self.vendor_product.stock, 15)

        history = self.client.get(f"/api/suppliers/{supplier.id}/purchases/")
        self.assertEqual(history.status_code, 200)
        self.assertEqual(history.data["count"], 1)

    def test_invalid_purchase_returns_400(self):
        supplier = Supplier.objects.create(name="Hilos del Sur")
        response = self.client.post(
            f"/api/suppliers/{supplier.id}/purchase/",
            {"lines": [{"product_id": self.variant_product.id, "quantity": 2}]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "PURCHASE_FAILED")

    def test_supplier_in_use_cannot_be_deleted(self):
        used = Supplier.objects.create(name="Textiles Andinos")
        unused = Supplier.objects.create(name="Botones Quito")
        Product.objects.filter(pk=self.store_product.pk).update(supplier=used)

        response = self.client.delete(f"/api/suppliers/{used.id}/")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "SUPPLIER_IN_USE")

        self.assertEqual(self.client.delete(f"/api/suppliers/{unused.id}/").status_code, 204)

    def test_only_staff_manage_suppliers(self):
        self.client.force_authenticate(user=self.vendor_user)
        self.assertEqual(self.client.get("/api/suppliers/").status_code, 403)


class CategoryAttributeServiceTest(StoreFixturesMixin, TestCase):
    def setUp(self):
        self.create_store_fixtures()
        FieldType = CategoryAttribute.FieldType
        self.size = CategoryAttribute.objects.create(
            category=self.category,
            name="Talla",
            technical_name="talla",
            field_type=FieldType.SELECT,
            options=["S", "M", "L"],
            required=True,
            sort_order=1,
        )
        self.sleeve = CategoryAttribute.objects.create(
            category=self.category,
            name="Largo de manga",
            technical_name="largo_de_manga",
            field_type=FieldType.NUMBER,
            unit="cm",
            min_value=Decimal("0"),
            max_value=Decimal("80"),
            sort_order=2,
        )
        self.materials = CategoryAttribute.objects.create(
            category=self.category,
            name="Materiales",
            technical_name="materiales",
            field_type=FieldType.MULTISELECT,
            options=["Algodón", "Lino", "Seda"],
            sort_order=3,
        )

    def test_technical_names(self):
        self.assertEqual(generate_technical_name("Tamaño del Cuello"), "tamano_del_cuello")
        self.assertEqual(unique_technical_name(self.category.id, "talla"), "talla_1")
        self.assertEqual(unique_technical_name(self.bags.id, "talla"), "talla")

    def test_values_are_normalized_by_type(self):
        FieldType = CategoryAttribute.FieldType
        embroidery = CategoryAttribute(name="Bordado", field_type=FieldType.CHECKBOX)
        launch = CategoryAttribute(name="Lanzamiento", field_type=FieldType.DATE)
        tone = CategoryAttribute(name="Tono", field_type=FieldType.COLOR)

        self.assertEqual(clean_attribute_value(self.sleeve, "15"), ("15", "15 cm"))
        self.assertEqual(
            clean_attribute_value(self.materials, ["Algodón", "Lino"]), ('["Algodón", "Lino"]', "Algodón, Lino")
        )
        self.assertEqual(clean_attribute_value(embroidery, True), ("true", "Sí"))
        self.assertEqual(clean_attribute_value(embroidery, "no"), ("false", "No"))
        self.assertEqual(clean_attribute_value(launch, "2025-03-01"), ("2025-03-01", "01/03/2025"))
        self.assertEqual(clean_attribute_value(tone, "#ff0000"), ("#FF0000", "#FF0000"))
        self.assertIsNone(clean_attribute_value(self.sleeve, ""))

    def test_invalid_values(self):
        code = CategoryAttribute(
            name="Código", field_type=CategoryAttribute.FieldType.TEXT, validation_pattern=r"[A-Z]{3}-\d+"
        )
        invalid = [
            (self.size, "XL"),
            (self.size, ""),
            (self.sleeve, "90"),
            (self.sleeve, "largo"),
            (self.materials, ["Algodón", "Cuero"]),
            (code, "abc"),
        ]
        for attribute, raw in invalid:
            with self.subTest(attribute=attribute.name, raw=raw):
                with self.assertRaises(ValidationError):
                    clean_attribute_value(attribute, raw)
        self.assertEqual(clean_attribute_value(code, "BLU-12"), ("BLU-12", "BLU-12"))

    def test_save_collects_every_error(self):
        with self.assertRaises(ValidationError) as context:
            save_product_attribute_values(
                product=self.vendor_product,
                values={str(self.size.id): "XL", str(self.sleeve.id): "largo"},
                user=self.admin,
            )

        self.assertEqual(len(context.exception.messages), 2)
        self.assertFalse(ProductAttributeValue.objects.exists())

    def test_save_replaces_values(self):
        saved = save_product_attribute_values(
            product=self.vendor_product,
            values={str(self.size.id): "M", str(self.sleeve.id): "15", str(self.materials.id): ["Algodón"]},
            user=self.admin,
        )
        self.assertEqual([value.display_value for value in saved], ["M", "15 cm", "Algodón"])

        save_product_attribute_values(
            product=self.vendor_product, values={str(self.size.id): "L"}, user=self.admin
        )

        values = list(self.vendor_product.attribute_values.all())
        self.assertEqual([(value.attribute_id, value.value) for value in values], [(self.size.id, "L")])
        self.size.refresh_from_db()
        self.sleeve.refresh_from_db()
        self.assertEqual(self.size.usage_count, 1)
        self.assertEqual(self.sleeve.usage_count, 0)
        self.assertTrue(AuditLog.objects.filter(action="save_product_attributes").exists())

    def test_attribute_from_other_category_is_rejected(self):
        strap = CategoryAttribute.objects.create(
            category=self.bags, name="Correa", technical_name="correa", field_type="text"
        )
        with self.assertRaises(ValidationError) as context:
            save_product_attribute_values(
                product=self.vendor_product,
                values={str(self.size.id): "S", str(strap.id): "Larga"},
                user=self.admin,
            )
        self.assertIn("no pertenece a la categoría", str(context.exception))

    def test_filter_combines_attributes_and_values(self):
        save_product_attribute_values(
            product=self.vendor_product,
            values={str(self.size.id): "M", str(self.materials.id): ["Algodón", "Lino"]},
            user=self.admin,
        )
        save_product_attribute_values(
            product=self.store_product,
            values={str(self.size.id): "S", str(self.materials.id): ["Seda"]},
            user=self.admin,
        )
        products = Product.objects.all()

        def names(params):
            return sorted(product.name for product in filter_by_attributes(products, params))

        self.assertEqual(names({"attr_talla": "M,S"}), ["Blusa Campesina", "Top Básico"])
        self.assertEqual(names({"attr_talla": "M,S", "attr_materiales": "Lino"}), ["Blusa Campesina"])
        self.assertEqual(names({"attr_materiales": "Seda,Algodón"}), ["Blusa Campesina", "Top Básico"])
        self.assertEqual(names({"attr_talla": "L"}), [])
        self.assertEqual(len(names({})), 3)

    def test_filters_count_products_per_value(self):
        save_product_attribute_values(
            product=self.vendor_product,
            values={str(self.size.id): "M", str(self.materials.id): ["Algodón", "Lino"]},
            user=self.admin,
        )
        save_product_attribute_values(
            product=self.store_product,
            values={str(self.size.id): "S", str(self.materials.id): ["Lino"]},
            user=self.admin,
        )

        filters = {entry["technical_name"]: entry for entry in attribute_filters_for_category(self.category)}

        self.assertEqual(filters["talla"]["values"], [{"value": "S", "count": 1}, {"value": "M", "count": 1}])
        self.assertEqual(
            filters["materiales"]["values"], [{"value": "Algodón", "count": 1}, {"value": "Lino", "count": 2}]
        )
        self.assertEqual(filters["largo_de_manga"]["values"], [])
        self.assertEqual(filters["talla"]["param"], "attr_talla")

    def test_duplicate_and_copy_to_category(self):
        copy = duplicate_attribute(attribute=self.size, user=self.admin)
        self.assertEqual((copy.name, copy.technical_name), ("Talla (copia)", "talla_1"))
        self.assertEqual(copy.options, ["S", "M", "L"])
        self.assertEqual(copy.sort_order, 4)

        copies = copy_attributes(source=self.category, target=self.bags, user=self.admin)
        self.assertEqual(
            [attribute.technical_name for attribute in copies],
            ["talla", "largo_de_manga", "materiales", "talla_1"],
        )

        again = copy_attributes(source=self.category, target=self.bags, user=self.admin)
        self.assertEqual(again[0].technical_name, "talla_2")

        with self.assertRaises(ValidationError):
            copy_attributes(source=self.category, target=self.category, user=self.admin)


class CategoryAttributeApiTest(ApiTestBase):
    def create_size_attribute(self, **extra):
        data = {
            "category": self.category,
            "name": "Talla",
            "technical_name": "talla",
            "field_type": CategoryAttribute.FieldType.SELECT,
            "options": ["S", "M"],
        }
        data.update(extra)
        return CategoryAttribute.objects.create(**data)

    def test_admin_creates_attributes_with_generated_name_and_order(self):
        self.client.force_authenticate(user=self.admin)

        sleeve = self.client.post(
            "/api/category-attributes/",
            {"category": self.category.id, "name": "Largo de manga", "field_type": "number", "unit": "cm"},
            format="json",
        )
        size = self.client.post(
            "/api/category-attributes/",
            {"category": self.category.id, "name": "Talla", "field_type": "select", "options": ["S", "M"]},
            format="json",
        )

        self.assertEqual(sleeve.status_code, 201)
        self.assertEqual(sleeve.data["technical_name"], "largo_de_manga")
        self.assertEqual((sleeve.data["sort_order"], size.data["sort_order"]), (1, 2))

    def test_invalid_definitions_are_rejected(self):
        self.client.force_authenticate(user=self.admin)
        invalid = [
            {"name": "Talla", "field_type": "select", "options": []},
            {"name": "Largo", "field_type": "number", "min_value": "10", "max_value": "5"},
            {"name": "Código", "field_type": "text", "validation_pattern": "[A-Z"},
        ]
        for payload in invalid:
            with self.subTest(payload=payload):
                response = self.client.post(
                    "/api/category-attributes/", {"category": self.category.id, **payload}, format="json"
                )
                self.assertEqual(response.status_code, 400)

    def test_public_sees_only_active_attributes(self):
        self.create_size_attribute()
        self.create_size_attribute(name="Corte", technical_name="corte", active=False)

        response = self.client.get("/api/category-attributes/", {"category": self.category.id})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["technical_name"] for item in response.data["results"]], ["talla"])
        self.assertEqual(self.client.post("/api/category-attributes/", {}, format="json").status_code, 401)

    def test_attribute_in_use_cannot_be_deleted(self):
        size = self.create_size_attribute()
        ProductAttributeValue.objects.create(product=self.vendor_product, attribute=size, value="S")
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/category-attributes/{size.id}/")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "ATTRIBUTE_IN_USE")

    def test_toggle_duplicate_and_copy_endpoints(self):
        size = self.create_size_attribute()
        self.client.force_authenticate(user=self.admin)

        toggled = self.client.post(f"/api/category-attributes/{size.id}/toggle/")
        self.assertEqual(toggled.data["code"], "ATTRIBUTE_TOGGLED")
        self.assertFalse(toggled.data["attribute"]["active"])

        duplicated = self.client.post(f"/api/category-attributes/{size.id}/duplicate/")
        self.assertEqual(duplicated.status_code, 201)
        self.assertEqual(duplicated.data["attribute"]["technical_name"], "talla_1")

        copied = self.client.post(
            "/api/category-attributes/copy-to-category/",
            {"source_category": self.category.id, "target_category": self.bags.id},
            format="json",
        )
        self.assertEqual(copied.status_code, 201)
        self.assertEqual(CategoryAttribute.objects.filter(category=self.bags).count(), 2)

        empty = self.client.post(
            "/api/category-attributes/copy-to-category/",
            {"source_category": self.bags.id, "target_category": self.bags.id},
            format="json",
        )
        self.assertEqual(empty.status_code, 400)

    def test_vendor_saves_values_and_catalog_filters_by_them(self):
        size = self.create_size_attribute()
        self.client.force_authenticate(user=self.vendor_user)

        invalid = self.client.put(
            f"/api/products/{self.vendor_product.id}/attributes/", {"values": {str(size.id): "XL"}}, format="json"
        )
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.data["code"], "PRODUCT_ATTRIBUTES_INVALID")

        saved = self.client.put(
            f"/api/products/{self.vendor_product.id}/attributes/", {"values": {str(size.id): "M"}}, format="json"
        )
        self.assertEqual(saved.status_code, 200)
        self.assertEqual(saved.data["code"], "PRODUCT_ATTRIBUTES_SAVED")
        self.assertEqual(saved.data["values"][0]["display_value"], "M")

        listed = self.client.get(f"/api/products/{self.vendor_product.id}/attributes/")
        self.assertEqual(len(listed.data["values"]), 1)

        self.client.force_authenticate(user=None)
        catalog = self.client.get("/api/catalog/products/", {"attr_talla": "M"})
        self.assertEqual([product["name"] for product in catalog.data["products"]], ["Blusa Campesina"])
        self.assertEqual(catalog.data["products"][0]["attributes"][0]["display_value"], "M")

        filters = self.client.get("/api/category-attributes/filters/", {"category": self.category.id})
        self.assertEqual(filters.data["code"], "ATTRIBUTE_FILTERS")
        self.assertEqual(filters.data["filters"][0]["values"], [{"value": "M", "count": 1}])

    def test_vendor_cannot_edit_other_vendor_product_attributes(self):
        self.client.force_authenticate(user=self.vendor_user)
        response = self.client.put(
            f"/api/products/{self.variant_product.id}/attributes/", {"values": {}}, format="json"
        )
        self.assertEqual(response.status_code, 404)
