"""
URL configuration for the Simone store project.

API endpoints live under /api/. Explicit paths are declared before the router
so that routes like coupons/validate/ are not captured as detail lookups.
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from rest_framework import routers
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularSwaggerView,
    SpectacularRedocView,
)
from drf_spectacular.utils import extend_schema
from tienda import views


class CustomTokenObtainPairView(TokenObtainPairView):
    """
    View para obtener el token de acceso usando las credenciales del usuario con extend_schema.
    """
    @extend_schema(
        tags=['Authentication'],
        summary='Obtener token de acceso',
        description='Endpoint para obtener un par de tokens (access y refresh) mediante credenciales de usuario.'
    )
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)


class CustomTokenRefreshView(TokenRefreshView):
    """
    View para renovar el token de acceso usando el token de refresh con extend_schema.
    """
    @extend_schema(
        tags=['Authentication'],
        summary='Renovar token de acceso',
        description='Endpoint para renovar el token de acceso usando el token de refresh.'
    )
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)


router = routers.DefaultRouter()
router.register(r"categories", views.CategoryViewSet, basename="categories")
router.register(r"subcategories", views.SubcategoryViewSet, basename="subcategories")
router.register(r"category-attributes", views.CategoryAttributeViewSet, basename="category-attributes")
router.register(r"products", views.ProductViewSet, basename="products")
router.register(r"product-variants", views.ProductVariantViewSet, basename="product-variants")
router.register(r"product-images", views.ProductImageViewSet, basename="product-images")
router.register(r"favorites", views.FavoriteViewSet, basename="favorites")
router.register(r"suppliers", views.SupplierViewSet, basename="suppliers")
router.register(r"shipping-rates", views.ShippingRateViewSet, basename="shipping-rates")
router.register(r"bank-accounts", views.BankAccountViewSet, basename="bank-accounts")
router.register(r"coupons", views.CouponViewSet, basename="coupons")
router.register(r"vendors", views.VendorViewSet, basename="vendors")
router.register(r"commission-rules", views.CommissionRuleViewSet, basename="commission-rules")
router.register(r"sales", views.SaleViewSet, basename="sales")
router.register(r"reports", views.ReportViewSet, basename="reports")
router.register(r"export", views.ExportViewSet, basename="export")

urlpatterns = [
    path("admin/", admin.site.urls),
    # JWT Authentication
    path("api-auth/", include("rest_framework.urls", namespace="rest_framework")),
    path("api/token/", CustomTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/token/refresh/", CustomTokenRefreshView.as_view(), name="token_refresh"),
    # Customers
    path("api/customers/register/", views.CustomerRegisterView.as_view(), name="customer-register"),
    path("api/customers/login/", views.CustomerLoginView.as_view(), name="customer-login"),
    path("api/customers/me/", views.CustomerProfileView.as_view(), name="customer-profile"),
    # Public catalog
    path("api/catalog/products/", views.StoreProductListView.as_view(), name="catalog-products"),
    path(
        "api/catalog/products/<int:product_id>/",
        views.StoreProductDetailView.as_view(),
        name="catalog-product-detail",
    ),
    # Cart and checkout
    path("api/cart/", views.CartView.as_view(), name="cart"),
    path("api/cart/items/", views.CartItemsView.as_view(), name="cart-items"),
    path("api/cart/items/<int:item_id>/", views.CartItemDetailView.as_view(), name="cart-item-detail"),
    path("api/cart/coupon/", views.CartCouponView.as_view(), name="cart-coupon"),
    path("api/checkout/", views.CheckoutView.as_view(), name="checkout"),
    # Shipping and payments
    path("api/shipping/quote/", views.ShippingQuoteView.as_view(), name="shipping-quote"),
    path("api/shipping/trace/", views.ShippingTraceView.as_view(), name="shipping-trace"),
    path("api/payments/options/", views.PaymentOptionsView.as_view(), name="payment-options"),
    # Explicit routes that share a prefix with the router
    path("api/coupons/validate/", views.CouponValidateView.as_view(), name="coupon-validate"),
    path("api/vendors/me/", views.VendorMeView.as_view(), name="vendor-me"),
    # API endpoints
    path("api/", include(router.urls)),
    # API Documentation
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc"
    ),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
