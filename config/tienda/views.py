"""
Punto único de importación de las views de la tienda para el enrutador
"""
from .attributes.views import CategoryAttributeViewSet
from .cart.views import CartCouponView, CartItemDetailView, CartItemsView, CartView
from .catalog.views import (
    CategoryViewSet,
    FavoriteViewSet,
    ProductImageViewSet,
    ProductVariantViewSet,
    ProductViewSet,
    StoreProductDetailView,
    StoreProductListView,
    SubcategoryViewSet,
)
from .customers.views import CustomerLoginView, CustomerProfileView, CustomerRegisterView
from .export.views import ExportViewSet
from .payments.views import BankAccountViewSet, PaymentOptionsView
from .promotions.views import CouponValidateView, CouponViewSet
from .reports.views import ReportViewSet
from .sales.views import CheckoutView, SaleViewSet
from .shipping.views import ShippingQuoteView, ShippingRateViewSet, ShippingTraceView
from .suppliers.views import SupplierViewSet
from .vendors.views import CommissionRuleViewSet, VendorMeView, VendorViewSet

__all__ = [
    "BankAccountViewSet",
    "CartCouponView",
    "CartItemDetailView",
    "CartItemsView",
    "CartView",
    "CategoryAttributeViewSet",
    "CategoryViewSet",
    "CheckoutView",
    "CommissionRuleViewSet",
    "CouponValidateView",
    "CouponViewSet",
    "CustomerLoginView",
    "CustomerProfileView",
    "CustomerRegisterView",
    "ExportViewSet",
    "FavoriteViewSet",
    "PaymentOptionsView",
    "ProductImageViewSet",
    "ProductVariantViewSet",
    "ProductViewSet",
    "ReportViewSet",
    "SaleViewSet",
    "ShippingQuoteView",
    "ShippingRateViewSet",
    "ShippingTraceView",
    "StoreProductDetailView",
    "StoreProductListView",
    "SubcategoryViewSet",
    "SupplierViewSet",
    "VendorMeView",
    "VendorViewSet",
]
