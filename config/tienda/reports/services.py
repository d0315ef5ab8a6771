"""
Reportes agregados: resumen de ventas, comisiones por vendedor y stock bajo.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count, DecimalField, F, Q, QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..core.utils import CENTS, money
from ..models import Product, ProductVariant, Sale, SaleDetail, Vendor
from ..promotions.services import CONSUMING_SALE_STATUSES
from ..vendors.services import commission_percentage_for

logger = logging.getLogger(__name__)

TOP_PRODUCTS_LIMIT = 5


def _in_range(queryset: QuerySet, field: str, start: date | None, end: date | None) -> QuerySet:
    if start:
        queryset = queryset.filter(**{f"{field}__date__gte": start})
    if end:
        queryset = queryset.filter(**{f"{field}__date__lte": end})
    return queryset


def sales_overview(*, start: date | None = None, end: date | None = None) -> dict:
    """
    Resumen general de ventas del periodo.

    Los ingresos y unidades excluyen ventas canceladas y revertidas; el
    conteo total y el desglose por estado las incluyen.
    """
    recent_limit = int(getattr(settings, "STORE_RECENT_SALES_LIMIT", 10))
    window_days = int(getattr(settings, "STORE_NEW_CUSTOMER_WINDOW_DAYS", 30))

    sales = _in_range(Sale.objects.all(), "created_at", start, end)
    effective_sales = sales.filter(status__in=CONSUMING_SALE_STATUSES)

    revenue = effective_sales.aggregate(
        total=Coalesce(Sum("total"), Decimal("0.00"), output_field=DecimalField())
    )["total"]

    details = SaleDetail.objects.filter(sale__in=effective_sales)
    units_sold = details.aggregate(total=Coalesce(Sum("quantity"), 0))["total"]

    status_counts = dict(sales.order_by().values_list("status").annotate(count=Count("id")))
    sales_by_status = {
        choice: {"label": label, "count": status_counts.get(choice, 0)} for choice, label in Sale.Status.choices
    }

    since = timezone.now() - timedelta(days=window_days)
    new_customers = get_user_model().objects.filter(is_staff=False, date_joined__gte=since).count()

    top_products = [
        {
            "product_id": row["product_id"],
            "product_name": row["product__name"],
            "units": row["units"],
            "revenue": str(money(row["revenue"])),
        }
        for row in details.values("product_id", "product__name")
        .annotate(units=Sum("quantity"), revenue=Sum("subtotal"))
        .order_by("-units", "product__name")[:TOP_PRODUCTS_LIMIT]
    ]

    recent_sales = [
        {
            "id": sale.id,
            "customer": sale.customer.username,
            "status": sale.status,
            "status_label": sale.get_status_display(),
            "total": str(sale.total),
            "created_at": sale.created_at,
        }
        for sale in sales.select_related("customer").order_by("-created_at", "-id")[:recent_limit]
    ]

    return {
        "start": start,
        "end": end,
        "total_sales": sales.count(),
        "revenue": str(money(revenue)),
        "units_sold": units_sold,
        "new_customers": new_customers,
        "new_customer_window_days": window_days,
        "sales_by_status": sales_by_status,
        "recent_sales": recent_sales,
        "top_products": top_products,
    }


def vendor_commissions(
    *, start: date | None = None, end: date | None = None, vendor: Vendor | None = None
) -> list[dict]:
    """
    Bruto, comisión y neto por vendedor.

    La comisión se calcula por línea con el porcentaje del vendedor y la
    categoría del producto, redondeada a 2 decimales.
    """
    details = (
        SaleDetail.objects.filter(vendor__isnull=False, sale__status__in=CONSUMING_SALE_STATUSES)
        .select_related("vendor", "product__category")
        .order_by("vendor_id", "id")
    )
    details = _in_range(details, "sale__created_at", start, end)
    if vendor is not None:
        details = details.filter(vendor=vendor)

    percentages: dict[tuple[int, int], Decimal] = {}
    rows: dict[int, dict] = {}
    for detail in details:
        key = (detail.vendor_id, detail.product.category_id)
        if key not in percentages:
            percentages[key] = commission_percentage_for(detail.vendor, detail.product.category)
        commission = (detail.subtotal * percentages[key] / Decimal("100")).quantize(CENTS, rounding=ROUND_HALF_UP)

        row = rows.setdefault(
            detail.vendor_id,
            {
                "vendor_id": detail.vendor_id,
                "vendor_name": detail.vendor.store_name,
                "sales": set(),
                "units": 0,
                "gross": Decimal("0.00"),
                "commission": Decimal("0.00"),
            },
        )
        row["sales"].add(detail.sale_id)
        row["units"] += detail.quantity
        row["gross"] += detail.subtotal
        row["commission"] += commission

    report = []
    for row in rows.values():
        report.append(
            {
                "vendor_id": row["vendor_id"],
                "vendor_name": row["vendor_name"],
                "sales_count": len(row["sales"]),
                "units": row["units"],
                "gross": str(row["gross"]),
                "commission": str(row["commission"]),
                "net": str(row["gross"] - row["commission"]),
            }
        )
    report.sort(key=lambda item: item["vendor_name"])
    return report


def low_stock(*, vendor: Vendor | None = None, threshold: int | None = None) -> list[dict]:
    """
    Variantes activas y productos sin variantes con stock en o bajo el mínimo
    del producto o el umbral configurado.
    """
    if threshold is None:
        threshold = int(getattr(settings, "STORE_LOW_STOCK_THRESHOLD", 3))

    variants = ProductVariant.objects.filter(active=True, product__active=True).filter(
        Q(stock__lte=F("product__stock_minimum")) | Q(stock__lte=threshold)
    )
    products = (
        Product.objects.filter(active=True)
        .exclude(variants__active=True)
        .filter(Q(stock__lte=F("stock_minimum")) | Q(stock__lte=threshold))
    )
    if vendor is not None:
        variants = variants.filter(product__vendor=vendor)
        products = products.filter(vendor=vendor)

    data = []
    for variant in variants.select_related("product__vendor").order_by("stock", "product__name"):
        data.append(
            {
                "product_id": variant.product_id,
                "variant_id": variant.id,
                "product_name": variant.product.name,
                "variant_info": f"{variant.color} / {variant.size}",
                "vendor_name": variant.product.vendor.store_name if variant.product.vendor else None,
                "current_stock": variant.stock,
                "stock_minimum": variant.product.stock_minimum,
                "deficit": max(0, variant.product.stock_minimum - variant.stock),
            }
        )
    for product in products.select_related("vendor").order_by("stock", "name"):
        data.append(
            {
                "product_id": product.id,
                "variant_id": None,
                "product_name": product.name,
                "variant_info": None,
                "vendor_name": product.vendor.store_name if product.vendor else None,
                "current_stock": product.stock,
                "stock_minimum": product.stock_minimum,
                "deficit": max(0, product.stock_minimum - product.stock),
            }
        )
    logger.debug("Stock bajo: %s registros (umbral %s)", len(data), threshold)
    return data
