"""
Views para exportación de reportes a CSV o Excel
"""
from io import BytesIO

import pandas as pd
from django.http import HttpResponse
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action

from ..core.api_responses import error_response
from ..models import SaleDetail
from ..permissions import IsStaff, IsVendorOrAdmin
from ..reports import services as report_services
from ..reports.views import date_range_params
from ..vendors.services import get_vendor_for_user

EXCEL_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SALES_COLUMNS = [
    "ID Venta", "Cliente", "Estado", "Fecha", "Vendedor", "Producto", "Variante",
    "Cantidad", "Precio Unitario", "Subtotal", "Envío Venta", "Total Venta",
]
COMMISSION_COLUMNS = ["ID Vendedor", "Vendedor", "Ventas", "Unidades", "Bruto", "Comisión", "Neto"]
LOW_STOCK_COLUMNS = ["Producto", "Variante", "Vendedor", "Stock Actual", "Stock Mínimo", "Diferencia Stock"]

EXPORT_PARAMETERS = [
    OpenApiParameter("file_format", str, description="csv (por defecto) o excel"),
    OpenApiParameter("start", str, description="Fecha inicial (YYYY-MM-DD)"),
    OpenApiParameter("end", str, description="Fecha final (YYYY-MM-DD)"),
]


def dataframe_response(rows: list[dict], columns: list[str], basename: str, format_type: str) -> HttpResponse:
    """Arma la descarga de un DataFrame como Excel (openpyxl) o CSV con BOM.

    Las columnas se fijan explícitamente para que un reporte vacío conserve
    la fila de encabezados.
    """
    df = pd.DataFrame(rows, columns=columns)
    stamp = timezone.now().strftime("%Y%m%d")

    if format_type.lower() == "excel":
        buffer = BytesIO()
        df.to_excel(buffer, index=False, engine="openpyxl")
        response = HttpResponse(buffer.getvalue(), content_type=EXCEL_CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="{basename}_{stamp}.xlsx"'
    else:
        response = HttpResponse(content_type="text/csv")
        response["Content-Disposition"] = f'attachment; filename="{basename}_{stamp}.csv"'
        df.to_csv(response, index=False, encoding="utf-8-sig")
    return response


def _invalid_range(errors: list[str]):
    return error_response(
        detail=errors[0],
        code="INVALID_DATE_RANGE",
        http_status=status.HTTP_400_BAD_REQUEST,
        errors=errors,
    )


class ExportViewSet(viewsets.GenericViewSet):
    """
    ViewSet para exportación de datos
    """
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(
        tags=["Export"],
        parameters=EXPORT_PARAMETERS + [OpenApiParameter("status", str, description="Estado de la venta")],
    )
    @action(detail=False, methods=["get"], permission_classes=[IsStaff])
    def sales(self, request):
        """Exportar líneas de venta a CSV o Excel"""
        start, end, errors = date_range_params(request)
        if errors:
            return _invalid_range(errors)

        details = SaleDetail.objects.select_related("sale__customer", "product", "variant", "vendor").order_by(
            "sale_id", "id"
        )
        if start:
            details = details.filter(sale__created_at__date__gte=start)
        if end:
            details = details.filter(sale__created_at__date__lte=end)
        status_filter = request.query_params.get("status")
        if status_filter:
            details = details.filter(sale__status=status_filter)

        rows = [
            {
                "ID Venta": detail.sale_id,
                "Cliente": detail.sale.customer.username,
                "Estado": detail.sale.get_status_display(),
                "Fecha": timezone.localtime(detail.sale.created_at).strftime("%Y-%m-%d %H:%M"),
                "Vendedor": detail.vendor.store_name if detail.vendor else "Tienda",
                "Producto": detail.product.name,
                "Variante": f"{detail.variant.color} / {detail.variant.size}" if detail.variant else "",
                "Cantidad": detail.quantity,
                "Precio Unitario": float(detail.unit_price),
                "Subtotal": float(detail.subtotal),
                "Envío Venta": float(detail.sale.shipping_total),
                "Total Venta": float(detail.sale.total),
            }
            for detail in details
        ]
        file_format = request.query_params.get("file_format", "csv")
        return dataframe_response(rows, SALES_COLUMNS, "ventas", file_format)

    @extend_schema(tags=["Export"], parameters=EXPORT_PARAMETERS)
    @action(detail=False, methods=["get"], permission_classes=[IsVendorOrAdmin])
    def commissions(self, request):
        """Exportar comisiones por vendedor; un vendedor solo exporta su fila"""
        start, end, errors = date_range_params(request)
        if errors:
            return _invalid_range(errors)

        vendor = None if request.user.is_staff else get_vendor_for_user(request.user)
        rows = [
            {
                "ID Vendedor": row["vendor_id"],
                "Vendedor": row["vendor_name"],
                "Ventas": row["sales_count"],
                "Unidades": row["units"],
                "Bruto": float(row["gross"]),
                "Comisión": float(row["commission"]),
                "Neto": float(row["net"]),
            }
            for row in report_services.vendor_commissions(start=start, end=end, vendor=vendor)
        ]
        file_format = request.query_params.get("file_format", "csv")
        return dataframe_response(rows, COMMISSION_COLUMNS, "comisiones", file_format)

    @extend_schema(
        tags=["Export"],
        parameters=[
            OpenApiParameter("file_format", str, description="csv (por defecto) o excel"),
            OpenApiParameter("threshold", int, description="Umbral de stock bajo"),
        ],
    )
    @action(detail=False, methods=["get"], url_path="low-stock", permission_classes=[IsVendorOrAdmin])
    def low_stock(self, request):
        """Exportar productos y variantes con stock bajo"""
        threshold = request.query_params.get("threshold")
        threshold = int(threshold) if threshold and threshold.isdigit() else None
        vendor = None if request.user.is_staff else get_vendor_for_user(request.user)

        rows = [
            {
                "Producto": row["product_name"],
                "Variante": row["variant_info"] or "",
                "Vendedor": row["vendor_name"] or "Tienda",
                "Stock Actual": row["current_stock"],
                "Stock Mínimo": row["stock_minimum"],
                "Diferencia Stock": row["deficit"],
            }
            for row in report_services.low_stock(vendor=vendor, threshold=threshold)
        ]
        file_format = request.query_params.get("file_format", "csv")
        return dataframe_response(rows, LOW_STOCK_COLUMNS, "stock_bajo", file_format)
