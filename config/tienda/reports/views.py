"""
Views para reportes y estadísticas
"""
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action

from ..core.api_responses import error_response, success_response
from ..core.utils import parse_iso_date
from ..permissions import IsStaff, IsVendorOrAdmin
from ..vendors.services import get_vendor_for_user
from . import services

DATE_RANGE_PARAMETERS = [
    OpenApiParameter("start", str, description="Fecha inicial (YYYY-MM-DD)"),
    OpenApiParameter("end", str, description="Fecha final (YYYY-MM-DD)"),
]


def date_range_params(request):
    start_raw = request.query_params.get("start")
    end_raw = request.query_params.get("end")
    start = parse_iso_date(start_raw)
    end = parse_iso_date(end_raw)
    errors = []
    if start_raw and start is None:
        errors.append("start: formato de fecha inválido, use YYYY-MM-DD")
    if end_raw and end is None:
        errors.append("end: formato de fecha inválido, use YYYY-MM-DD")
    if start and end and start > end:
        errors.append("La fecha inicial no puede ser posterior a la final")
    return start, end, errors


class ReportViewSet(viewsets.GenericViewSet):
    """
    ViewSet para reportes de ventas, comisiones y stock
    """
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(tags=["Reports"], parameters=DATE_RANGE_PARAMETERS)
    @action(detail=False, methods=["get"], permission_classes=[IsStaff])
    def overview(self, request):
        """Resumen de ventas del periodo"""
        start, end, errors = date_range_params(request)
        if errors:
            return error_response(
                detail=errors[0],
                code="INVALID_DATE_RANGE",
                http_status=status.HTTP_400_BAD_REQUEST,
                errors=errors,
            )

        return success_response(
            detail="Resumen de ventas generado",
            code="REPORT_OVERVIEW_OK",
            report=services.sales_overview(start=start, end=end),
        )

    @extend_schema(tags=["Reports"], parameters=DATE_RANGE_PARAMETERS)
    @action(detail=False, methods=["get"], permission_classes=[IsVendorOrAdmin])
    def commissions(self, request):
        """Bruto, comisión y neto por vendedor; un vendedor solo ve su fila"""
        start, end, errors = date_range_params(request)
        if errors:
            return error_response(
                detail=errors[0],
                code="INVALID_DATE_RANGE",
                http_status=status.HTTP_400_BAD_REQUEST,
                errors=errors,
            )

        vendor = None if request.user.is_staff else get_vendor_for_user(request.user)
        rows = services.vendor_commissions(start=start, end=end, vendor=vendor)
        return success_response(
            detail="Reporte de comisiones generado",
            code="REPORT_COMMISSIONS_OK",
            count=len(rows),
            vendors=rows,
        )

    @extend_schema(
        tags=["Reports"],
        parameters=[OpenApiParameter("threshold", int, description="Umbral de stock bajo")],
    )
    @action(detail=False, methods=["get"], url_path="low-stock", permission_classes=[IsVendorOrAdmin])
    def low_stock(self, request):
        """Variantes y productos con stock bajo"""
        threshold = request.query_params.get("threshold")
        try:
            threshold = int(threshold) if threshold not in (None, "") else None
        except ValueError:
            threshold = None

        vendor = None if request.user.is_staff else get_vendor_for_user(request.user)
        data = services.low_stock(vendor=vendor, threshold=threshold)
        return success_response(
            detail="Reporte de stock bajo generado",
            code="REPORT_LOW_STOCK_OK",
            count=len(data),
            products=data,
        )
