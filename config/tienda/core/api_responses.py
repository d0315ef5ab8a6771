"""
Helpers para respuestas API consistentes.
"""

from __future__ import annotations

from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response

STOCK_CONFLICT_MARKER = "Stock insuficiente"


def build_success_payload(detail: str, code: str = "SUCCESS", **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"detail": detail, "code": code}
    payload.update(extra)
    return payload


def build_error_payload(
    detail: str,
    code: str = "ERROR",
    errors: list[str] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"detail": detail, "code": code, "errors": errors or [detail]}
    payload.update(extra)
    return payload


def _collect_messages(exc: Exception) -> list[str]:
    if not isinstance(exc, DjangoValidationError):
        return [str(exc)]

    if hasattr(exc, "error_dict"):
        messages: list[str] = []
        for field, field_messages in exc.message_dict.items():
            if field == "__all__":
                messages.extend(str(message) for message in field_messages)
            else:
                messages.extend(f"{field}: {message}" for message in field_messages)
        return messages
    return [str(message) for message in exc.messages]


def validation_error_payload(
    exc: Exception,
    default_detail: str = "Error de validacion",
    default_code: str = "VALIDATION_ERROR",
) -> dict[str, Any]:
    errors = [error for error in _collect_messages(exc) if error]
    detail = errors[0] if errors else default_detail
    return build_error_payload(detail=detail, code=default_code, errors=errors or [default_detail])


def service_error_response(
    exc: Exception,
    default_detail: str,
    default_code: str,
) -> Response:
    """
    Convierte un ValidationError de la capa de servicios en respuesta HTTP.

    Los faltantes de stock responden 409 y el resto 400.
    """
    payload = validation_error_payload(exc, default_detail=default_detail, default_code=default_code)
    is_stock_conflict = any(STOCK_CONFLICT_MARKER in message for message in payload["errors"])
    http_status = status.HTTP_409_CONFLICT if is_stock_conflict else status.HTTP_400_BAD_REQUEST
    return Response(payload, status=http_status)


def success_response(
    detail: str,
    code: str = "SUCCESS",
    http_status: int = status.HTTP_200_OK,
    **extra: Any,
) -> Response:
    return Response(build_success_payload(detail=detail, code=code, **extra), status=http_status)


def error_response(
    detail: str,
    code: str = "ERROR",
    http_status: int = status.HTTP_400_BAD_REQUEST,
    errors: list[str] | None = None,
    **extra: Any,
) -> Response:
    return Response(
        build_error_payload(detail=detail, code=code, errors=errors, **extra),
        status=http_status,
    )
