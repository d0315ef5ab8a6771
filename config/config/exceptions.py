"""
Manejador global de excepciones DRF.

Toda respuesta de error sale con el mismo cuerpo que las views de la tienda:
{"detail": ..., "code": ..., "errors": [...]}.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("tienda.api")

DEFAULT_DETAIL = "Ha ocurrido un error."

STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: "NOT_AUTHENTICATED",
    status.HTTP_403_FORBIDDEN: "PERMISSION_DENIED",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    status.HTTP_429_TOO_MANY_REQUESTS: "THROTTLED",
}


def _flatten_field_errors(data: dict) -> list[str]:
    errors: list[str] = []
    for field, value in data.items():
        if isinstance(value, dict):
            errors.extend(f"{field}.{item}" for item in _flatten_field_errors(value))
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict):
                    errors.extend(f"{field}.{nested}" for nested in _flatten_field_errors(item))
                else:
                    errors.append(f"{field}: {item}")
        else:
            errors.append(f"{field}: {value}")
    return errors


def custom_exception_handler(exc, context):
    # ValidationError de Django escapada de un servicio
    if isinstance(exc, DjangoValidationError):
        exc = exceptions.ValidationError(detail=exc.messages)

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.exception(
            "Error no controlado en %s", view.__class__.__name__ if view else "view desconocida"
        )
        return Response(
            {"detail": DEFAULT_DETAIL, "code": "SERVER_ERROR", "errors": [DEFAULT_DETAIL]},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    data = response.data
    code = STATUS_CODES.get(response.status_code, "ERROR")
    detail = DEFAULT_DETAIL
    errors: list[str] = []

    if isinstance(data, list):
        errors = [str(item) for item in data]
        if errors:
            detail = errors[0]
        code = "VALIDATION_ERROR"
    elif isinstance(data, dict):
        if "detail" in data:
            if isinstance(data["detail"], list):
                errors = [str(item) for item in data["detail"]]
                detail = errors[0] if errors else detail
            else:
                detail = str(data["detail"])
                errors = [detail]
            if response.status_code not in STATUS_CODES and hasattr(exc, "default_code"):
                code = str(exc.default_code).upper()
        else:
            errors = _flatten_field_errors(data)
            if errors:
                detail = errors[0]
            code = "VALIDATION_ERROR"
    else:
        detail = str(data)
        errors = [detail]

    if response.status_code >= 500:
        logger.error("Error %s: %s", response.status_code, detail)

    response.data = {
        "detail": detail,
        "code": code,
        "errors": errors or [detail],
    }
    return response
