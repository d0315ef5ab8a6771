"""
Servicios de atributos por categoría: definiciones, valores por producto y
filtros del catálogo.

Los valores se guardan como texto. Las selecciones múltiples se guardan como
una lista JSON.
"""

from __future__ import annotations

import json
import logging
import re
from collections import Counter
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Max, Q, QuerySet
from django.utils.text import slugify

from ..core.utils import parse_iso_date
from ..models import AuditLog, Category, CategoryAttribute, Product, ProductAttributeValue

logger = logging.getLogger(__name__)

FieldType = CategoryAttribute.FieldType

ATTRIBUTE_PARAM_PREFIX = "attr_"
OPTION_FIELD_TYPES = {FieldType.SELECT, FieldType.MULTISELECT}
NUMERIC_FIELD_TYPES = {FieldType.NUMBER, FieldType.RANGE}
TRUE_VALUES = {"true", "1", "si", "sí", "yes"}
FALSE_VALUES = {"false", "0", "no"}
HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")

CLONED_FIELDS = [
    "name", "description", "field_type", "options", "unit", "required", "filterable",
    "show_in_detail", "show_in_card", "min_value", "max_value", "validation_pattern",
    "error_message", "group", "sort_order", "active",
]


def generate_technical_name(name: str) -> str:
    """'Largo de manga' -> 'largo_de_manga'"""
    return slugify(name).replace("-", "_") or "atributo"


def unique_technical_name(category_id: int, base: str) -> str:
    """Agrega sufijo `_N` hasta que el nombre técnico no exista en la categoría"""
    taken = set(
        CategoryAttribute.objects.filter(category_id=category_id).values_list("technical_name", flat=True)
    )
    if base not in taken:
        return base
    suffix = 1
    while f"{base}_{suffix}" in taken:
        suffix += 1
    return f"{base}_{suffix}"


def next_sort_order(category_id: int) -> int:
    current = CategoryAttribute.objects.filter(category_id=category_id).aggregate(top=Max("sort_order"))["top"]
    return 1 if current is None else current + 1


def validate_definition(
    *,
    field_type: str,
    options: list,
    min_value: Decimal | None,
    max_value: Decimal | None,
    validation_pattern: str,
) -> list[str]:
    """
    Revisa la coherencia de una definición de atributo.

    Returns:
        list[str]: Errores encontrados (vacía si es válida)
    """
    errors = []
    if field_type in OPTION_FIELD_TYPES and not [option for option in options if str(option).strip()]:
        errors.append("Los campos de selección requieren al menos una opción")
    if min_value is not None and max_value is not None and min_value > max_value:
        errors.append("El valor mínimo no puede ser mayor que el máximo")
    if validation_pattern:
        try:
            re.compile(validation_pattern)
        except re.error:
            errors.append("El patrón de validación no es una expresión regular válida")
    return errors


def _is_blank(raw) -> bool:
    if raw is None:
        return True
    if isinstance(raw, (list, tuple)):
        return not [item for item in raw if str(item).strip()]
    return not str(raw).strip()


def _format_number(number: Decimal) -> str:
    return format(number.normalize(), "f")


def clean_attribute_value(attribute: CategoryAttribute, raw) -> tuple[str, str] | None:
    """
    Valida y normaliza el valor de un atributo para un producto.

    Args:
        attribute: Definición del atributo
        raw: Valor recibido (texto, número, booleano o lista para selección múltiple)

    Returns:
        tuple[str, str] | None: (valor guardado, valor para mostrar) o None si
        viene vacío y el atributo es opcional

    Raises:
        ValidationError: Valor obligatorio ausente o incompatible con el tipo
    """
    name = attribute.name
    if _is_blank(raw):
        if attribute.required:
            raise ValidationError(attribute.error_message or f"{name} es obligatorio")
        return None

    field_type = attribute.field_type
    options = [str(option) for option in attribute.options or []]

    if field_type == FieldType.MULTISELECT:
        chosen = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
        chosen = [str(item).strip() for item in chosen if str(item).strip()]
        invalid = [item for item in chosen if options and item not in options]
        if invalid:
            raise ValidationError(f"'{', '.join(invalid)}' no es una opción válida para {name}")
        return json.dumps(chosen, ensure_ascii=False), ", ".join(chosen)

    if field_type == FieldType.SELECT:
        value = str(raw).strip()
        if options and value not in options:
            raise ValidationError(f"'{value}' no es una opción válida para {name}")
        return value, value

    if field_type in NUMERIC_FIELD_TYPES:
        try:
            number = Decimal(str(raw).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} debe ser un número")
        if not number.is_finite():
            raise ValidationError(f"{name} debe ser un número")
        if attribute.min_value is not None and number < attribute.min_value:
            raise ValidationError(f"{name} debe ser mayor o igual a {_format_number(attribute.min_value)}")
        if attribute.max_value is not None and number > attribute.max_value:
            raise ValidationError(f"{name} debe ser menor o igual a {_format_number(attribute.max_value)}")
        value = _format_number(number)
        return value, f"{value} {attribute.unit}".strip()

    if field_type == FieldType.CHECKBOX:
        flag = str(raw).strip().lower()
        if flag in TRUE_VALUES:
            return "true", "Sí"
        if flag in FALSE_VALUES:
            return "false", "No"
        raise ValidationError(f"{name} debe ser Sí o No")

    if field_type == FieldType.DATE:
        parsed = parse_iso_date(str(raw).strip())
        if parsed is None:
            raise ValidationError(f"{name} debe ser una fecha con formato AAAA-MM-DD")
        return parsed.isoformat(), parsed.strftime("%d/%m/%Y")

    if field_type == FieldType.COLOR:
        value = str(raw).strip()
        if not HEX_COLOR.match(value):
            raise ValidationError(f"{name} debe ser un color hexadecimal, por ejemplo #FF0000")
        return value.upper(), value.upper()

    value = str(raw).strip()
    if attribute.validation_pattern and not re.fullmatch(attribute.validation_pattern, value):
        raise ValidationError(attribute.error_message or f"{name} tiene un formato inválido")
    return value, f"{value} {attribute.unit}".strip()


@transaction.atomic
def save_product_attribute_values(*, product: Product, values: dict, user) -> list[ProductAttributeValue]:
    """
    Reemplaza los valores de atributos de un producto.

    Solo se aceptan atributos activos de la categoría del producto. Los
    atributos que no vienen (o vienen vacíos) se eliminan del producto. Si
    algún valor es inválido no se guarda ninguno y se reportan todos los
    errores juntos.

    Args:
        product: Producto a actualizar
        values: {id_atributo: valor}
        user: Usuario que realiza el cambio

    Returns:
        list[ProductAttributeValue]: Valores vigentes del producto

    Raises:
        ValidationError: Con la lista de errores encontrados
    """
    attributes = {
        attribute.id: attribute
        for attribute in CategoryAttribute.objects.filter(category_id=product.category_id, active=True)
    }

    errors = []
    received = {}
    for key, raw in values.items():
        try:
            attribute_id = int(key)
        except (TypeError, ValueError):
            errors.append(f"'{key}' no es un identificador de atributo válido")
            continue
        if attribute_id not in attributes:
            errors.append(f"El atributo {attribute_id} no pertenece a la categoría del producto")
            continue
        received[attribute_id] = raw

    cleaned = {}
    for attribute in attributes.values():
        try:
            result = clean_attribute_value(attribute, received.get(attribute.id))
        except ValidationError as exc:
            errors.extend(exc.messages)
            continue
        if result is not None:
            cleaned[attribute.id] = result

    if errors:
        raise ValidationError(errors)

    existing = {current.attribute_id: current for current in product.attribute_values.select_for_update()}
    saved = []
    for attribute_id, (value, display_value) in cleaned.items():
        attribute = attributes[attribute_id]
        current = existing.pop(attribute_id, None)
        if current is None:
            current = ProductAttributeValue.objects.create(
                product=product,
                attribute=attribute,
                value=value,
                display_value=display_value,
                sort_order=attribute.sort_order,
            )
            CategoryAttribute.objects.filter(pk=attribute_id).update(usage_count=F("usage_count") + 1)
        elif current.value != value or current.display_value != display_value:
            current.value = value
            current.display_value = display_value
            current.save(update_fields=["value", "display_value", "updated_at"])
        saved.append(current)

    for stale in existing.values():
        CategoryAttribute.objects.filter(pk=stale.attribute_id, usage_count__gt=0).update(
            usage_count=F("usage_count") - 1
        )
        stale.delete()

    AuditLog.objects.create(
        action="save_product_attributes",
        entity="product",
        entity_id=product.id,
        performed_by=user.username,
        extra_data={"values": {str(key): value for key, (value, _) in cleaned.items()}},
    )
    logger.info("Atributos del producto %s actualizados: %s valores", product.id, len(saved))
    return sorted(saved, key=lambda item: (item.sort_order, item.attribute_id))


def filter_by_attributes(queryset: QuerySet, params) -> QuerySet:
    """
    Filtra productos por parámetros `attr_<nombre_tecnico>=v1,v2`.

    Distintos atributos se combinan con Y; los valores de un mismo atributo
    con O.
    """
    applied = False
    for key in params.keys():
        if not key.startswith(ATTRIBUTE_PARAM_PREFIX):
            continue
        technical_name = key[len(ATTRIBUTE_PARAM_PREFIX):]
        wanted = [item.strip() for item in str(params.get(key, "")).split(",") if item.strip()]
        if not technical_name or not wanted:
            continue

        match = Q(attribute_values__value__in=wanted)
        for option in wanted:
            match |= Q(
                attribute_values__attribute__field_type=FieldType.MULTISELECT,
                attribute_values__value__contains=json.dumps(option, ensure_ascii=False),
            )
        queryset = queryset.filter(
            match,
            attribute_values__attribute__technical_name=technical_name,
            attribute_values__attribute__active=True,
            attribute_values__attribute__filterable=True,
        )
        applied = True
    return queryset.distinct() if applied else queryset


def _stored_options(attribute: CategoryAttribute, value: str) -> list[str]:
    if attribute.field_type == FieldType.MULTISELECT:
        try:
            return [str(item) for item in json.loads(value)]
        except (TypeError, ValueError):
            return []
    return [value]


def attribute_filters_for_category(category: Category) -> list[dict]:
    """
    Atributos filtrables de una categoría con los valores en uso y cuántos
    productos visibles tienen cada uno.
    """
    attributes = list(
        CategoryAttribute.objects.filter(category=category, active=True, filterable=True).order_by(
            "sort_order", "id"
        )
    )
    counters = {attribute.id: Counter() for attribute in attributes}
    by_id = {attribute.id: attribute for attribute in attributes}
    rows = ProductAttributeValue.objects.filter(
        attribute__in=attributes, product__active=True
    ).filter(Q(product__vendor__isnull=True) | Q(product__vendor__is_active=True)).values_list(
        "attribute_id", "value"
    )
    for attribute_id, value in rows:
        counters[attribute_id].update(set(_stored_options(by_id[attribute_id], value)))

    filters = []
    for attribute in attributes:
        counter = counters[attribute.id]
        ordered = [str(option) for option in attribute.options or [] if str(option) in counter]
        ordered += sorted(value for value in counter if value not in ordered)
        filters.append(
            {
                "attribute_id": attribute.id,
                "name": attribute.name,
                "technical_name": attribute.technical_name,
                "param": f"{ATTRIBUTE_PARAM_PREFIX}{attribute.technical_name}",
                "field_type": attribute.field_type,
                "unit": attribute.unit,
                "group": attribute.group,
                "values": [{"value": value, "count": counter[value]} for value in ordered],
            }
        )
    return filters


def _clone(attribute: CategoryAttribute, category_id: int, **overrides) -> CategoryAttribute:
    data = {field: getattr(attribute, field) for field in CLONED_FIELDS}
    data.update(overrides)
    data["options"] = list(data["options"] or [])
    data["technical_name"] = unique_technical_name(category_id, attribute.technical_name)
    return CategoryAttribute.objects.create(category_id=category_id, **data)


@transaction.atomic
def duplicate_attribute(*, attribute: CategoryAttribute, user) -> CategoryAttribute:
    copy = _clone(
        attribute,
        attribute.category_id,
        name=f"{attribute.name} (copia)",
        sort_order=next_sort_order(attribute.category_id),
    )
    AuditLog.objects.create(
        action="duplicate_attribute",
        entity="category_attribute",
        entity_id=copy.id,
        performed_by=user.username,
        extra_data={"source": attribute.id},
    )
    return copy


@transaction.atomic
def copy_attributes(*, source: Category, target: Category, user) -> list[CategoryAttribute]:
    """
    Copia todos los atributos de una categoría a otra.

    Los nombres técnicos que ya existen en el destino reciben sufijo `_N`.
    """
    if source.pk == target.pk:
        raise ValidationError("La categoría de origen y destino deben ser distintas")
    source_attributes = list(CategoryAttribute.objects.filter(category=source).order_by("sort_order", "id"))
    if not source_attributes:
        raise ValidationError(f"La categoría '{source.name}' no tiene atributos para copiar")

    start = next_sort_order(target.id)
    copies = [
        _clone(attribute, target.id, sort_order=start + offset)
        for offset, attribute in enumerate(source_attributes)
    ]
    AuditLog.objects.create(
        action="copy_attributes",
        entity="category",
        entity_id=target.id,
        performed_by=user.username,
        extra_data={"source": source.id, "attributes": [copy.id for copy in copies]},
    )
    logger.info("Copiados %s atributos de la categoría %s a %s", len(copies), source.id, target.id)
    return copies


def toggle_attribute(*, attribute: CategoryAttribute, user) -> CategoryAttribute:
    attribute.active = not attribute.active
    attribute.save(update_fields=["active", "updated_at"])
    state = "activado" if attribute.active else "desactivado"
    logger.info("Atributo %s %s por %s", attribute.id, state, user.username)
    return attribute
