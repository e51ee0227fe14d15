from enum import Enum
from typing import Any, Mapping


class SemanticField(str, Enum):
    LOCATION = "location"
    STATUS = "status"
    USER = "user"
    PURCHASE_DATE = "purchase_date"
    SERIAL = "serial"


# Ordered lookup keys per semantic field. The first key present in a row wins,
# even when its value is empty.
FIELD_KEYS: dict[SemanticField, tuple[str, ...]] = {
    SemanticField.LOCATION: (
        "location",
        "Location",
        "LOCATION",
        "ubicacion",
        "Ubicacion",
        "ubicación",
        "Ubicación",
        "site",
        "Site",
    ),
    SemanticField.STATUS: (
        "status",
        "Status",
        "STATUS",
        "estado",
        "Estado",
        "state",
        "State",
    ),
    SemanticField.USER: (
        "user",
        "User",
        "USER",
        "usuario",
        "Usuario",
        "assigned_to",
        "Assigned To",
        "owner",
        "Owner",
        "responsable",
        "Responsable",
    ),
    SemanticField.PURCHASE_DATE: (
        "purchase_date",
        "purchaseDate",
        "PurchaseDate",
        "purchase date",
        "Purchase Date",
        "Purchase_Date",
        "fecha_compra",
        "fecha de compra",
        "Fecha de compra",
        "Fecha de Compra",
    ),
    SemanticField.SERIAL: (
        "serial",
        "Serial",
        "SERIAL",
        "serial_number",
        "Serial Number",
        "serie",
        "Serie",
        "numero_serie",
        "Número de serie",
    ),
}

FALLBACK_LABELS: dict[SemanticField, str] = {
    SemanticField.LOCATION: "Unknown location",
    SemanticField.STATUS: "Unknown status",
    SemanticField.USER: "Unassigned",
    SemanticField.PURCHASE_DATE: "Unknown purchase date",
    SemanticField.SERIAL: "No serial",
}


def resolve_key(row: Mapping[str, Any], field: SemanticField) -> str | None:
    for key in FIELD_KEYS[SemanticField(field)]:
        if key in row:
            return key
    return None


def resolve_field(row: Mapping[str, Any], field: SemanticField) -> Any:
    """Raw value of the first accepted key present in ``row``, or None."""
    key = resolve_key(row, field)
    if key is None:
        return None
    value = row[key]
    return "" if value is None else value


def canonical_value(row: Mapping[str, Any], field: SemanticField) -> str:
    value = resolve_field(row, field)
    if value is None:
        return FALLBACK_LABELS[SemanticField(field)]
    return str(value)


def is_missing(row: Mapping[str, Any], field: SemanticField) -> bool:
    value = resolve_field(row, field)
    return value is None or str(value).strip() == ""
