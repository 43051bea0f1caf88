"""
HTML form handling shared by every page.

Browsers post flat key/value pairs. Before pydantic validation they are
reshaped: dotted names ("address.street") are nested, names ending in "[]"
are collected as lists, and names like "items[].description" are zipped into
a list of rows. Field names on the wire use the backend's camelCase.
"""
import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, EmailStr, ValidationError, model_validator
from pydantic.alias_generators import to_camel

REQUIRED_MESSAGE = "Ce champ est requis"

CHOICE_LABELS = {
    # roles
    "admin": "Administrateur",
    "technician": "Technicien",
    "client": "Client",
    # company types
    "restaurant": "Restaurant",
    "bakery": "Boulangerie",
    "retail": "Commerce",
    "cafe": "Café",
    "office": "Bureau",
    "hotel": "Hôtel",
    "pharmacy": "Pharmacie",
    "supermarket": "Supermarché",
    "other": "Autre",
    # request / service categories
    "installation": "Installation",
    "maintenance": "Maintenance",
    "repair": "Réparation",
    "diagnostic": "Diagnostic",
    "emergency": "Urgence",
    # priorities
    "low": "Basse",
    "normal": "Normale",
    "high": "Haute",
    "urgent": "Urgente",
    # statuses
    "pending": "En attente",
    "assigned": "Assignée",
    "in-progress": "En cours",
    "completed": "Terminé",
    "cancelled": "Annulé",
    "quoted": "Devis envoyé",
    "draft": "Brouillon",
    "sent": "Envoyé",
    "accepted": "Accepté",
    "rejected": "Refusé",
    "expired": "Expiré",
    "mission_assigned": "Mission assignée",
    "paid": "Payée",
    "overdue": "En retard",
    "failed": "Échoué",
    "refunded": "Remboursé",
    # payment methods
    "card": "Carte bancaire",
    "bank_transfer": "Virement bancaire",
    "check": "Chèque",
    "cash": "Espèces",
    # quote items
    "service": "Service",
    "equipment": "Équipement",
}


def choice_label(value: Any) -> str:
    """French label of an enum value, the value itself when unknown."""
    if value is None:
        return ""
    return CHOICE_LABELS.get(str(value), str(value))


class FormModel(BaseModel):
    """Base of every form: camelCase names, blank inputs treated as absent."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if not (isinstance(v, str) and not v.strip())}
        return data

    def to_payload(self) -> Dict[str, Any]:
        """Backend request body: camelCase keys, unset optional fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _node(data: Dict[str, Any], dotted: str) -> Tuple[Dict[str, Any], str]:
    parts = dotted.split(".")
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    return node, parts[-1]


# PUBLIC_INTERFACE
def nest_form(pairs: Sequence[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Reshape posted key/value pairs into nested data.

    Args:
        pairs: Form pairs in posting order, repeated keys allowed

    Returns:
        Dict[str, Any]: Nested data ready for model validation
    """
    data: Dict[str, Any] = {}
    rows: Dict[str, Dict[str, List[Any]]] = {}
    for key, value in pairs:
        if hasattr(value, "filename"):
            # uploads are not forwarded
            continue
        if "[]." in key:
            name, column = key.split("[].", 1)
            rows.setdefault(name, {}).setdefault(column, []).append(value)
        elif key.endswith("[]"):
            node, leaf = _node(data, key[:-2])
            values = node.setdefault(leaf, [])
            if isinstance(value, str) and value.strip():
                values.append(value)
        else:
            node, leaf = _node(data, key)
            node[leaf] = value

    for name, columns in rows.items():
        count = max(len(values) for values in columns.values())
        items = []
        for index in range(count):
            row = {column: values[index] for column, values in columns.items() if index < len(values)}
            if any(isinstance(v, str) and v.strip() for v in row.values()):
                items.append(row)
        node, leaf = _node(data, name)
        node[leaf] = items
    return data


# PUBLIC_INTERFACE
def flatten_record(record: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Inverse of nest_form, used to prefill an edit form from a backend record.

    Populated references ({"_id": ..., "firstName": ...}) collapse to their
    id, also inside the rows of a list.
    """
    values: Dict[str, Any] = {}
    for key, value in (record or {}).items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            if _is_reference(value):
                values[name] = value.get("_id") or value.get("id")
            else:
                values.update(flatten_record(value, prefix=f"{name}."))
        elif isinstance(value, list):
            values[name] = [_collapse_references(row) if isinstance(row, dict) else row for row in value]
        else:
            values[name] = value
    return values


def _is_reference(value: Dict[str, Any]) -> bool:
    return "_id" in value or "id" in value


def _collapse_references(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: (value.get("_id") or value.get("id")) if isinstance(value, dict) and _is_reference(value) else value
        for key, value in row.items()
    }


def _error_message(error: Dict[str, Any]) -> str:
    kind = error.get("type", "")
    ctx = error.get("ctx") or {}
    if kind == "missing":
        return REQUIRED_MESSAGE
    if kind == "greater_than_equal":
        return f"Doit être supérieur ou égal à {ctx.get('ge')}"
    if kind == "greater_than":
        return f"Doit être supérieur à {ctx.get('gt')}"
    if kind == "less_than_equal":
        return f"Doit être inférieur ou égal à {ctx.get('le')}"
    if kind == "string_too_short":
        return f"Au moins {ctx.get('min_length')} caractères"
    if kind == "too_short":
        return f"Au moins {ctx.get('min_length')} élément(s) requis"
    if kind == "literal_error":
        return "Valeur non autorisée"
    if kind == "string_pattern_mismatch":
        return "Format invalide"
    if kind in ("int_parsing", "float_parsing", "decimal_parsing"):
        return "Nombre invalide"
    if kind.startswith("date") or kind.startswith("datetime"):
        return "Date invalide"
    message = error.get("msg", "Valeur invalide")
    if "email address" in message:
        return "Adresse e-mail invalide"
    return message.replace("Value error, ", "", 1)


# PUBLIC_INTERFACE
def form_errors(exc: ValidationError) -> Dict[str, str]:
    """
    Map a validation error to one French message per form field.

    Keys are the posted field names ("address.city", "items.0.quantity");
    model-level errors are reported under "__all__".
    """
    errors: Dict[str, str] = {}
    for error in exc.errors():
        name = ".".join(str(part) for part in error.get("loc", ())) or "__all__"
        errors.setdefault(name, _error_message(error))
    return errors


# PUBLIC_INTERFACE
def validate_form(model: Type[FormModel], data: Dict[str, Any]) -> Tuple[Optional[FormModel], Dict[str, str]]:
    """Validate nested form data, returning (instance, {}) or (None, errors)."""
    try:
        return model.model_validate(data), {}
    except ValidationError as exc:
        return None, form_errors(exc)


@dataclass
class FormField:
    """One input of a generated form."""
    name: str
    label: str
    kind: str = "text"
    required: bool = False
    choices: List[Tuple[str, str]] = field(default_factory=list)
    columns: List["FormField"] = field(default_factory=list)
    default: Any = None


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) is Union:
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _literal_choices(annotation: Any) -> List[Tuple[str, str]]:
    if get_origin(annotation) is Literal:
        return [(str(value), choice_label(value)) for value in get_args(annotation)]
    return []


def _input_kind(annotation: Any) -> str:
    if annotation is bool:
        return "checkbox"
    if annotation is EmailStr:
        return "email"
    if annotation in (int, float, Decimal):
        return "number"
    if annotation is dt.datetime:
        return "datetime-local"
    if annotation is dt.date:
        return "date"
    return "text"


# PUBLIC_INTERFACE
def form_fields(
    model: Type[BaseModel],
    choices: Optional[Dict[str, List[Tuple[str, str]]]] = None,
    prefix: str = "",
) -> List[FormField]:
    """
    Describe the inputs of a form model for the generic form template.

    Args:
        model: Form model
        choices: Options loaded from the backend, by field name (clientId...)
        prefix: Name prefix for nested models

    Returns:
        List[FormField]: Inputs in declaration order, nested models flattened
    """
    choices = choices or {}
    fields: List[FormField] = []
    for name, info in model.model_fields.items():
        alias = info.alias or name
        path = f"{prefix}{alias}"
        annotation = _unwrap_optional(info.annotation)
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        label = info.description or alias
        required = info.is_required()
        default = None if required else info.get_default(call_default_factory=True)

        if _is_model(annotation):
            fields.extend(form_fields(annotation, choices, prefix=f"{path}."))
            continue

        if get_origin(annotation) in (list, List):
            item = (get_args(annotation) or (str,))[0]
            if _is_model(item):
                fields.append(FormField(path, label, "items", required, columns=form_fields(item, choices)))
            else:
                fields.append(FormField(path, label, "list", required, choices=_literal_choices(item)))
            continue

        field_choices = choices.get(path) or _literal_choices(annotation)
        kind = "select" if field_choices else extra.get("widget") or _input_kind(annotation)
        fields.append(FormField(path, label, kind, required, list(field_choices), default=default))
    return fields
