"""Read-only rendering of submitted values for the confirmation screen."""
from typing import Any, Dict, List, Mapping, Optional

from markupsafe import Markup, escape

from form_plant.config.template_config import render_template
from form_plant.schema.form_schema import DISPLAY_ONLY_TYPES, FieldDefinition, FieldType
from form_plant.services.field_service import is_empty

EMPTY_MARK = "-"


def _join_date(value: Any) -> Any:
    if isinstance(value, dict):
        parts = [str(value.get(key) or "") for key in ("year", "month", "day")]
        return "-".join(parts) if all(parts) else ""
    return value


def _plain(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def display_text(field: FieldDefinition, value: Any, filename: Optional[str] = None) -> str:
    """Human-readable text for one value, unescaped. Shared with CSV and email output."""
    kind = field.type

    if kind in (FieldType.SELECT.value, FieldType.RADIO.value):
        if is_empty(value):
            return EMPTY_MARK
        label = field.option_label(value)
        return label if label else _plain(value)

    if kind == FieldType.CHECKBOX.value:
        values = value if isinstance(value, (list, tuple)) else ([] if is_empty(value) else [value])
        values = [item for item in values if not is_empty(item)]
        if not values:
            return EMPTY_MARK
        labels = [field.option_label(item) for item in values]
        resolved = [label for label in labels if label]
        if resolved:
            return field.delimiter.join(resolved)
        return field.delimiter.join(str(item) for item in values)

    if kind == FieldType.FILE.value:
        if filename:
            return filename
        if isinstance(value, dict):
            return value.get("filename") or EMPTY_MARK
        return EMPTY_MARK if is_empty(value) else _plain(value)

    if kind == FieldType.DATE_SELECT.value:
        value = _join_date(value)

    return EMPTY_MARK if is_empty(value) else _plain(value)


def render_confirm_field(field: FieldDefinition, value: Any, filename: Optional[str] = None) -> Markup:
    if field.type in DISPLAY_ONLY_TYPES:
        return Markup("")

    text = display_text(field, value, filename)
    if field.type == FieldType.TEXTAREA.value and text != EMPTY_MARK:
        # escape first so only the inserted line breaks are markup
        return Markup("<br>\n").join(escape(text).split("\n"))
    return escape(text)


def confirmation_rows(
    fields: List[FieldDefinition],
    values: Mapping[str, Any],
    filenames: Optional[Dict[str, str]] = None,
) -> List[Dict[str, Any]]:
    filenames = filenames or {}
    return [
        {
            "name": field.name,
            "label": field.label or field.name,
            "value": render_confirm_field(field, values.get(field.name), filenames.get(field.name)),
        }
        for field in fields
        if field.type not in DISPLAY_ONLY_TYPES
    ]


def render_all_fields(
    fields: List[FieldDefinition],
    values: Mapping[str, Any],
    filenames: Optional[Dict[str, str]] = None,
) -> Markup:
    return render_template("confirm_fields/all_fields.html", rows=confirmation_rows(fields, values, filenames))
