"""
Field type registry and input-screen field renderer.

Every FieldType maps to exactly one render function in FIELD_RENDERERS;
ensure_renderers_complete() runs at import time so a missing entry fails at
startup instead of rendering nothing.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional

from markupsafe import Markup

from form_plant.config.env_config import settings
from form_plant.config.template_config import render_template
from form_plant.constants.error import ERROR
from form_plant.constants.messages import MESSAGE
from form_plant.schema.form_schema import FieldDefinition, FieldType, FormDefinition
from form_plant.services.hook_service import HookRegistry
from form_plant.utils.sanitize_utils import (
    is_iso_date,
    sanitize_email,
    sanitize_html,
    sanitize_text_field,
    sanitize_url,
    to_float,
)

logger = logging.getLogger(__name__)

FIELD_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
DEFAULT_ALLOWED_TYPES = ["jpg", "jpeg", "png", "gif", "pdf"]
MB = 1024 * 1024


@dataclass(frozen=True)
class FieldTypeInfo:
    label: str
    defaults: Dict[str, Any]
    # HTML input type for the single-input kinds
    input_type: Optional[str] = None


FIELD_TYPES: Dict[FieldType, FieldTypeInfo] = {
    FieldType.TEXT: FieldTypeInfo("Text", {"size": None, "maxlength": None}, "text"),
    FieldType.TEXTAREA: FieldTypeInfo("Textarea", {"rows": 5}),
    FieldType.EMAIL: FieldTypeInfo("Email", {}, "email"),
    FieldType.TEL: FieldTypeInfo("Phone", {"phone_format": "national"}, "tel"),
    FieldType.URL: FieldTypeInfo("URL", {}, "url"),
    FieldType.NUMBER: FieldTypeInfo("Number", {"min": None, "max": None, "step": None}, "number"),
    FieldType.DATE: FieldTypeInfo("Date", {"year_start": 100, "year_end": 10}, "date"),
    FieldType.DATE_SELECT: FieldTypeInfo("Date (select)", {"year_start": 100, "year_end": 10}),
    FieldType.TIME: FieldTypeInfo("Time", {}, "time"),
    FieldType.SELECT: FieldTypeInfo("Select", {"options": []}),
    FieldType.RADIO: FieldTypeInfo("Radio", {"options": [], "layout": "vertical"}),
    FieldType.CHECKBOX: FieldTypeInfo("Checkbox", {"options": [], "layout": "vertical", "delimiter": ", "}),
    FieldType.FILE: FieldTypeInfo("File", {"allowed_types": DEFAULT_ALLOWED_TYPES, "max_size": None}),
    FieldType.HIDDEN: FieldTypeInfo("Hidden", {}),
    FieldType.HTML: FieldTypeInfo("HTML", {"content": ""}),
}


def field_type_of(field: FieldDefinition) -> Optional[FieldType]:
    try:
        return FieldType(field.type)
    except ValueError:
        return None


def get_field_defaults(field_type: str) -> Dict[str, Any]:
    try:
        info = FIELD_TYPES[FieldType(field_type)]
    except ValueError:
        return {}
    defaults = dict(info.defaults)
    if field_type == FieldType.FILE.value:
        defaults["max_size"] = settings.FILE_MAX_SIZE_MB
        defaults["allowed_types"] = list(DEFAULT_ALLOWED_TYPES)
    return defaults


def field_max_size_mb(field: FieldDefinition) -> float:
    return field.max_size if field.max_size else settings.FILE_MAX_SIZE_MB


def field_allowed_types(field: FieldDefinition) -> List[str]:
    return field.allowed_types or list(DEFAULT_ALLOWED_TYPES)


def derive_field_name(label: str, taken: List[str]) -> str:
    base = re.sub(r"[^A-Za-z0-9_]+", "_", (label or "").strip()).strip("_").lower() or "field"
    name, counter = base, 2
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    return name


def validate_field_definition(raw: Mapping[str, Any]) -> Optional[str]:
    """First problem with a raw field definition, or None."""
    if not raw.get("type"):
        return ERROR.FIELD_TYPE_MISSING
    if not raw.get("name"):
        return ERROR.FIELD_NAME_MISSING
    if not FIELD_NAME_RE.match(str(raw["name"])):
        return ERROR.FIELD_NAME_INVALID
    try:
        FieldType(raw["type"])
    except ValueError:
        return ERROR.FIELD_TYPE_UNSUPPORTED
    return None


def normalize_field(raw: Mapping[str, Any], taken: Optional[List[str]] = None) -> Dict[str, Any]:
    """Fill type defaults and derive a missing name from the label."""
    field = dict(raw)
    if not field.get("name") and field.get("label"):
        field["name"] = derive_field_name(field["label"], taken or [])
    for key, value in get_field_defaults(field.get("type", "")).items():
        if field.get(key) in (None, ""):
            field[key] = value
    return field


def is_url_param_placeholder(field: FieldDefinition) -> bool:
    return isinstance(field.default, str) and field.default == "{" + field.name + "}"


def sanitize_url_param(field: FieldDefinition, raw: str) -> Any:
    if field.type == FieldType.EMAIL.value:
        return sanitize_email(raw)
    if field.type == FieldType.URL.value:
        return sanitize_url(raw)
    if field.type == FieldType.NUMBER.value:
        return to_float(raw)
    if field.type == FieldType.CHECKBOX.value:
        return [sanitize_text_field(part) for part in raw.split(",") if part.strip()]
    if field.type in (FieldType.DATE.value, FieldType.DATE_SELECT.value):
        return raw if is_iso_date(raw) else None
    return sanitize_text_field(raw)


def resolve_initial_value(
    field: FieldDefinition,
    form: FormDefinition,
    query_params: Optional[Mapping[str, str]] = None,
    hooks: Optional[HookRegistry] = None,
) -> Any:
    """URL parameter, then initial-value providers, then the field default."""
    if form.settings.allow_url_params and is_url_param_placeholder(field):
        raw = (query_params or {}).get(field.name)
        if raw is None:
            return ""
        value = sanitize_url_param(field, raw)
        return "" if value is None else value

    if hooks is not None:
        value = hooks.initial_value(field, form)
        if value is not None:
            return value

    # an unresolved URL marker is never shown to the user
    if is_url_param_placeholder(field):
        return ""
    return field.default if field.default is not None else ""


def is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


@dataclass
class FieldRenderContext:
    form: FormDefinition
    field: FieldDefinition
    value: Any
    field_id: str
    css_class: str
    placeholder: str

    def template(self, name: str, **extra) -> Markup:
        return render_template(
            f"form_fields/{name}.html",
            field=self.field,
            value=self.value,
            field_id=self.field_id,
            css_class=self.css_class,
            placeholder=self.placeholder,
            **extra,
        )


def _scalar(value: Any) -> str:
    if is_empty(value) or isinstance(value, (list, dict)):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_list(value: Any) -> List[str]:
    if is_empty(value):
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _date_parts(value: Any) -> Dict[str, str]:
    if isinstance(value, dict):
        return {key: str(value.get(key) or "") for key in ("year", "month", "day")}
    if is_iso_date(value):
        year, month, day = value.split("-")
        return {"year": year, "month": month, "day": day}
    return {"year": "", "month": "", "day": ""}


def _render_input(ctx: FieldRenderContext) -> Markup:
    info = FIELD_TYPES[FieldType(ctx.field.type)]
    return ctx.template("input", input_type=info.input_type, display_value=_scalar(ctx.value))


def _render_number(ctx: FieldRenderContext) -> Markup:
    return ctx.template("number", display_value=_scalar(ctx.value))


def _render_textarea(ctx: FieldRenderContext) -> Markup:
    return ctx.template("textarea", display_value=_scalar(ctx.value))


def _render_select(ctx: FieldRenderContext) -> Markup:
    return ctx.template(
        "select",
        current=_scalar(ctx.value),
        blank_label=ctx.placeholder or MESSAGE.SELECT_PLACEHOLDER,
    )


def _render_radio(ctx: FieldRenderContext) -> Markup:
    return ctx.template("radio", current=_scalar(ctx.value))


def _render_checkbox(ctx: FieldRenderContext) -> Markup:
    return ctx.template("checkbox", current=_as_list(ctx.value))


def _render_date(ctx: FieldRenderContext) -> Markup:
    year = date.today().year
    return ctx.template(
        "date",
        display_value=_scalar(ctx.value),
        min_date=f"{year - ctx.field.year_start:04d}-01-01",
        max_date=f"{year + ctx.field.year_end:04d}-12-31",
    )


def _render_date_select(ctx: FieldRenderContext) -> Markup:
    year = date.today().year
    parts = _date_parts(ctx.value)
    joined = "-".join([parts["year"], parts["month"], parts["day"]]) if all(parts.values()) else ""
    return ctx.template(
        "date_select",
        parts=parts,
        joined=joined,
        years=[str(y) for y in range(year + ctx.field.year_end, year - ctx.field.year_start - 1, -1)],
        months=[f"{m:02d}" for m in range(1, 13)],
        days=[f"{d:02d}" for d in range(1, 32)],
    )


def _render_file(ctx: FieldRenderContext) -> Markup:
    max_size = field_max_size_mb(ctx.field)
    return ctx.template(
        "file",
        max_bytes=int(max_size * MB),
        max_size_label=f"{max_size:.1f}",
        accept=",".join(f".{ext}" for ext in field_allowed_types(ctx.field)),
    )


def _render_hidden(ctx: FieldRenderContext) -> Markup:
    return ctx.template("hidden", display_value=_scalar(ctx.value))


def _render_html(ctx: FieldRenderContext) -> Markup:
    return ctx.template("html", content=Markup(sanitize_html(ctx.field.content)))


FIELD_RENDERERS: Dict[FieldType, Callable[[FieldRenderContext], Markup]] = {
    FieldType.TEXT: _render_input,
    FieldType.EMAIL: _render_input,
    FieldType.TEL: _render_input,
    FieldType.URL: _render_input,
    FieldType.TIME: _render_input,
    FieldType.NUMBER: _render_number,
    FieldType.TEXTAREA: _render_textarea,
    FieldType.SELECT: _render_select,
    FieldType.RADIO: _render_radio,
    FieldType.CHECKBOX: _render_checkbox,
    FieldType.DATE: _render_date,
    FieldType.DATE_SELECT: _render_date_select,
    FieldType.FILE: _render_file,
    FieldType.HIDDEN: _render_hidden,
    FieldType.HTML: _render_html,
}


def ensure_renderers_complete() -> None:
    missing = [kind.value for kind in FieldType if kind not in FIELD_RENDERERS]
    if missing:
        raise RuntimeError(f"No renderer registered for field types: {', '.join(missing)}")


def field_element_id(field: FieldDefinition) -> str:
    return field.custom_id or f"fplant-field-{field.name}"


def render_field(
    field: FieldDefinition,
    current_value: Any,
    form: FormDefinition,
    query_params: Optional[Mapping[str, str]] = None,
    hooks: Optional[HookRegistry] = None,
    extra_class: str = "",
    placeholder: Optional[str] = None,
) -> Markup:
    """Input-mode HTML for one field; unknown types render nothing."""
    kind = field_type_of(field)
    if kind is None:
        logger.warning(f"Form {form.id}: field '{field.name}' has unsupported type '{field.type}'")
        return Markup("")

    value = current_value
    if is_empty(value):
        value = resolve_initial_value(field, form, query_params, hooks)

    classes = ["fplant-field", f"fplant-field-{kind.value.replace('_', '-')}", field.css_class, field.custom_class, extra_class]
    ctx = FieldRenderContext(
        form=form,
        field=field,
        value=value,
        field_id=field_element_id(field),
        css_class=" ".join(c for c in classes if c),
        placeholder=field.placeholder if placeholder is None else placeholder,
    )
    return FIELD_RENDERERS[kind](ctx)


ensure_renderers_complete()
