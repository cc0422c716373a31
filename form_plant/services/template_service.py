"""
Placeholder substitution for the input screen and the confirmation screen.

Both screens share one bracket scanner. Tags look like
``[form_plant_<tag> attr="value" ...]``; each screen supplies its own closed
set of resolvers. The default layouts go through the same per-field
renderers as the tags, so a field's value looks identical either way.
"""
import re
from typing import Any, Callable, Dict, Mapping, Optional

from markupsafe import Markup, escape

from form_plant.config.env_config import settings as app_settings
from form_plant.config.template_config import render_template
from form_plant.constants.messages import MESSAGE
from form_plant.schema.form_schema import FieldType, FormDefinition, FormSettings
from form_plant.services.confirm_service import render_all_fields, render_confirm_field
from form_plant.services.field_service import field_element_id, render_field
from form_plant.services.hook_service import HookRegistry

TAG_PREFIX = "form_plant_"
# attribute values may be "double", 'single' or bare; names are case-insensitive
TAG_RE = re.compile(
    r'\[' + TAG_PREFIX + r'([a-z_]+)'
    r'''((?:\s+[A-Za-z_][\w-]*\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'\]]+))*)\s*\]'''
)
ATTR_RE = re.compile(r'''([A-Za-z_][\w-]*)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'\]]+))''')

Resolver = Callable[[Dict[str, str]], Any]


def parse_attributes(raw: str) -> Dict[str, str]:
    attributes = {}
    for name, double, single, bare in ATTR_RE.findall(raw or ""):
        attributes[name.lower()] = double or single or bare
    return attributes


def substitute_tags(template: str, resolvers: Mapping[str, Resolver]) -> Markup:
    """Replace every known tag; tags outside the vocabulary stay as typed."""

    def replace(match: re.Match) -> str:
        resolver = resolvers.get(match.group(1))
        if resolver is None:
            return match.group(0)
        result = resolver(parse_attributes(match.group(2)))
        return str(escape(result)) if result is not None else ""

    # the template itself is owner-authored markup
    return Markup(TAG_RE.sub(replace, template or ""))


def render_button(button_type: str, css_class: str, element_id: str, text: str) -> Markup:
    return render_template(
        "button.html",
        button_type=button_type,
        css_class=css_class.strip(),
        element_id=element_id,
        text=text,
    )


def back_button(settings: FormSettings, text: Optional[str] = None) -> Markup:
    return render_button(
        "button",
        f"fplant-back-button {settings.back_button_class}",
        settings.back_button_id,
        text or settings.back_button_text or MESSAGE.BACK_BUTTON,
    )


def confirm_submit_button(settings: FormSettings, text: Optional[str] = None) -> Markup:
    return render_button(
        "button",
        f"fplant-confirm-submit-button {settings.confirm_submit_button_class}",
        settings.confirm_submit_button_id,
        text or settings.confirm_submit_button_text or MESSAGE.CONFIRM_SUBMIT_BUTTON,
    )


def submit_button(settings: FormSettings, text: Optional[str] = None,
                  css_class: Optional[str] = None, element_id: Optional[str] = None) -> Markup:
    return render_button(
        "submit",
        f"fplant-submit-button {settings.input_submit_class if css_class is None else css_class}",
        settings.input_submit_id if element_id is None else element_id,
        text or settings.input_submit_text or MESSAGE.SUBMIT_BUTTON,
    )


def confirmation_title(settings: FormSettings) -> str:
    return settings.confirmation_title or MESSAGE.CONFIRMATION_TITLE


def confirmation_message(settings: FormSettings) -> str:
    return settings.confirmation_message or MESSAGE.CONFIRMATION_TEXT


def render_confirmation(
    form: FormDefinition,
    data: Mapping[str, Any],
    filenames: Optional[Dict[str, str]] = None,
) -> Markup:
    """Review screen for a validated submission."""
    filenames = filenames or {}
    form_settings = form.settings
    template = form_settings.confirmation_template if form_settings.use_confirmation_template else ""

    if not (template or "").strip():
        return render_template(
            "confirmation.html",
            title=confirmation_title(form_settings),
            message=confirmation_message(form_settings),
            all_fields=render_all_fields(form.fields, data, filenames),
            back_button=back_button(form_settings),
            confirm_button=confirm_submit_button(form_settings),
        )

    def value_tag(attrs: Dict[str, str]) -> Markup:
        field = form.get_field(attrs.get("name", ""))
        if field is None:
            return Markup("")
        return render_confirm_field(field, data.get(field.name), filenames.get(field.name))

    return substitute_tags(template, {
        "confirmation_title": lambda attrs: confirmation_title(form_settings),
        "confirmation_message": lambda attrs: confirmation_message(form_settings),
        "all_fields": lambda attrs: render_all_fields(form.fields, data, filenames),
        "value": value_tag,
        "back": lambda attrs: back_button(form_settings, attrs.get("text")),
        "confirm_submit": lambda attrs: confirm_submit_button(form_settings, attrs.get("text")),
    })


def render_form(
    form: FormDefinition,
    values: Optional[Mapping[str, Any]] = None,
    query_params: Optional[Mapping[str, str]] = None,
    hooks: Optional[HookRegistry] = None,
) -> Markup:
    """Input screen: the owner's template when enabled, else the default layout."""
    values = values or {}
    form_settings = form.settings

    def field_html(name: str, extra_class: str = "", placeholder: Optional[str] = None) -> Markup:
        field = form.get_field(name)
        if field is None:
            return Markup("")
        return render_field(
            field, values.get(name), form,
            query_params=query_params, hooks=hooks,
            extra_class=extra_class, placeholder=placeholder,
        )

    custom_body = None
    groups = []
    if form_settings.use_html_template and (form.html_template or "").strip():
        custom_body = substitute_tags(form.html_template, {
            "field": lambda attrs: field_html(attrs.get("name", ""), attrs.get("class", ""), attrs.get("placeholder")),
            "submit": lambda attrs: submit_button(form_settings, attrs.get("text"), attrs.get("class"), attrs.get("id")),
            "errors": lambda attrs: Markup('<div class="fplant-errors"></div>'),
            "success": lambda attrs: Markup('<div class="fplant-success"></div>'),
            "field_error": lambda attrs: Markup(
                '<div class="fplant-field-error" data-field-name="%s"></div>'
            ) % attrs.get("name", ""),
        })
    else:
        for field in form.fields:
            groups.append({
                "field": field,
                "element_id": field_element_id(field),
                "html": field_html(field.name),
                # hidden and html fields carry no label or error slot
                "bare": field.type in (FieldType.HIDDEN.value, FieldType.HTML.value),
            })

    return render_template(
        "form_wrapper.html",
        form=form,
        custom_body=custom_body,
        groups=groups,
        submit_button=submit_button(form_settings),
        honeypot=form.spam_protection.honeypot,
        recaptcha_enabled=form_settings.recaptcha_enabled and bool(app_settings.RECAPTCHA_SITE_KEY),
    )
