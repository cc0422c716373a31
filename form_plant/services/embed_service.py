"""
Embedding a form on another site, either as an iframe page or through the
JS loader that fetches the form as JSON and posts back cross-origin.

Both modes are off by default. An empty allow-list means the mode is open
to any page; a non-empty one is matched by origin (scheme://host[:port]).
"""
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import urlsplit

from markupsafe import Markup

from form_plant.config.env_config import settings
from form_plant.config.template_config import render_template
from form_plant.constants.error import ERROR
from form_plant.schema.form_schema import FormDefinition, FormSettings
from form_plant.services.hook_service import HookRegistry
from form_plant.services.template_service import render_form
from form_plant.utils.sanitize_utils import sanitize_url, strip_tags

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}
CORS_METHODS = "GET, POST, OPTIONS"
CORS_MAX_AGE = "86400"
CSS_MODES = {"none", "replace", "append"}


@dataclass
class EmbedDecision:
    allowed: bool
    status_code: int = 200
    message: str = ""
    headers: Dict[str, str] = dataclass_field(default_factory=dict)

    @classmethod
    def deny(cls, message: str, status_code: int = 403) -> "EmbedDecision":
        return cls(allowed=False, status_code=status_code, message=message)


def normalize_origin(url: Optional[str]) -> str:
    """scheme://host with the port only when it is not the scheme default; "" when unparseable."""
    try:
        parsed = urlsplit((url or "").strip())
        port = parsed.port
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.hostname:
        return ""
    scheme = parsed.scheme.lower()
    origin = f"{scheme}://{parsed.hostname}"
    if port and DEFAULT_PORTS.get(scheme) != port:
        origin += f":{port}"
    return origin


def match_origin(url: Optional[str], allowed_urls: Iterable[str]) -> Optional[str]:
    origin = normalize_origin(url)
    if not origin:
        return None
    for allowed in allowed_urls:
        if normalize_origin(allowed) == origin:
            return origin
    return None


def frame_ancestors(allowed_urls: Iterable[str]) -> str:
    sources = ["'self'"]
    for allowed in allowed_urls:
        origin = normalize_origin(allowed)
        if origin and origin not in sources:
            sources.append(origin)
    return " ".join(sources)


def check_iframe_embed(form: FormDefinition, referer: Optional[str]) -> EmbedDecision:
    form_settings = form.settings
    if not form_settings.embed_iframe_enabled:
        return EmbedDecision.deny(ERROR.IFRAME_NOT_ALLOWED)

    allowed_urls = form_settings.embed_iframe_allowed_urls
    if not allowed_urls:
        return EmbedDecision(allowed=True)

    if not match_origin(referer, allowed_urls):
        logger.info(f"Iframe embed of form {form.id} refused for referer {referer!r}")
        return EmbedDecision.deny(ERROR.ORIGIN_NOT_ALLOWED)

    return EmbedDecision(
        allowed=True,
        headers={"Content-Security-Policy": f"frame-ancestors {frame_ancestors(allowed_urls)}"},
    )


def request_origin(origin: Optional[str], referer: Optional[str]) -> str:
    """The calling page's origin. Without an Origin header only a same-site referer counts."""
    if origin:
        return normalize_origin(origin)
    if referer:
        referer_origin = normalize_origin(referer)
        if referer_origin and referer_origin == normalize_origin(settings.SITE_URL):
            return referer_origin
    return ""


def cors_headers(origin: Optional[str], allowed_urls: Iterable[str], preflight: bool = False) -> Dict[str, str]:
    """CORS response headers, only ever for an allow-listed origin."""
    matched = match_origin(origin, allowed_urls) if origin else None
    if not matched:
        return {}
    headers = {
        "Access-Control-Allow-Origin": matched,
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }
    if preflight:
        headers["Access-Control-Max-Age"] = CORS_MAX_AGE
    return headers


def check_js_embed(
    form: FormDefinition,
    origin: Optional[str],
    referer: Optional[str],
    submitting: bool = False,
) -> EmbedDecision:
    form_settings = form.settings
    if not form_settings.embed_js_enabled:
        return EmbedDecision.deny(ERROR.JS_EMBED_NOT_ALLOWED)

    allowed_urls = form_settings.embed_js_allowed_urls
    caller = request_origin(origin, referer)
    if allowed_urls and not match_origin(caller, allowed_urls):
        logger.info(f"JS embed of form {form.id} refused for origin {caller!r}")
        return EmbedDecision.deny(ERROR.SUBMIT_ORIGIN_NOT_ALLOWED if submitting else ERROR.ORIGIN_NOT_ALLOWED)

    return EmbedDecision(allowed=True, headers=cors_headers(origin, allowed_urls))


def custom_css(form_settings: FormSettings) -> Dict[str, Any]:
    mode = form_settings.custom_css_mode if form_settings.custom_css_mode in CSS_MODES else "none"
    if mode == "none":
        return {"load_default": True, "file_url": "", "inline": ""}
    inline = strip_tags(form_settings.custom_css_inline or "").replace("</", "")
    return {
        "load_default": mode != "replace",
        "file_url": sanitize_url(form_settings.custom_css_file_url) if form_settings.custom_css_file_url else "",
        # tags are stripped, so the stylesheet text cannot leave the <style> element
        "inline": Markup(inline),
    }


def recaptcha_config(form: FormDefinition) -> Dict[str, Any]:
    return {
        "enabled": form.settings.recaptcha_enabled,
        "version": form.settings.recaptcha_version or "v3",
        "siteKey": settings.RECAPTCHA_SITE_KEY,
    }


def client_config(form: FormDefinition) -> Dict[str, Any]:
    """What the browser-side script needs to drive the form."""
    return {
        "id": form.id,
        "title": form.title,
        "useConfirmation": form.settings.use_confirmation,
        "fields": [field.model_dump(mode="json", by_alias=True) for field in form.fields],
        "settings": form.settings.model_dump(mode="json"),
    }


def embed_form_payload(
    form: FormDefinition,
    query_params: Optional[Mapping[str, str]] = None,
    hooks: Optional[HookRegistry] = None,
) -> Dict[str, Any]:
    config = client_config(form)
    return {
        "success": True,
        "data": {
            "id": config["id"],
            "title": config["title"],
            "html": str(render_form(form, query_params=query_params, hooks=hooks)),
            "fields": config["fields"],
            "settings": config["settings"],
        },
        "recaptcha": recaptcha_config(form),
    }


def render_embed_page(
    form: FormDefinition,
    query_params: Optional[Mapping[str, str]] = None,
    hooks: Optional[HookRegistry] = None,
) -> Markup:
    return render_template(
        "embed.html",
        form=form,
        form_html=render_form(form, query_params=query_params, hooks=hooks),
        css=custom_css(form.settings),
        asset_base_url=settings.ASSET_BASE_URL.rstrip("/"),
        config=client_config(form),
        recaptcha=recaptcha_config(form),
    )


def render_embed_error(status_code: int, message: str) -> Markup:
    return render_template("embed_error.html", status_code=status_code, message=message)
