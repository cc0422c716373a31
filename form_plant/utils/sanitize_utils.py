import html
import re
from typing import Any, Optional
import nh3

ALLOWED_URL_SCHEMES = {"http", "https", "ftp", "ftps", "mailto", "tel"}

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")
_EMAIL_STRIP_RE = re.compile(r"[^a-zA-Z0-9.!#$%&'*+/=?^_`{|}~@-]")
_URL_STRIP_RE = re.compile(r"[^a-zA-Z0-9\-~+_.?#=!&;,/:%@$|*'()\[\]\u0080-\uffff]")
_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$")


def strip_tags(value: str) -> str:
    """Plain text of a fragment: every tag and comment gone, script and style bodies dropped."""
    # nh3 returns escaped text; callers want the characters back
    return html.unescape(nh3.clean(value, tags=set()))


def sanitize_text_field(value: Any) -> str:
    """Single line plain text: no tags, no control characters, collapsed whitespace."""
    if value is None:
        return ""
    text = _CONTROL_RE.sub("", str(value))
    text = strip_tags(text)
    text = re.sub(r"[\r\n\t ]+", " ", text)
    text = _OCTET_RE.sub("", text)
    return text.strip()


def sanitize_textarea_field(value: Any) -> str:
    """Like sanitize_text_field but line breaks survive."""
    if value is None:
        return ""
    text = str(value).replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_RE.sub("", text)
    text = strip_tags(text)
    text = _OCTET_RE.sub("", text)
    lines = [re.sub(r"[\t ]+", " ", line).strip() for line in text.split("\n")]
    return "\n".join(lines).strip()


def sanitize_email(value: Any) -> str:
    if value is None:
        return ""
    email = _EMAIL_STRIP_RE.sub("", str(value).strip())
    local, sep, domain = email.partition("@")
    if not sep or not local or "." not in domain or "@" in domain:
        return ""
    return email


def sanitize_url(value: Any) -> str:
    if value is None:
        return ""
    url = _CONTROL_RE.sub("", str(value)).strip()
    url = re.sub(r"\s", "", url)
    url = _URL_STRIP_RE.sub("", url)
    if not url:
        return ""
    scheme = _SCHEME_RE.match(url)
    if scheme:
        if scheme.group(1).lower() not in ALLOWED_URL_SCHEMES:
            return ""
        return url
    if url[0] in "/#?":
        return url
    return "http://" + url


def sanitize_html(content: Any) -> str:
    """Owner-authored HTML with scripts, handlers and unsafe attributes removed."""
    if not content:
        return ""
    return nh3.clean(str(content))


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value and value not in (float("inf"), float("-inf"))
    if isinstance(value, str):
        return bool(_NUMERIC_RE.match(value))
    return False


def to_float(value: Any) -> Optional[float]:
    if not is_numeric(value):
        return None
    return float(value)


def is_iso_date(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_RE.match(value))
