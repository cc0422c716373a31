"""
Authoritative validation of submitted values against a form's fields.

validate() is pure for a given (fields, data, uploads, hooks); the client-side
checks are a convenience and this module has the final word.
"""
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import AnyUrl, TypeAdapter, ValidationError

from form_plant.constants.error import ERROR
from form_plant.schema.form_schema import FieldDefinition, FieldType, FormDefinition
from form_plant.services.field_service import MB, field_allowed_types, field_max_size_mb, is_empty
from form_plant.services.file_service import UploadStatus, UploadedFile, mime_matches_types, sniff_mime
from form_plant.services.hook_service import HookRegistry
from form_plant.services.rate_limit_service import RateLimiter
from form_plant.utils.sanitize_utils import is_numeric

logger = logging.getLogger(__name__)

HONEYPOT_FIELD = "fplant_honeypot"
_url_adapter = TypeAdapter(AnyUrl)
_DELIMITED_PATTERN_RE = re.compile(r"^/(.*)/([imsxu]*)$", re.DOTALL)
_PATTERN_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE, "u": 0}


class PhoneFormat(ABC):
    """Strategy deciding whether a tel field value is an acceptable number."""

    @abstractmethod
    def is_valid(self, value: str) -> bool:
        ...


class NationalPhoneFormat(PhoneFormat):
    # Japanese-style numbering: trunk prefix 0 and 10-11 digits in total.
    # This is locale specific; pick another format for other regions.
    pattern = re.compile(r"^0\d{9,10}$")

    def is_valid(self, value: str) -> bool:
        return bool(self.pattern.match(re.sub(r"\D", "", value)))


class E164PhoneFormat(PhoneFormat):
    pattern = re.compile(r"^\+[1-9]\d{6,14}$")

    def is_valid(self, value: str) -> bool:
        return bool(self.pattern.match(re.sub(r"[\s\-().]", "", value)))


PHONE_FORMATS: Dict[str, PhoneFormat] = {
    "national": NationalPhoneFormat(),
    "e164": E164PhoneFormat(),
}
DEFAULT_PHONE_FORMAT = "national"


def register_phone_format(name: str, phone_format: PhoneFormat) -> None:
    PHONE_FORMATS[name] = phone_format


def get_phone_format(name: Optional[str]) -> PhoneFormat:
    return PHONE_FORMATS.get(name or DEFAULT_PHONE_FORMAT) or PHONE_FORMATS[DEFAULT_PHONE_FORMAT]


@dataclass
class ValidationResult:
    errors: Dict[str, str] = dataclass_field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": dict(self.errors)}


def _label(field: FieldDefinition) -> str:
    return field.label or field.name


def _format_limit(value: float) -> str:
    return f"{value:g}"


def selection(value: Any) -> List[Any]:
    """Members of a checkbox/radio answer; blank entries do not count."""
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None and item != ""]
    if value is None or value == "" or value is False:
        return []
    return [value]


def join_date_parts(value: Any) -> Any:
    if isinstance(value, dict):
        parts = [str(value.get(key) or "").strip() for key in ("year", "month", "day")]
        return "-".join(parts) if all(parts) else ""
    return value


def is_blank(field: FieldDefinition, value: Any, upload: Optional[UploadedFile]) -> bool:
    if field.type in (FieldType.CHECKBOX.value, FieldType.RADIO.value):
        return len(selection(value)) == 0
    if field.type == FieldType.FILE.value:
        return upload is None or not upload.is_present
    if field.type == FieldType.DATE_SELECT.value:
        value = join_date_parts(value)
    # 0 and "0" are answers
    return is_empty(value)


def check_file(field: FieldDefinition, upload: Optional[UploadedFile]) -> Optional[str]:
    if upload is None or not upload.is_present:
        return None

    label = _label(field)
    if upload.status != UploadStatus.OK:
        return ERROR.FIELD_UPLOAD_FAILED.format(label=label)

    max_size = field_max_size_mb(field)
    if upload.size > max_size * MB:
        return ERROR.FIELD_FILE_TOO_LARGE.format(label=label, limit=_format_limit(max_size))

    allowed = field_allowed_types(field)
    type_error = ERROR.FIELD_FILE_TYPE.format(label=label, types=", ".join(allowed))
    if upload.extension not in allowed:
        return type_error

    # the extension is only a claim; the content decides
    if not mime_matches_types(sniff_mime(upload.content), allowed):
        return type_error
    return None


def _check_number(field: FieldDefinition, value: Any) -> Optional[str]:
    label = _label(field)
    if not is_numeric(value):
        return ERROR.FIELD_NOT_NUMBER.format(label=label)
    number = float(value)
    if field.min is not None and number < field.min:
        return ERROR.FIELD_NUMBER_MIN.format(label=label, limit=_format_limit(field.min))
    if field.max is not None and number > field.max:
        return ERROR.FIELD_NUMBER_MAX.format(label=label, limit=_format_limit(field.max))
    return None


def _is_valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def _is_valid_url(value: str) -> bool:
    try:
        url = _url_adapter.validate_python(value)
    except ValidationError:
        return False
    return bool(url.host)


def check_type(field: FieldDefinition, value: Any, upload: Optional[UploadedFile]) -> Optional[str]:
    kind = field.type
    if kind == FieldType.FILE.value:
        return check_file(field, upload)
    if kind == FieldType.NUMBER.value:
        return _check_number(field, value)
    if isinstance(value, (list, dict)):
        return None

    text = str(value)
    invalid = ERROR.FIELD_FORMAT_INVALID.format(label=_label(field))
    if kind == FieldType.EMAIL.value and not _is_valid_email(text):
        return invalid
    if kind == FieldType.URL.value and not _is_valid_url(text):
        return invalid
    if kind == FieldType.TEL.value and not get_phone_format(field.phone_format).is_valid(text):
        return invalid
    return None


def compile_pattern(pattern: str) -> Optional["re.Pattern[str]"]:
    """Accepts plain patterns and /delimited/flags ones."""
    flags = 0
    delimited = _DELIMITED_PATTERN_RE.match(pattern)
    if delimited:
        pattern = delimited.group(1)
        for flag in delimited.group(2):
            flags |= _PATTERN_FLAGS[flag]
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        logger.warning(f"Ignoring invalid validation pattern {pattern!r}: {e}")
        return None


def check_rules(field: FieldDefinition, value: Any) -> Optional[str]:
    rules = field.validation
    if isinstance(value, (list, dict)) or field.type == FieldType.FILE.value:
        return None

    label = _label(field)
    text = str(value)
    if rules.min_length is not None and len(text) < rules.min_length:
        return ERROR.FIELD_MIN_LENGTH.format(label=label, limit=rules.min_length)
    if rules.max_length is not None and len(text) > rules.max_length:
        return ERROR.FIELD_MAX_LENGTH.format(label=label, limit=rules.max_length)
    if rules.pattern:
        compiled = compile_pattern(rules.pattern)
        if compiled is not None and not compiled.search(text):
            return rules.pattern_message or ERROR.FIELD_FORMAT_INVALID.format(label=label)
    return None


def validate_field(
    field: FieldDefinition,
    data: Mapping[str, Any],
    files: Mapping[str, UploadedFile],
    hooks: Optional[HookRegistry] = None,
) -> Optional[str]:
    """Error message for one field, or None."""
    if field.type in (FieldType.HTML.value, FieldType.HIDDEN.value):
        return None

    value = data.get(field.name)
    if field.type == FieldType.DATE_SELECT.value:
        value = join_date_parts(value)
    upload = files.get(field.name)
    blank = is_blank(field, value, upload)

    if field.required and blank:
        return field.validation_message or ERROR.FIELD_REQUIRED.format(label=_label(field))

    if blank and field.type != FieldType.FILE.value:
        return None

    if hooks is not None:
        override = hooks.validation_override(field, value, dict(data))
        if override is not None:
            return override or None

    return check_type(field, value, upload) or check_rules(field, value)


def validate(
    fields: List[FieldDefinition],
    data: Mapping[str, Any],
    files: Optional[Mapping[str, UploadedFile]] = None,
    hooks: Optional[HookRegistry] = None,
) -> ValidationResult:
    files = files or {}
    result = ValidationResult()
    for field in fields:
        message = validate_field(field, data, files, hooks)
        if message:
            result.errors[field.name] = message
    return result


def rate_limit_key(form_id: Optional[int], client_ip: str) -> str:
    return "fplant_rl_" + hashlib.sha256(f"{form_id}:{client_ip}".encode("utf-8")).hexdigest()


def check_spam(
    form: FormDefinition,
    data: Mapping[str, Any],
    client_ip: str,
    rate_limiter: Optional[RateLimiter] = None,
) -> Optional[str]:
    """Reason the submission looks automated, or None."""
    protection = form.spam_protection
    if protection.honeypot and not is_empty(data.get(HONEYPOT_FIELD)):
        logger.info(f"Honeypot triggered on form {form.id} from {client_ip}")
        return ERROR.SPAM_DETECTED

    if protection.rate_limit and rate_limiter is not None:
        allowed = rate_limiter.hit(
            rate_limit_key(form.id, client_ip),
            limit=max(protection.rate_limit_count, 1),
            window_seconds=max(protection.rate_limit_minutes, 1) * 60,
        )
        if not allowed:
            logger.info(f"Rate limit reached on form {form.id} from {client_ip}")
            return ERROR.RATE_LIMITED
    return None
