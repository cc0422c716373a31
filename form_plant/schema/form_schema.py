from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    TEL = "tel"
    URL = "url"
    NUMBER = "number"
    DATE = "date"
    DATE_SELECT = "date_select"
    TIME = "time"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    FILE = "file"
    HIDDEN = "hidden"
    HTML = "html"


CHOICE_TYPES = {FieldType.SELECT.value, FieldType.RADIO.value, FieldType.CHECKBOX.value}
# never required, never listed in confirmation tables or email dumps
DISPLAY_ONLY_TYPES = {FieldType.HIDDEN.value, FieldType.HTML.value}


class FormStatus(str, Enum):
    PUBLISHED = "published"
    PRIVATE = "private"
    DRAFT = "draft"
    PENDING = "pending"
    TRASH = "trash"


class FormSection(str, Enum):
    FIELDS = "fields"
    HTML_TEMPLATE = "html_template"
    SETTINGS = "settings"
    EMAIL_ADMIN = "email_admin"
    EMAIL_USER = "email_user"
    SPAM_PROTECTION = "spam_protection"


def _split_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.replace("\r", "\n").replace(",", "\n").split("\n")
    return [str(item).strip() for item in value if str(item).strip()]


class FieldOption(BaseModel):
    value: str
    label: str = ""

    @field_validator("value", "label", mode="before")
    @classmethod
    def _as_string(cls, value):
        return "" if value is None else str(value)


class FieldRules(BaseModel):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None


class FieldDefinition(BaseModel):
    """One entry of a form's ordered field list."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # kept as a plain string so stored definitions with unknown types still load
    type: str = ""
    name: str = ""
    label: str = ""
    placeholder: str = ""
    required: bool = False
    default: Any = ""
    validation_message: str = ""
    css_class: str = Field(default="", alias="class")
    custom_class: str = ""
    custom_id: str = ""

    # choice fields
    options: List[FieldOption] = Field(default_factory=list)
    layout: str = "vertical"
    delimiter: str = ", "

    # date / date_select
    year_start: int = 100
    year_end: int = 10

    # file
    max_size: Optional[float] = None
    allowed_types: Optional[List[str]] = None

    # text / textarea / number
    size: Optional[int] = None
    maxlength: Optional[int] = None
    rows: int = 5
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None

    # html
    content: str = ""

    # tel
    phone_format: str = "national"

    validation: FieldRules = Field(default_factory=FieldRules)

    @field_validator("options", mode="before")
    @classmethod
    def _plain_options(cls, value):
        # a bare string option uses itself as value and label
        if not value:
            return []
        return [{"value": item, "label": item} if isinstance(item, (str, int, float)) else item for item in value]

    @field_validator("allowed_types", mode="before")
    @classmethod
    def _split_types(cls, value):
        if value is None or value == "":
            return None
        return [item.lower().lstrip(".") for item in _split_list(value)]

    @field_validator("min", "max", "step", "max_size", "size", "maxlength", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        return None if value == "" else value

    @field_validator("validation", mode="before")
    @classmethod
    def _rules_or_empty(cls, value):
        return value or {}

    @property
    def is_display_only(self) -> bool:
        return self.type in DISPLAY_ONLY_TYPES

    def option_label(self, value: Any) -> Optional[str]:
        wanted = str(value)
        for option in self.options:
            if option.value == wanted:
                return option.label
        return None


class FormSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    # input screen
    input_submit_text: str = ""
    input_submit_class: str = ""
    input_submit_id: str = ""
    use_html_template: bool = False
    allow_url_params: bool = False

    # confirmation screen
    use_confirmation: bool = False
    confirmation_title: str = ""
    confirmation_message: str = ""
    use_confirmation_template: bool = False
    confirmation_template: str = ""
    back_button_text: str = ""
    back_button_class: str = ""
    back_button_id: str = ""
    confirm_submit_button_text: str = ""
    confirm_submit_button_class: str = ""
    confirm_submit_button_id: str = ""
    confirmation_token_required: bool = False

    # after submission
    action_type: str = "message"
    success_message: str = ""
    redirect_url: str = ""
    success_page_html: str = ""
    # legacy booleans are resolved by the submission pipeline
    save_submission: Any = "full"

    recaptcha_enabled: bool = False
    recaptcha_version: str = "v3"

    embed_iframe_enabled: bool = False
    embed_iframe_allowed_urls: List[str] = Field(default_factory=list)
    embed_js_enabled: bool = False
    embed_js_allowed_urls: List[str] = Field(default_factory=list)

    custom_css_mode: str = "none"
    custom_css_file_url: str = ""
    custom_css_inline: str = ""

    @field_validator("embed_iframe_allowed_urls", "embed_js_allowed_urls", mode="before")
    @classmethod
    def _split_urls(cls, value):
        return _split_list(value)


class EmailSpec(BaseModel):
    enabled: bool = False
    to: str = ""
    to_field: str = "email"
    from_name: str = ""
    from_email: str = ""
    cc: str = ""
    bcc: str = ""
    reply_to: str = ""
    subject: str = ""
    body: str = ""


class SpamProtection(BaseModel):
    honeypot: bool = False
    rate_limit: bool = False
    rate_limit_minutes: int = 5
    rate_limit_count: int = 3


class FormDefinition(BaseModel):
    """A form as the rendering and submission services see it."""

    id: Optional[int] = None
    title: str = ""
    status: FormStatus = FormStatus.DRAFT
    fields: List[FieldDefinition] = Field(default_factory=list)
    html_template: str = ""
    settings: FormSettings = Field(default_factory=FormSettings)
    email_admin: EmailSpec = Field(default_factory=EmailSpec)
    email_user: EmailSpec = Field(default_factory=EmailSpec)
    spam_protection: SpamProtection = Field(default_factory=SpamProtection)

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for field in self.fields:
            if field.name == name:
                return field
        return None


class FormCreate(BaseModel):
    title: str
    status: FormStatus = FormStatus.DRAFT
    fields: List[Dict[str, Any]] = Field(default_factory=list)
    html_template: str = ""
    settings: Dict[str, Any] = Field(default_factory=dict)
    email_admin: Dict[str, Any] = Field(default_factory=dict)
    email_user: Dict[str, Any] = Field(default_factory=dict)
    spam_protection: Dict[str, Any] = Field(default_factory=dict)


class FormUpdate(BaseModel):
    title: Optional[str] = None
    status: Optional[FormStatus] = None
    fields: Optional[List[Dict[str, Any]]] = None
    html_template: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    email_admin: Optional[Dict[str, Any]] = None
    email_user: Optional[Dict[str, Any]] = None
    spam_protection: Optional[Dict[str, Any]] = None
