"""
Admin notification and user auto-reply emails.

Subjects and bodies are plain text with a small tag vocabulary, resolved in
this order: {all_fields}, {field:name}, bare {name} for every submitted key,
then the system tags.
"""
import logging
import re
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from form_plant.config.env_config import settings
from form_plant.constants.messages import MESSAGE
from form_plant.schema.form_schema import DISPLAY_ONLY_TYPES, EmailSpec, FieldDefinition, FieldType, FormDefinition
from form_plant.services.hook_service import SubmissionContext
from form_plant.services.mail_service import MailTransport

logger = logging.getLogger(__name__)

FIELD_TAG_RE = re.compile(r"\{field:([^}]+)\}")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class EmailMessage:
    to: List[str]
    subject: str
    body: str
    headers: List[str] = dataclass_field(default_factory=list)
    attachments: List[str] = dataclass_field(default_factory=list)


def is_valid_address(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def parse_addresses(raw: Optional[str]) -> List[str]:
    """Comma separated list; anything that is not an address is dropped."""
    candidates = [part.strip() for part in (raw or "").split(",")]
    return [address for address in candidates if address and is_valid_address(address)]


def value_text(field: Optional[FieldDefinition], value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        # stored file record
        return str(value.get("filename", ""))
    if isinstance(value, (list, tuple)):
        delimiter = field.delimiter if field is not None else ", "
        return delimiter.join(str(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def all_fields_text(form: FormDefinition, data: Mapping[str, Any]) -> str:
    lines = []
    for field in form.fields:
        if field.type in DISPLAY_ONLY_TYPES:
            continue
        label = field.label or field.name
        lines.append(f"{label}: {value_text(field, data.get(field.name, ''))}")
    return "\n".join(lines)


def replace_tags(
    text: str,
    form: FormDefinition,
    data: Mapping[str, Any],
    submission_id: Optional[int],
    context: SubmissionContext,
    submitted_at: datetime,
) -> str:
    if "{all_fields}" in text:
        text = text.replace("{all_fields}", all_fields_text(form, data))

    text = FIELD_TAG_RE.sub(
        lambda match: value_text(form.get_field(match.group(1)), data.get(match.group(1), "")),
        text,
    )

    for key, value in data.items():
        text = text.replace("{" + key + "}", value_text(form.get_field(key), value))

    system_tags = {
        "{form_title}": form.title,
        "{submission_id}": "" if submission_id is None else str(submission_id),
        "{submission_date}": submitted_at.strftime(DATE_FORMAT),
        "{ip_address}": context.ip_address,
        "{user_agent}": context.user_agent,
        "{site_name}": settings.SITE_NAME,
        "{site_url}": settings.SITE_URL,
    }
    for tag, value in system_tags.items():
        text = text.replace(tag, value or "")
    return text


def build_headers(spec: EmailSpec) -> List[str]:
    headers = ["Content-Type: text/plain; charset=UTF-8"]
    if spec.from_email and is_valid_address(spec.from_email):
        headers.append(f"From: {spec.from_name or settings.SITE_NAME} <{spec.from_email}>")
    headers.extend(f"Cc: {address}" for address in parse_addresses(spec.cc))
    headers.extend(f"Bcc: {address}" for address in parse_addresses(spec.bcc))
    reply_to = (spec.reply_to or "").strip()
    if reply_to and is_valid_address(reply_to):
        headers.append(f"Reply-To: {reply_to}")
    return headers


def file_attachments(form: FormDefinition, data: Mapping[str, Any]) -> List[str]:
    paths = []
    for field in form.fields:
        record = data.get(field.name)
        if field.type == FieldType.FILE.value and isinstance(record, dict) and record.get("file"):
            paths.append(record["file"])
    return paths


def build_admin_email(
    spec: EmailSpec,
    data: Mapping[str, Any],
    form: FormDefinition,
    submission_id: Optional[int],
    context: SubmissionContext,
    submitted_at: Optional[datetime] = None,
) -> Optional[EmailMessage]:
    """The admin notification, or None when it should be skipped."""
    if not spec.enabled:
        return None
    recipients = parse_addresses(spec.to)
    if not recipients:
        logger.warning(f"Form {form.id}: admin email enabled without a valid recipient")
        return None

    submitted_at = submitted_at or datetime.now(timezone.utc)
    if spec.subject:
        subject = replace_tags(spec.subject, form, data, submission_id, context, submitted_at)
    else:
        subject = MESSAGE.ADMIN_EMAIL_SUBJECT.format(form_title=form.title)

    if spec.body:
        body = replace_tags(spec.body, form, data, submission_id, context, submitted_at)
    else:
        body = "\n".join([
            MESSAGE.ADMIN_EMAIL_INTRO,
            "",
            all_fields_text(form, data),
            "",
            "---",
            MESSAGE.SUBMITTED_AT.format(date=submitted_at.strftime(DATE_FORMAT)),
            MESSAGE.IP_ADDRESS.format(ip=context.ip_address),
        ])

    return EmailMessage(
        to=recipients,
        subject=subject,
        body=body,
        headers=build_headers(spec),
        attachments=file_attachments(form, data),
    )


def build_user_email(
    spec: EmailSpec,
    data: Mapping[str, Any],
    form: FormDefinition,
    submission_id: Optional[int],
    context: SubmissionContext,
    submitted_at: Optional[datetime] = None,
) -> Optional[EmailMessage]:
    """The auto-reply to the address the user entered, or None when skipped."""
    if not spec.enabled:
        return None
    recipient = str(data.get(spec.to_field or "email") or "").strip()
    if not recipient or not is_valid_address(recipient):
        logger.info(f"Form {form.id}: user email skipped, field '{spec.to_field}' holds no valid address")
        return None

    submitted_at = submitted_at or datetime.now(timezone.utc)
    subject = (
        replace_tags(spec.subject, form, data, submission_id, context, submitted_at)
        if spec.subject else MESSAGE.USER_EMAIL_SUBJECT
    )
    body = (
        replace_tags(spec.body, form, data, submission_id, context, submitted_at)
        if spec.body else f"{MESSAGE.USER_EMAIL_INTRO}\n\n{all_fields_text(form, data)}\n"
    )
    return EmailMessage(to=[recipient], subject=subject, body=body, headers=build_headers(spec))


def _dispatch(kind: str, message: Optional[EmailMessage], transport: MailTransport, form_id: Optional[int]) -> bool:
    if message is None:
        return False
    try:
        sent = transport.send(message.to, message.subject, message.body, message.headers, message.attachments)
    except Exception as e:
        logger.error(f"Form {form_id}: {kind} email raised {e.__class__.__name__}: {e}", exc_info=True)
        return False
    if not sent:
        logger.warning(f"Form {form_id}: {kind} email was not delivered")
    return sent


def send_notifications(
    form: FormDefinition,
    data: Mapping[str, Any],
    submission_id: Optional[int],
    context: SubmissionContext,
    transport: MailTransport,
) -> Dict[str, bool]:
    """Send both notifications independently. Never raises."""
    submitted_at = datetime.now(timezone.utc)
    results = {}
    for kind, builder, spec in (
        ("admin", build_admin_email, form.email_admin),
        ("user", build_user_email, form.email_user),
    ):
        try:
            message = builder(spec, data, form, submission_id, context, submitted_at)
        except Exception as e:
            logger.error(f"Form {form.id}: building {kind} email failed: {e}", exc_info=True)
            message = None
        results[kind] = _dispatch(kind, message, transport, form.id)
    return results
