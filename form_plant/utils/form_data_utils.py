import re
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from form_plant.constants.error import ERROR
from form_plant.exceptions.custom_exception import CustomException
from form_plant.schema.submission_schema import SubmitRequest
from form_plant.services.file_service import UploadedFile, UploadStatus
from form_plant.services.hook_service import SubmissionContext
from form_plant.utils.request_utils import get_client_ip, get_referrer, get_user_agent

# x, x[] and x[part]
KEY_RE = re.compile(r"^([^\[\]]+)(?:\[([^\[\]]*)\])?$")


@dataclass
class ParsedSubmission:
    form_id: Optional[int] = None
    data: Dict[str, Any] = dataclass_field(default_factory=dict)
    files: Dict[str, UploadedFile] = dataclass_field(default_factory=dict)
    recaptcha_token: Optional[str] = None
    confirmation_token: Optional[str] = None


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def fold_form_keys(items) -> Dict[str, Any]:
    """Turn browser form keys into nested values: x[] collects a list, x[part] a dict.

    When a name arrives both plain and with parts, the parts win.
    """
    plain: Dict[str, Any] = {}
    nested: Dict[str, Any] = {}
    for key, value in items:
        match = KEY_RE.match(key)
        if match is None:
            plain[key] = value
            continue
        name, part = match.group(1), match.group(2)
        if part is None:
            plain[name] = value
        elif part == "":
            bucket = nested.setdefault(name, [])
            if isinstance(bucket, list):
                bucket.append(value)
        else:
            bucket = nested.setdefault(name, {})
            if isinstance(bucket, dict):
                bucket[part] = value
    plain.update(nested)
    return plain


async def read_upload(field_name: str, upload: UploadFile) -> UploadedFile:
    content = await upload.read()
    filename = upload.filename or ""
    status = UploadStatus.OK if filename or content else UploadStatus.NO_FILE
    return UploadedFile(
        field_name=field_name,
        filename=filename,
        content=content,
        content_type=upload.content_type or "",
        status=status,
    )


async def read_submission(request: Request, form_id: Optional[int] = None) -> ParsedSubmission:
    """Accept a JSON body ({form_id, data, ...}) or a multipart/urlencoded browser post."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("application/json"):
        try:
            body = SubmitRequest.model_validate(await request.json())
        except (ValueError, ValidationError):
            raise CustomException(status_code=400, message=ERROR.INVALID_REQUEST)
        return ParsedSubmission(
            form_id=form_id if form_id is not None else body.form_id,
            data=body.data,
            recaptcha_token=body.recaptcha_token,
            confirmation_token=body.confirmation_token,
        )

    form = await request.form()
    parsed = ParsedSubmission(form_id=form_id)
    values = []
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            name = KEY_RE.match(key).group(1) if KEY_RE.match(key) else key
            upload = await read_upload(name, value)
            if upload.status != UploadStatus.NO_FILE:
                parsed.files[name] = upload
            continue
        if key in ("form_id", "fplant_form_id"):
            if parsed.form_id is None:
                parsed.form_id = _to_int(value)
        elif key == "recaptcha_token":
            parsed.recaptcha_token = value or None
        elif key == "confirmation_token":
            parsed.confirmation_token = value or None
        else:
            values.append((key, value))
    parsed.data = fold_form_keys(values)
    return parsed


def submission_context(request: Request, parsed: ParsedSubmission) -> SubmissionContext:
    user = getattr(request.state, "user", None)
    return SubmissionContext(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        referrer=get_referrer(request),
        user_id=getattr(user, "id", None),
        recaptcha_token=parsed.recaptcha_token,
    )
