"""
Submission pipeline and the two-phase confirmation protocol.

    submit:               captcha -> validate -> spam -> store files ->
                          sanitize -> persist -> notify -> observers
    validate_and_preview: validate + file checks, returns confirmation HTML
    finalize:             optional token check, then the whole of submit

The server keeps no state between preview and finalize; finalize always
validates again. Every entry point returns a SubmissionResult and never
raises.
"""
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, Mapping, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from form_plant.config.database_config import get_db
from form_plant.config.env_config import settings
from form_plant.constants.error import ERROR
from form_plant.constants.messages import MESSAGE
from form_plant.schema.form_schema import FieldType, FormDefinition
from form_plant.schema.submission_schema import SubmissionPayload
from form_plant.services.captcha_service import CaptchaVerifier, RecaptchaVerifier, check_captcha
from form_plant.services.email_service import send_notifications
from form_plant.services.file_service import (
    FileSecurityError,
    FileStorage,
    LocalFileStorage,
    StoredFile,
    UploadedFile,
    check_upload_safety,
    discard_uploads,
    store_uploads,
)
from form_plant.services.form_service import get_form_definition
from form_plant.services.hook_service import HookRegistry, SubmissionContext, SubmissionEvent, hooks as default_hooks
from form_plant.services.mail_service import MailTransport, WebhookMailTransport
from form_plant.services.rate_limit_service import RateLimiter, rate_limiter as default_rate_limiter
from form_plant.services.submission_record_service import insert_submission
from form_plant.services.template_service import render_confirmation
from form_plant.services.validator_service import check_spam, join_date_parts, selection, validate
from form_plant.utils.auth_utils import generate_confirmation_token, verify_confirmation_token
from form_plant.utils.sanitize_utils import (
    sanitize_email,
    sanitize_html,
    sanitize_text_field,
    sanitize_textarea_field,
    sanitize_url,
    to_float,
)

logger = logging.getLogger(__name__)

SAVE_NONE = "none"
SAVE_METADATA_ONLY = "metadata_only"
SAVE_FULL = "full"
SAVE_MODES = {SAVE_NONE, SAVE_METADATA_ONLY, SAVE_FULL}


@dataclass
class SubmissionResult:
    success: bool
    message: str = ""
    errors: Dict[str, str] = dataclass_field(default_factory=dict)
    payload: Dict[str, Any] = dataclass_field(default_factory=dict)
    status_code: int = 200

    @classmethod
    def ok(cls, message: str, **payload) -> "SubmissionResult":
        return cls(success=True, message=message, payload=payload)

    @classmethod
    def fail(cls, message: str, status_code: int = 400, errors: Optional[Dict[str, str]] = None) -> "SubmissionResult":
        return cls(success=False, message=message, errors=errors or {}, status_code=status_code)

    def to_response(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "message": self.message, **self.payload}
        response: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            response["errors"] = self.errors
        return response


def resolve_save_mode(value: Any) -> str:
    """Map the save_submission setting, including legacy booleans, to a mode."""
    if isinstance(value, bool):
        return SAVE_FULL if value else SAVE_NONE
    if value in (1, "1", "true"):
        return SAVE_FULL
    if value in (0, "0", "", "false"):
        return SAVE_NONE
    if isinstance(value, str) and value in SAVE_MODES:
        return value
    return SAVE_FULL


def prepare_input(form: FormDefinition, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Collapse date_select parts into YYYY-MM-DD; everything else passes through."""
    prepared = dict(data)
    for field in form.fields:
        if field.type == FieldType.DATE_SELECT.value and isinstance(prepared.get(field.name), dict):
            prepared[field.name] = join_date_parts(prepared[field.name])
    return prepared


def sanitize_value(field_type: str, value: Any) -> Any:
    if field_type == FieldType.EMAIL.value:
        return sanitize_email(value)
    if field_type == FieldType.URL.value:
        return sanitize_url(value)
    if field_type == FieldType.NUMBER.value:
        number = to_float(value)
        return "" if number is None else number
    if field_type == FieldType.TEXTAREA.value:
        return sanitize_textarea_field(value)
    if field_type == FieldType.CHECKBOX.value:
        return [sanitize_text_field(item) for item in selection(value)]
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(item) for item in value)
    return sanitize_text_field(value)


def sanitize_submission(
    form: FormDefinition,
    data: Mapping[str, Any],
    stored_files: Mapping[str, StoredFile],
) -> Dict[str, Any]:
    """Only defined fields survive; html fields never carry data."""
    clean: Dict[str, Any] = {}
    for field in form.fields:
        if field.type == FieldType.HTML.value:
            continue
        if field.type == FieldType.FILE.value:
            if field.name in stored_files:
                clean[field.name] = stored_files[field.name].to_dict()
            continue
        if field.name not in data:
            continue
        clean[field.name] = sanitize_value(field.type, data[field.name])
    return clean


def confirmation_digest_data(form: FormDefinition, data: Mapping[str, Any],
                             files: Mapping[str, UploadedFile]) -> Dict[str, Any]:
    """The part of a submission a confirmation token binds."""
    bound: Dict[str, Any] = {}
    for field in form.fields:
        if field.type == FieldType.HTML.value:
            continue
        if field.type == FieldType.FILE.value:
            upload = files.get(field.name)
            bound[field.name] = upload.filename if upload is not None and upload.is_present else ""
        else:
            bound[field.name] = data.get(field.name, "")
    return bound


def build_success(form: FormDefinition, submission_id: Optional[int]) -> SubmissionResult:
    form_settings = form.settings
    action_type = form_settings.action_type or "message"
    payload: Dict[str, Any] = {"submission_id": submission_id, "action_type": action_type}
    if action_type == "redirect" and form_settings.redirect_url:
        payload["redirect_url"] = sanitize_url(form_settings.redirect_url)
    elif action_type == "custom_page":
        payload["success_page_html"] = sanitize_html(form_settings.success_page_html)
    return SubmissionResult.ok(form_settings.success_message or MESSAGE.SUBMISSION_COMPLETED, **payload)


class SubmissionPipeline:
    def __init__(
        self,
        db: Session,
        storage: Optional[FileStorage] = None,
        mailer: Optional[MailTransport] = None,
        captcha: Optional[CaptchaVerifier] = None,
        rate_limiter: Optional[RateLimiter] = None,
        hooks: Optional[HookRegistry] = None,
    ):
        self.db = db
        self.storage = storage or LocalFileStorage()
        self.mailer = mailer or WebhookMailTransport()
        self.captcha = captcha or RecaptchaVerifier()
        self.rate_limiter = rate_limiter or default_rate_limiter
        self.hooks = hooks or default_hooks

    def _load(self, form_id: Optional[int]) -> Optional[FormDefinition]:
        if form_id is None:
            return None
        return get_form_definition(self.db, form_id)

    def submit(
        self,
        form_id: Optional[int],
        data: Mapping[str, Any],
        files: Optional[Mapping[str, UploadedFile]] = None,
        context: Optional[SubmissionContext] = None,
    ) -> SubmissionResult:
        try:
            form = self._load(form_id)
            if form is None:
                return SubmissionResult.fail(ERROR.FORM_NOT_FOUND, status_code=404)
            return self._run(form, data, files or {}, context or SubmissionContext())
        except Exception as e:
            self.db.rollback()
            logger.error(f"Submission to form {form_id} failed unexpectedly: {e}", exc_info=True)
            return SubmissionResult.fail(ERROR.INTERNAL_ERROR, status_code=500)

    def validate_and_preview(
        self,
        form_id: Optional[int],
        data: Mapping[str, Any],
        files: Optional[Mapping[str, UploadedFile]] = None,
        context: Optional[SubmissionContext] = None,
    ) -> SubmissionResult:
        """First half of the confirmation flow. Stores nothing and sends nothing."""
        files = files or {}
        try:
            form = self._load(form_id)
            if form is None:
                return SubmissionResult.fail(ERROR.FORM_NOT_FOUND, status_code=404)

            prepared = prepare_input(form, data)
            result = validate(form.fields, prepared, files, self.hooks)
            if not result.valid:
                return SubmissionResult.fail(ERROR.VALIDATION_FAILED, errors=result.errors)

            filenames: Dict[str, str] = {}
            for field in form.fields:
                upload = files.get(field.name)
                if field.type != FieldType.FILE.value or upload is None or not upload.is_present:
                    continue
                check_upload_safety(upload)
                filenames[field.name] = upload.filename

            html = render_confirmation(form, prepared, filenames)
            token = generate_confirmation_token(
                form.id,
                confirmation_digest_data(form, prepared, files),
                expire_minutes=settings.CONFIRMATION_TOKEN_EXP_TIME,
                secret_key=settings.SECRET_KEY,
                algorithm=settings.ALGORITHM,
            )
            return SubmissionResult.ok(
                MESSAGE.VALIDATION_SUCCESS,
                confirmation_html=str(html),
                confirmation_token=token,
            )
        except FileSecurityError as e:
            return SubmissionResult.fail(e.message, status_code=403)
        except Exception as e:
            logger.error(f"Preview for form {form_id} failed unexpectedly: {e}", exc_info=True)
            return SubmissionResult.fail(ERROR.INTERNAL_ERROR, status_code=500)

    def finalize(
        self,
        form_id: Optional[int],
        data: Mapping[str, Any],
        files: Optional[Mapping[str, UploadedFile]] = None,
        context: Optional[SubmissionContext] = None,
        confirmation_token: Optional[str] = None,
    ) -> SubmissionResult:
        """Second half of the confirmation flow: the full pipeline, validation included."""
        files = files or {}
        try:
            form = self._load(form_id)
            if form is None:
                return SubmissionResult.fail(ERROR.FORM_NOT_FOUND, status_code=404)

            if form.settings.use_confirmation and form.settings.confirmation_token_required:
                problem = verify_confirmation_token(
                    confirmation_token,
                    form.id,
                    confirmation_digest_data(form, prepare_input(form, data), files),
                    secret_key=settings.SECRET_KEY,
                    algorithm=settings.ALGORITHM,
                )
                if problem == "changed":
                    return SubmissionResult.fail(ERROR.CONFIRMATION_DATA_CHANGED, status_code=409)
                if problem:
                    return SubmissionResult.fail(ERROR.CONFIRMATION_TOKEN_INVALID)

            return self._run(form, data, files, context or SubmissionContext())
        except Exception as e:
            self.db.rollback()
            logger.error(f"Finalize for form {form_id} failed unexpectedly: {e}", exc_info=True)
            return SubmissionResult.fail(ERROR.INTERNAL_ERROR, status_code=500)

    def _run(
        self,
        form: FormDefinition,
        data: Mapping[str, Any],
        files: Mapping[str, UploadedFile],
        context: SubmissionContext,
    ) -> SubmissionResult:
        captcha_error = check_captcha(form, context.recaptcha_token, context.ip_address, self.captcha)
        if captcha_error:
            return SubmissionResult.fail(captcha_error)

        prepared = prepare_input(form, data)
        result = validate(form.fields, prepared, files, self.hooks)
        if not result.valid:
            return SubmissionResult.fail(ERROR.VALIDATION_FAILED, errors=result.errors)

        spam_error = check_spam(form, prepared, context.ip_address, self.rate_limiter)
        if spam_error:
            return SubmissionResult.fail(spam_error, status_code=429 if spam_error == ERROR.RATE_LIMITED else 400)

        file_fields = [field.name for field in form.fields if field.type == FieldType.FILE.value]
        try:
            stored = store_uploads(self.storage, files, form.id, file_fields)
        except FileSecurityError as e:
            logger.warning(f"Rejected upload on form {form.id} from {context.ip_address}: {e.message}")
            return SubmissionResult.fail(e.message, status_code=403)
        except OSError as e:
            logger.error(f"Storing uploads for form {form.id} failed: {e}", exc_info=True)
            return SubmissionResult.fail(ERROR.FILE_UPLOAD_FAILED, status_code=500)

        clean = sanitize_submission(form, prepared, stored)

        submission_id = None
        save_mode = resolve_save_mode(form.settings.save_submission)
        if save_mode != SAVE_NONE:
            payload = SubmissionPayload(
                form_data={} if save_mode == SAVE_METADATA_ONLY else clean,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
                referrer=context.referrer,
                user_id=context.user_id,
            )
            try:
                submission_id = insert_submission(self.db, form.id, payload).id
            except Exception as e:
                self.db.rollback()
                discard_uploads(self.storage, stored.values())
                logger.error(f"Saving submission for form {form.id} failed: {e}", exc_info=True)
                return SubmissionResult.fail(ERROR.SAVE_FAILED, status_code=500)

        send_notifications(form, clean, submission_id, context, self.mailer)
        self.hooks.notify_submitted(SubmissionEvent(
            form=form,
            submission_id=submission_id,
            data=clean,
            context=context,
            stored_files={name: item.to_dict() for name, item in stored.items()},
        ))

        logger.info(f"Form {form.id} accepted submission {submission_id} (save mode {save_mode})")
        return build_success(form, submission_id)


def get_submission_pipeline(db: Session = Depends(get_db)) -> SubmissionPipeline:
    return SubmissionPipeline(db)
