from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from form_plant.constants.error import ERROR
from form_plant.exceptions import CustomException
from form_plant.models.form_model import Form
from form_plant.models.submission_model import Submission
from form_plant.schema.form_schema import (
    EmailSpec,
    FieldDefinition,
    FormCreate,
    FormDefinition,
    FormSection,
    FormSettings,
    FormStatus,
    FormUpdate,
    SpamProtection,
)
from form_plant.services.field_service import normalize_field, validate_field_definition
from form_plant.utils.logger_utils import handle_service_error, log_database_operation

logger = logging.getLogger(__name__)

SECTION_MODELS = {
    FormSection.SETTINGS: FormSettings,
    FormSection.EMAIL_ADMIN: EmailSpec,
    FormSection.EMAIL_USER: EmailSpec,
    FormSection.SPAM_PROTECTION: SpamProtection,
}


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]


def prepare_fields(raw_fields: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalize and check a field list; raises 400 on the first bad field."""
    prepared: List[Dict[str, Any]] = []
    taken: List[str] = []
    for raw in raw_fields:
        field = normalize_field(raw, taken)
        problem = validate_field_definition(field)
        if problem:
            raise CustomException(status_code=400, message=f"{problem}: {field.get('label') or field.get('name') or '?'}")
        if field["name"] in taken:
            raise CustomException(status_code=400, message=f"{ERROR.FIELD_NAME_DUPLICATE}: {field['name']}")
        try:
            definition = FieldDefinition.model_validate(field)
        except ValidationError as e:
            raise CustomException(status_code=400, message=_validation_message(e))
        taken.append(field["name"])
        prepared.append(definition.model_dump(mode="json", by_alias=True))
    return prepared


def prepare_section(section: FormSection, value: Any) -> Any:
    if section == FormSection.FIELDS:
        if not isinstance(value, list):
            raise CustomException(status_code=400, message=ERROR.INVALID_FORM_SECTION)
        return prepare_fields(value)
    if section == FormSection.HTML_TEMPLATE:
        return "" if value is None else str(value)
    try:
        return SECTION_MODELS[section].model_validate(value or {}).model_dump(mode="json")
    except ValidationError as e:
        raise CustomException(status_code=400, message=_validation_message(e))


def to_definition(form: Form) -> FormDefinition:
    return FormDefinition.model_validate({
        "id": form.id,
        "title": form.title,
        "status": form.status,
        "fields": form.fields or [],
        "html_template": form.html_template or "",
        "settings": form.settings or {},
        "email_admin": form.email_admin or {},
        "email_user": form.email_user or {},
        "spam_protection": form.spam_protection or {},
    })


def serialize_form(form: Form, submission_count: Optional[int] = None) -> Dict[str, Any]:
    data = to_definition(form).model_dump(mode="json", by_alias=True)
    data["created_at"] = form.created_at.isoformat() if form.created_at else None
    data["updated_at"] = form.updated_at.isoformat() if form.updated_at else None
    if submission_count is not None:
        data["submission_count"] = submission_count
    return data


def get_form(db: Session, form_id: int) -> Form:
    form = db.query(Form).filter(Form.id == form_id).first()
    if not form:
        raise CustomException(status_code=404, message=ERROR.FORM_NOT_FOUND)
    return form


def get_form_definition(db: Session, form_id: int, include_trashed: bool = False) -> Optional[FormDefinition]:
    """Form as the public pipeline sees it; trashed forms count as missing."""
    form = db.query(Form).filter(Form.id == form_id).first()
    if form is None:
        return None
    if form.status == FormStatus.TRASH.value and not include_trashed:
        return None
    return to_definition(form)


def create_form(db: Session, data: FormCreate) -> Form:
    try:
        new_form = Form(
            title=data.title,
            status=data.status.value,
            fields=prepare_fields(data.fields),
            html_template=data.html_template,
            settings=prepare_section(FormSection.SETTINGS, data.settings),
            email_admin=prepare_section(FormSection.EMAIL_ADMIN, data.email_admin),
            email_user=prepare_section(FormSection.EMAIL_USER, data.email_user),
            spam_protection=prepare_section(FormSection.SPAM_PROTECTION, data.spam_protection),
        )

        db.add(new_form)
        db.commit()
        db.refresh(new_form)
        log_database_operation("INSERT", "create_form", {"form_id": new_form.id})
        return new_form

    except CustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "create_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def get_form_list(db: Session, status: Optional[str], search: Optional[str], page: int, size: int):
    try:
        query = db.query(Form)
        if status:
            query = query.filter(Form.status == status)
        else:
            query = query.filter(Form.status != FormStatus.TRASH.value)
        if search:
            query = query.filter(Form.title.like(f"%{search}%"))

        total = query.count()
        forms = (
            query.order_by(Form.created_at.desc(), Form.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )

        counts = dict(
            db.query(Submission.form_id, func.count(Submission.id))
            .filter(Submission.form_id.in_([form.id for form in forms] or [0]))
            .group_by(Submission.form_id)
            .all()
        )

        return {
            "page": page,
            "size": size,
            "total": total,
            "forms": [serialize_form(form, counts.get(form.id, 0)) for form in forms],
        }

    except CustomException:
        raise
    except Exception as e:
        handle_service_error(e, "get_form_list", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def update_form(db: Session, form_id: int, data: FormUpdate) -> Form:
    try:
        form = get_form(db, form_id)

        if data.title is not None:
            form.title = data.title
        if data.status is not None:
            form.status = data.status.value
        for section in FormSection:
            value = getattr(data, section.value)
            if value is not None:
                setattr(form, section.value, prepare_section(section, value))

        db.commit()
        db.refresh(form)
        log_database_operation("UPDATE", "update_form", {"form_id": form_id})
        return form

    except CustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "update_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def save_form_meta(db: Session, form_id: int, section: FormSection, value: Any) -> Form:
    """Replace one section of a form's metadata."""
    try:
        form = get_form(db, form_id)
        setattr(form, section.value, prepare_section(section, value))
        db.commit()
        db.refresh(form)
        log_database_operation("UPDATE", "save_form_meta", {"form_id": form_id, "section": section.value})
        return form

    except CustomException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "save_form_meta", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def trash_form(db: Session, form_id: int) -> Form:
    try:
        form = get_form(db, form_id)
        if form.status != FormStatus.TRASH.value:
            form.previous_status = form.status
            form.status = FormStatus.TRASH.value
            db.commit()
            db.refresh(form)
        return form

    except CustomException:
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "trash_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def restore_form(db: Session, form_id: int) -> Form:
    try:
        form = get_form(db, form_id)
        if form.status == FormStatus.TRASH.value:
            form.status = form.previous_status or FormStatus.DRAFT.value
            form.previous_status = None
            db.commit()
            db.refresh(form)
        return form

    except CustomException:
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "restore_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def delete_form(db: Session, form_id: int) -> None:
    """Hard delete; the form's submissions go with it."""
    try:
        form = get_form(db, form_id)
        deleted = db.query(Submission).filter(Submission.form_id == form_id).delete(synchronize_session=False)
        db.delete(form)
        db.commit()
        log_database_operation("DELETE", "delete_form", {"form_id": form_id, "submissions": deleted})

    except CustomException:
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "delete_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def duplicate_form(db: Session, form_id: int) -> Form:
    try:
        source = get_form(db, form_id)
        copy = Form(
            title=f"{source.title} (Copy)",
            status=FormStatus.DRAFT.value,
            fields=list(source.fields or []),
            html_template=source.html_template,
            settings=dict(source.settings or {}),
            email_admin=dict(source.email_admin or {}),
            email_user=dict(source.email_user or {}),
            spam_protection=dict(source.spam_protection or {}),
        )
        db.add(copy)
        db.commit()
        db.refresh(copy)
        log_database_operation("INSERT", "duplicate_form", {"source": form_id, "form_id": copy.id})
        return copy

    except CustomException:
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "duplicate_form", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))
