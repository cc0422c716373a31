from typing import Any, Optional
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session
from form_plant.config.database_config import get_db
from form_plant.constants.messages import MESSAGE
from form_plant.middleware.auth_middleware import auth_middleware
from form_plant.utils.logger_utils import handle_route_error
from form_plant.services.form_service import (
    create_form,
    delete_form,
    duplicate_form,
    get_form,
    get_form_list,
    restore_form,
    save_form_meta,
    serialize_form,
    trash_form,
    update_form,
)
from form_plant.schema.form_schema import FormCreate, FormSection, FormStatus, FormUpdate

form_controller = APIRouter()


@form_controller.post("", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_create_form(data: FormCreate, db: Session = Depends(get_db)):
    try:
        form = create_form(db, data)
        return {"statusCode": 201, "message": MESSAGE.FORM_CREATED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context="POST /forms")


@form_controller.get("", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_list_forms(
    status: Optional[FormStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    size: int = 20,
    db: Session = Depends(get_db),
):
    try:
        response = get_form_list(db, status.value if status else None, search, max(page, 1), min(max(size, 1), 100))
        return {"statusCode": 200, "message": MESSAGE.FORMS_FOUND, "data": response}
    except Exception as e:
        handle_route_error(error=e, context="GET /forms")


@form_controller.get("/{form_id}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_get_form(form_id: int, db: Session = Depends(get_db)):
    try:
        form = get_form(db, form_id)
        return {"statusCode": 200, "message": MESSAGE.FORM_FOUND, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"GET /forms/{form_id}")


@form_controller.put("/{form_id}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_update_form(form_id: int, data: FormUpdate, db: Session = Depends(get_db)):
    try:
        form = update_form(db, form_id, data)
        return {"statusCode": 200, "message": MESSAGE.FORM_UPDATED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"PUT /forms/{form_id}")


@form_controller.put("/{form_id}/meta/{section}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_save_form_meta(
    form_id: int,
    section: FormSection,
    value: Any = Body(...),
    db: Session = Depends(get_db),
):
    try:
        form = save_form_meta(db, form_id, section, value)
        return {"statusCode": 200, "message": MESSAGE.FORM_UPDATED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"PUT /forms/{form_id}/meta/{section.value}")


@form_controller.post("/{form_id}/trash", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_trash_form(form_id: int, db: Session = Depends(get_db)):
    try:
        form = trash_form(db, form_id)
        return {"statusCode": 200, "message": MESSAGE.FORM_TRASHED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"POST /forms/{form_id}/trash")


@form_controller.post("/{form_id}/restore", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_restore_form(form_id: int, db: Session = Depends(get_db)):
    try:
        form = restore_form(db, form_id)
        return {"statusCode": 200, "message": MESSAGE.FORM_RESTORED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"POST /forms/{form_id}/restore")


@form_controller.post("/{form_id}/duplicate", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_duplicate_form(form_id: int, db: Session = Depends(get_db)):
    try:
        form = duplicate_form(db, form_id)
        return {"statusCode": 201, "message": MESSAGE.FORM_DUPLICATED, "data": serialize_form(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"POST /forms/{form_id}/duplicate")


@form_controller.delete("/{form_id}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_delete_form(form_id: int, db: Session = Depends(get_db)):
    try:
        delete_form(db, form_id)
        return {"statusCode": 200, "message": MESSAGE.FORM_DELETED, "data": []}
    except Exception as e:
        handle_route_error(error=e, context=f"DELETE /forms/{form_id}")
