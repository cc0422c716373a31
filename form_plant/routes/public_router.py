from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.orm import Session
from form_plant.config.database_config import get_db
from form_plant.constants.error import ERROR
from form_plant.exceptions.custom_exception import CustomException
from form_plant.utils.logger_utils import handle_route_error
from form_plant.utils.form_data_utils import read_submission, submission_context
from form_plant.services.embed_service import client_config, recaptcha_config
from form_plant.services.form_service import get_form_definition
from form_plant.services.hook_service import hooks
from form_plant.services.submission_service import SubmissionPipeline, get_submission_pipeline
from form_plant.services.template_service import render_form

public_controller = APIRouter()


def _load_public_form(db: Session, form_id: int):
    form = get_form_definition(db, form_id)
    if form is None:
        raise CustomException(status_code=404, message=ERROR.FORM_NOT_FOUND)
    return form


@public_controller.get("/forms/{form_id}/config", response_model=dict)
def handle_form_config(form_id: int, db: Session = Depends(get_db)):
    try:
        form = _load_public_form(db, form_id)
        return {"success": True, "data": client_config(form), "recaptcha": recaptcha_config(form)}
    except Exception as e:
        handle_route_error(error=e, context=f"GET /public/forms/{form_id}/config")


@public_controller.get("/forms/{form_id}/html", response_class=HTMLResponse)
def handle_form_html(form_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        form = _load_public_form(db, form_id)
        html = render_form(form, query_params=dict(request.query_params), hooks=hooks)
        return HTMLResponse(content=str(html))
    except Exception as e:
        handle_route_error(error=e, context=f"GET /public/forms/{form_id}/html")


@public_controller.post("/forms/{form_id}/validate")
async def handle_validate(
    form_id: int,
    request: Request,
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    try:
        parsed = await read_submission(request, form_id)
        result = await run_in_threadpool(
            pipeline.validate_and_preview,
            form_id,
            parsed.data,
            parsed.files,
            submission_context(request, parsed),
        )
        return JSONResponse(status_code=result.status_code, content=result.to_response())
    except Exception as e:
        handle_route_error(error=e, context=f"POST /public/forms/{form_id}/validate")


@public_controller.post("/forms/{form_id}/submit")
async def handle_submit(
    form_id: int,
    request: Request,
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    # finalize only differs from a direct submit when the form demands a confirmation token
    try:
        parsed = await read_submission(request, form_id)
        result = await run_in_threadpool(
            pipeline.finalize,
            form_id,
            parsed.data,
            parsed.files,
            submission_context(request, parsed),
            parsed.confirmation_token,
        )
        return JSONResponse(status_code=result.status_code, content=result.to_response())
    except Exception as e:
        handle_route_error(error=e, context=f"POST /public/forms/{form_id}/submit")
