from typing import Dict, Optional
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, Response
from sqlalchemy.orm import Session
from form_plant.config.database_config import get_db
from form_plant.constants.error import ERROR
from form_plant.exceptions.custom_exception import CustomException
from form_plant.exceptions.custom_exception_handler import submission_error
from form_plant.utils.logger_utils import handle_route_error
from form_plant.utils.form_data_utils import read_submission, submission_context
from form_plant.services.embed_service import (
    check_iframe_embed,
    check_js_embed,
    cors_headers,
    embed_form_payload,
    render_embed_error,
    render_embed_page,
)
from form_plant.services.form_service import get_form_definition
from form_plant.services.hook_service import hooks
from form_plant.services.submission_service import SubmissionPipeline, get_submission_pipeline

embed_controller = APIRouter()


def _denied(message: str, status_code: int, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=submission_error(message), headers=headers)


@embed_controller.get("/{form_id}", response_class=HTMLResponse)
def handle_iframe_page(form_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        form = get_form_definition(db, form_id)
        if form is None:
            return HTMLResponse(str(render_embed_error(404, ERROR.FORM_NOT_FOUND)), status_code=404)

        decision = check_iframe_embed(form, request.headers.get("referer"))
        if not decision.allowed:
            return HTMLResponse(
                str(render_embed_error(decision.status_code, decision.message)),
                status_code=decision.status_code,
            )

        html = render_embed_page(form, query_params=dict(request.query_params), hooks=hooks)
        return HTMLResponse(str(html), headers=decision.headers)
    except Exception as e:
        handle_route_error(error=e, context=f"GET /embed/{form_id}")


@embed_controller.get("/{form_id}/form")
def handle_js_form(form_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        form = get_form_definition(db, form_id)
        if form is None:
            return _denied(ERROR.FORM_NOT_FOUND, 404)

        decision = check_js_embed(form, request.headers.get("origin"), request.headers.get("referer"))
        if not decision.allowed:
            return _denied(decision.message, decision.status_code)

        payload = embed_form_payload(form, query_params=dict(request.query_params), hooks=hooks)
        return JSONResponse(content=payload, headers=decision.headers)
    except Exception as e:
        handle_route_error(error=e, context=f"GET /embed/{form_id}/form")


@embed_controller.options("/{form_id}/form")
@embed_controller.options("/{form_id}/validate")
@embed_controller.options("/{form_id}/submit")
def handle_preflight(form_id: int, request: Request, db: Session = Depends(get_db)):
    try:
        form = get_form_definition(db, form_id)
        headers = {}
        if form is not None and form.settings.embed_js_enabled:
            headers = cors_headers(
                request.headers.get("origin"),
                form.settings.embed_js_allowed_urls,
                preflight=True,
            )
        return Response(status_code=204, headers=headers)
    except Exception as e:
        handle_route_error(error=e, context=f"OPTIONS /embed/{form_id}")


async def _embedded_call(form_id: int, request: Request, pipeline: SubmissionPipeline, submitting: bool):
    form = await run_in_threadpool(get_form_definition, pipeline.db, form_id)
    if form is None:
        return _denied(ERROR.FORM_NOT_FOUND, 404)

    decision = check_js_embed(
        form,
        request.headers.get("origin"),
        request.headers.get("referer"),
        submitting=submitting,
    )
    if not decision.allowed:
        return _denied(decision.message, decision.status_code)

    try:
        parsed = await read_submission(request, form_id)
    except CustomException as e:
        # the embedding page can only read the refusal with the CORS grant attached
        return _denied(e.message, e.status_code, headers=decision.headers)
    context = submission_context(request, parsed)
    if submitting:
        result = await run_in_threadpool(
            pipeline.finalize, form_id, parsed.data, parsed.files, context, parsed.confirmation_token
        )
    else:
        result = await run_in_threadpool(
            pipeline.validate_and_preview, form_id, parsed.data, parsed.files, context
        )
    return JSONResponse(status_code=result.status_code, content=result.to_response(), headers=decision.headers)


@embed_controller.post("/{form_id}/validate")
async def handle_embed_validate(
    form_id: int,
    request: Request,
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    try:
        return await _embedded_call(form_id, request, pipeline, submitting=False)
    except Exception as e:
        handle_route_error(error=e, context=f"POST /embed/{form_id}/validate")


@embed_controller.post("/{form_id}/submit")
async def handle_embed_submit(
    form_id: int,
    request: Request,
    pipeline: SubmissionPipeline = Depends(get_submission_pipeline),
):
    try:
        return await _embedded_call(form_id, request, pipeline, submitting=True)
    except Exception as e:
        handle_route_error(error=e, context=f"POST /embed/{form_id}/submit")
