import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from form_plant.constants.error import ERROR
from form_plant.exceptions.custom_exception_handler import is_submission_route, submission_error

logger = logging.getLogger(__name__)


def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    if is_submission_route(request):
        return JSONResponse(status_code=500, content=submission_error(ERROR.INTERNAL_ERROR))

    return JSONResponse(
        status_code=500,
        content={
            "statusCode": 500,
            "message": ERROR.INTERNAL_ERROR
        }
    )
