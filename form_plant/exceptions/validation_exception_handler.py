from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from form_plant.constants.error import ERROR
from form_plant.exceptions.custom_exception_handler import is_submission_route, submission_error


def validation_exception_handler(request: Request, exc: RequestValidationError):

    if is_submission_route(request):
        # visitors get the same field -> message mapping the validator produces
        field_errors = {}
        for err in exc.errors():
            location = [str(part) for part in err["loc"] if part not in ("body", "path", "query")]
            field_errors.setdefault(location[-1] if location else "request", err["msg"])
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=submission_error(ERROR.INVALID_REQUEST, field_errors),
        )

    errors = []

    for err in exc.errors():
        location = [str(part) for part in err["loc"] if part != "body"]

        errors.append({
            "field": ".".join(location),
            "message": err["msg"]
        })

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "statusCode": 400,
            "message": "Validation failed",
            "errors": errors
        }
    )
