from fastapi import Request
from fastapi.responses import JSONResponse
from form_plant.exceptions.custom_exception import CustomException

# form endpoints used by visitors and the embed loader branch on `success`
SUBMISSION_ROUTE_PREFIXES = ("/public", "/embed")


def is_submission_route(request: Request) -> bool:
    path = request.url.path
    return any(path == prefix or path.startswith(prefix + "/") for prefix in SUBMISSION_ROUTE_PREFIXES)


def submission_error(message: str, errors=None) -> dict:
    content = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    return content


def custom_exception_handler(request: Request, exc: CustomException):
    if is_submission_route(request):
        return JSONResponse(status_code=exc.status_code, content=submission_error(exc.message, exc.errors))

    content = {
        "statusCode": exc.status_code,
        "message": exc.message
    }
    if exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)
