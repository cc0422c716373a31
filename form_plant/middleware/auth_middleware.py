from fastapi import Request
from pydantic import ValidationError
from form_plant.utils.auth_utils import verify_jwt
from form_plant.config.env_config import settings
from form_plant.exceptions.custom_exception import CustomException
from form_plant.constants.error import ERROR
from form_plant.schema.auth_schema import AdminUser
from form_plant.utils.logger_utils import handle_middleware_error


def auth_middleware(request: Request):
    """Admin routes only. Puts the verified AdminUser on request.state.user."""
    try:
        token = request.headers.get("Authorization")
        if token is None:
            raise CustomException(status_code=401, message=ERROR.UNAUTHORIZED)

        if token.startswith("Bearer "):
            token = token[7:]

        claims = verify_jwt(
            token=token,
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM
        )

        # confirmation tokens are signed with the same key but are not logins
        if not claims or "typ" in claims:
            raise CustomException(status_code=401, message=ERROR.UNAUTHORIZED)

        request.state.user = AdminUser(**claims)

    except (CustomException, ValidationError) as e:
        handle_middleware_error(
            error=e,
            context="auth_middleware",
            custom_exception=CustomException(status_code=401, message=ERROR.UNAUTHORIZED)
        )
