from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from form_plant.config.database_config import Base, engine
from form_plant.models.form_model import Form  # noqa: F401
from form_plant.models.submission_model import Submission  # noqa: F401
from form_plant.exceptions import (
    CustomException,
    custom_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from form_plant.config.logger_config import setup_logging
from form_plant.middleware.cors import setup_cors
from form_plant.config.env_config import settings
from form_plant.utils.logger_utils import log_info, log_warning
from form_plant.services.field_service import ensure_renderers_complete
from form_plant.routes.form_router import form_controller
from form_plant.routes.submission_router import submission_controller
from form_plant.routes.public_router import public_controller
from form_plant.routes.embed_router import embed_controller

# Initialize logging
setup_logging()

# refuse to start with a field type that has no renderer
ensure_renderers_complete()

app = FastAPI(
    title="Form Plant",
    swagger_ui_parameters={
        "persistAuthorization": True
    }
)

log_info(context="APP_STARTUP", message="Form Plant application started")
if not settings.MAIL_WEBHOOK_URL:
    log_warning(context="APP_STARTUP", message="MAIL_WEBHOOK_URL is not set, notification emails will be skipped")


@app.get("/health")
def server_life_check():
    return {"statusCode": 200, "data": "Your server is running successfully"}


Base.metadata.create_all(bind=engine)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(CustomException, custom_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(form_controller, prefix="/forms", tags=["Forms"])
app.include_router(submission_controller, prefix="/submissions", tags=["Submissions"])
app.include_router(public_controller, prefix="/public", tags=["Public"])
app.include_router(embed_controller, prefix="/embed", tags=["Embed"])

setup_cors(app)
