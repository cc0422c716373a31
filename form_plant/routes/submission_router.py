from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session
from form_plant.config.database_config import get_db
from form_plant.constants.messages import MESSAGE
from form_plant.middleware.auth_middleware import auth_middleware
from form_plant.utils.logger_utils import handle_route_error
from form_plant.schema.submission_schema import BulkDeleteRequest, SubmissionFilter
from form_plant.services.submission_record_service import (
    bulk_delete_submissions,
    delete_submission,
    export_csv,
    get_submission,
    list_submissions,
    serialize_submission,
)

submission_controller = APIRouter()


@submission_controller.get("", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_list_submissions(filters: SubmissionFilter = Depends(), db: Session = Depends(get_db)):
    try:
        response = list_submissions(db, filters)
        return {"statusCode": 200, "message": MESSAGE.SUBMISSIONS_FOUND, "data": response}
    except Exception as e:
        handle_route_error(error=e, context="GET /submissions")


@submission_controller.get("/export", dependencies=[Depends(auth_middleware)])
def handle_export_submissions(filters: SubmissionFilter = Depends(), db: Session = Depends(get_db)):
    try:
        content = export_csv(db, filters)
        filename = f"form-plant-submissions-{datetime.now().strftime('%Y%m%d-%H%M%S')}.csv"
        return Response(
            content=content.encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    except Exception as e:
        handle_route_error(error=e, context="GET /submissions/export")


@submission_controller.post("/bulk-delete", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_bulk_delete(data: BulkDeleteRequest, db: Session = Depends(get_db)):
    try:
        deleted = bulk_delete_submissions(db, data.ids)
        return {"statusCode": 200, "message": MESSAGE.SUBMISSIONS_DELETED, "data": {"deleted": deleted}}
    except Exception as e:
        handle_route_error(error=e, context="POST /submissions/bulk-delete")


@submission_controller.get("/{submission_id}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_get_submission(submission_id: int, db: Session = Depends(get_db)):
    try:
        submission = get_submission(db, submission_id)
        return {"statusCode": 200, "message": MESSAGE.SUBMISSION_FOUND, "data": serialize_submission(submission)}
    except Exception as e:
        handle_route_error(error=e, context=f"GET /submissions/{submission_id}")


@submission_controller.delete("/{submission_id}", response_model=dict, dependencies=[Depends(auth_middleware)])
def handle_delete_submission(submission_id: int, db: Session = Depends(get_db)):
    try:
        delete_submission(db, submission_id)
        return {"statusCode": 200, "message": MESSAGE.SUBMISSION_DELETED, "data": []}
    except Exception as e:
        handle_route_error(error=e, context=f"DELETE /submissions/{submission_id}")
