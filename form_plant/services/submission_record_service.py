import csv
import io
import json
import logging
from datetime import datetime, time, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from form_plant.constants.error import ERROR
from form_plant.exceptions import CustomException
from form_plant.models.form_model import Form
from form_plant.models.submission_model import Submission
from form_plant.schema.form_schema import FieldType
from form_plant.schema.submission_schema import SortOrder, SubmissionFilter, SubmissionPayload
from form_plant.services.form_service import get_form, to_definition
from form_plant.utils.logger_utils import handle_service_error, log_database_operation

logger = logging.getLogger(__name__)

EXPORT_LIMIT = 10000
CSV_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
ORDER_COLUMNS = {
    "id": Submission.id,
    "form_id": Submission.form_id,
    "sent_time": Submission.sent_time,
}


def encode_payload(payload: SubmissionPayload) -> str:
    return json.dumps(payload.model_dump(), ensure_ascii=False)


def decode_payload(raw: Optional[str]) -> SubmissionPayload:
    try:
        return SubmissionPayload.model_validate(json.loads(raw or "{}"))
    except (ValueError, TypeError):
        logger.warning("Unreadable submission_data, treating as empty")
        return SubmissionPayload()


def serialize_submission(submission: Submission) -> Dict[str, Any]:
    payload = decode_payload(submission.submission_data)
    return {
        "id": submission.id,
        "form_id": submission.form_id,
        "sent_time": submission.sent_time.isoformat() if submission.sent_time else None,
        "data": payload.form_data,
        "ip_address": payload.ip_address,
        "user_agent": payload.user_agent,
        "referrer": payload.referrer,
        "user_id": payload.user_id,
    }


def insert_submission(db: Session, form_id: int, payload: SubmissionPayload) -> Submission:
    """Write one row; the caller owns the transaction outcome."""
    submission = Submission(
        form_id=form_id,
        submission_data=encode_payload(payload),
        sent_time=datetime.now(timezone.utc).replace(tzinfo=None),
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    log_database_operation("INSERT", "insert_submission", {"form_id": form_id, "id": submission.id})
    return submission


def get_submission(db: Session, submission_id: int) -> Submission:
    submission = db.query(Submission).filter(Submission.id == submission_id).first()
    if not submission:
        raise CustomException(status_code=404, message=ERROR.SUBMISSION_NOT_FOUND)
    return submission


def _filtered_query(db: Session, filters: SubmissionFilter):
    query = db.query(Submission)
    if filters.form_id is not None:
        query = query.filter(Submission.form_id == filters.form_id)
    if filters.date_from:
        query = query.filter(Submission.sent_time >= datetime.combine(filters.date_from, time.min))
    if filters.date_to:
        query = query.filter(Submission.sent_time <= datetime.combine(filters.date_to, time.max))
    if filters.search:
        query = query.filter(Submission.submission_data.like(f"%{filters.search}%"))
    return query


def count_submissions(db: Session, filters: Optional[SubmissionFilter] = None) -> int:
    return _filtered_query(db, filters or SubmissionFilter()).count()


def list_submissions(db: Session, filters: SubmissionFilter):
    try:
        query = _filtered_query(db, filters)
        total = query.count()
        direction = asc if filters.order == SortOrder.ASC else desc
        rows = (
            query.order_by(direction(ORDER_COLUMNS[filters.orderby.value]), direction(Submission.id))
            .offset((filters.page - 1) * filters.size)
            .limit(filters.size)
            .all()
        )
        return {
            "page": filters.page,
            "size": filters.size,
            "total": total,
            "submissions": [serialize_submission(row) for row in rows],
        }

    except CustomException:
        raise
    except Exception as e:
        handle_service_error(e, "list_submissions", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def delete_submission(db: Session, submission_id: int) -> None:
    try:
        submission = get_submission(db, submission_id)
        db.delete(submission)
        db.commit()
        log_database_operation("DELETE", "delete_submission", {"id": submission_id})

    except CustomException:
        raise
    except Exception as e:
        db.rollback()
        handle_service_error(e, "delete_submission", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def bulk_delete_submissions(db: Session, ids: List[int]) -> int:
    try:
        deleted = db.query(Submission).filter(Submission.id.in_(ids)).delete(synchronize_session=False)
        db.commit()
        log_database_operation("DELETE", "bulk_delete_submissions", {"requested": len(ids), "deleted": deleted})
        return deleted

    except Exception as e:
        db.rollback()
        handle_service_error(e, "bulk_delete_submissions", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))


def csv_safe(value: Any) -> Any:
    """Stop spreadsheets from evaluating a cell as a formula."""
    if isinstance(value, str) and value.startswith(CSV_FORMULA_PREFIXES):
        return "'" + value
    return value


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get("filename", ""))
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def export_csv(db: Session, filters: SubmissionFilter) -> str:
    """CSV text with a UTF-8 BOM; per-field columns when filtered to one form."""
    try:
        export_filters = filters.model_copy(update={"page": 1, "size": EXPORT_LIMIT})
        rows = (
            _filtered_query(db, export_filters)
            .order_by(desc(Submission.id))
            .limit(EXPORT_LIMIT)
            .all()
        )

        buffer = io.StringIO()
        buffer.write("\ufeff")
        writer = csv.writer(buffer)

        if filters.form_id is not None:
            form = to_definition(get_form(db, filters.form_id))
            columns = [field for field in form.fields if field.type != FieldType.HTML.value]
            writer.writerow(["ID", "Submitted At"] + [csv_safe(f.label or f.name) for f in columns] + ["IP Address"])
            for row in rows:
                payload = decode_payload(row.submission_data)
                writer.writerow(
                    [row.id, row.sent_time]
                    + [csv_safe(_cell_text(payload.form_data.get(f.name, ""))) for f in columns]
                    + [csv_safe(payload.ip_address)]
                )
        else:
            titles = dict(db.query(Form.id, Form.title).all())
            writer.writerow(["ID", "Form", "Submitted At", "Data", "IP Address"])
            for row in rows:
                payload = decode_payload(row.submission_data)
                data_text = " | ".join(f"{key}: {_cell_text(value)}" for key, value in payload.form_data.items())
                writer.writerow([
                    row.id,
                    csv_safe(titles.get(row.form_id, "")),
                    row.sent_time,
                    csv_safe(data_text),
                    csv_safe(payload.ip_address),
                ])

        return buffer.getvalue()

    except CustomException:
        raise
    except Exception as e:
        handle_service_error(e, "export_csv", CustomException(status_code=500, message=ERROR.INTERNAL_ERROR))
