from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SubmissionOrderBy(str, Enum):
    ID = "id"
    FORM_ID = "form_id"
    SENT_TIME = "sent_time"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class SubmissionFilter(BaseModel):
    form_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    orderby: SubmissionOrderBy = SubmissionOrderBy.ID
    order: SortOrder = SortOrder.DESC
    page: int = Field(default=1, ge=1)
    size: int = Field(default=20, ge=1, le=500)


class SubmissionPayload(BaseModel):
    """On-disk shape of submission_data."""

    form_data: Dict[str, Any] = Field(default_factory=dict)
    ip_address: str = ""
    user_agent: str = ""
    referrer: str = ""
    user_id: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class SubmitRequest(BaseModel):
    """JSON body accepted by the public and embed submit/validate endpoints."""

    form_id: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    recaptcha_token: Optional[str] = None
    confirmation_token: Optional[str] = None
