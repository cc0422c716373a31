from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr


class AdminUser(BaseModel):
    """Claims of a verified admin access token."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: Optional[EmailStr] = None
    name: Optional[str] = None
