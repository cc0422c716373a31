from typing import Any, Optional


class CustomException(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[Any] = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors
        super().__init__(message)
