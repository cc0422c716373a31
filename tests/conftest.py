import os

# settings are read at import time
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_TO_FILE"] = "false"
os.environ["MAIL_WEBHOOK_URL"] = ""
os.environ["RECAPTCHA_SECRET_KEY"] = ""
os.environ["SITE_URL"] = "https://forms.example.com"

from typing import Any, Dict, Generator, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from form_plant.config.database_config import Base, SessionLocal, engine, get_db  # noqa: E402
from form_plant.config.env_config import settings  # noqa: E402
from form_plant.models.form_model import Form  # noqa: E402,F401
from form_plant.models.submission_model import Submission  # noqa: E402,F401
from form_plant.schema.form_schema import FormCreate, FormDefinition  # noqa: E402
from form_plant.services.captcha_service import CaptchaResult, CaptchaVerifier  # noqa: E402
from form_plant.services.file_service import (  # noqa: E402
    FileStorage,
    StoredFile,
    UploadedFile,
    check_upload_safety,
)
from form_plant.services.form_service import create_form, to_definition  # noqa: E402
from form_plant.services.hook_service import HookRegistry  # noqa: E402
from form_plant.services.mail_service import MailTransport  # noqa: E402
from form_plant.services.rate_limit_service import StorageRateLimiter  # noqa: E402
from form_plant.services.submission_service import SubmissionPipeline, get_submission_pipeline  # noqa: E402
from form_plant.utils.auth_utils import generate_jwt  # noqa: E402

PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n"
    b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\x00IEND\xaeB`\x82"
)
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"
EXE_BYTES = b"MZ\x90\x00\x03\x00\x00\x00\x04\x00\x00\x00\xff\xff\x00\x00" + b"\x00" * 48


class RecordingMailer(MailTransport):
    """Accepts every message and keeps it for inspection."""

    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: List[Dict[str, Any]] = []

    def send(self, to, subject, body, headers, attachments=None) -> bool:
        self.sent.append({
            "to": to,
            "subject": subject,
            "body": body,
            "headers": headers,
            "attachments": attachments or [],
        })
        return self.accept


class StubCaptcha(CaptchaVerifier):
    def __init__(self, result: Optional[CaptchaResult] = None, configured: bool = True):
        self.result = result or CaptchaResult(success=True, score=0.9)
        self._configured = configured
        self.calls: List[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def verify(self, token: str, remote_ip: str) -> CaptchaResult:
        self.calls.append(token)
        return self.result


class MemoryStorage(FileStorage):
    """Keeps accepted uploads in memory, with the same safety checks as disk storage."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.removed: List[str] = []

    def store(self, upload: UploadedFile, form_id: int) -> StoredFile:
        mime = check_upload_safety(upload)
        path = f"/memory/fplant_{form_id}/{upload.filename}"
        self.files[path] = upload.content
        return StoredFile(
            url=f"https://files.example.com/fplant_{form_id}/{upload.filename}",
            file=path,
            type=mime,
            filename=upload.filename,
        )

    def remove(self, stored: StoredFile) -> None:
        self.files.pop(stored.file, None)
        self.removed.append(stored.file)


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    A fresh in-memory schema per test.
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture(scope="function")
def captcha() -> StubCaptcha:
    return StubCaptcha()


@pytest.fixture(scope="function")
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture(scope="function")
def hook_registry() -> HookRegistry:
    return HookRegistry()


@pytest.fixture(scope="function")
def pipeline(test_db, storage, mailer, captcha, hook_registry) -> SubmissionPipeline:
    return SubmissionPipeline(
        test_db,
        storage=storage,
        mailer=mailer,
        captcha=captcha,
        rate_limiter=StorageRateLimiter("memory://"),
        hooks=hook_registry,
    )


@pytest.fixture(scope="function")
def make_form(test_db):
    """
    Persist a form and return its FormDefinition.
    """

    def _make(fields: List[Dict[str, Any]], **sections) -> FormDefinition:
        data = FormCreate(
            title=sections.pop("title", "Contact"),
            status=sections.pop("status", "published"),
            fields=fields,
            **sections,
        )
        return to_definition(create_form(test_db, data))

    return _make


@pytest.fixture(scope="function")
def client(test_db, pipeline) -> Generator[TestClient, None, None]:
    from form_plant.main import app

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_submission_pipeline] = lambda: pipeline
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def admin_headers() -> Dict[str, str]:
    token = generate_jwt(
        {"id": "admin-1", "email": "admin@example.com", "name": "Admin"},
        expire_minutes=15,
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def sample_files() -> Dict[str, bytes]:
    """
    Minimal payloads that MIME sniffing recognises.
    """
    return {"png": PNG_BYTES, "pdf": PDF_BYTES, "exe": EXE_BYTES}
