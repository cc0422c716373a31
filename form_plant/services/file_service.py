"""Uploaded file checks and local storage of accepted files."""
import logging
import secrets
import string
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Tuple

import filetype

from form_plant.config.env_config import settings
from form_plant.constants.error import ERROR

logger = logging.getLogger(__name__)

DANGEROUS_EXTENSIONS = {
    "php", "phtml", "php3", "php4", "php5", "php7", "phar", "phps",
    "cgi", "pl", "asp", "aspx", "jsp", "exe", "sh", "bat", "cmd",
    "com", "htaccess", "htpasswd", "ini", "py", "rb", "js", "mjs",
}

# sniffed MIME type -> extensions it may legitimately carry
ALLOWED_MIME_TYPES: Dict[str, Tuple[str, ...]] = {
    "image/jpeg": ("jpg", "jpeg", "jpe"),
    "image/png": ("png",),
    "image/gif": ("gif",),
    "application/pdf": ("pdf",),
    "application/msword": ("doc",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ("docx",),
}

SUFFIX_ALPHABET = string.ascii_letters + string.digits
UNSAFE_NAME_CHARS = set('/\\:*?"<>|\x00')


class UploadStatus(str, Enum):
    OK = "ok"
    NO_FILE = "no_file"
    PARTIAL = "partial"
    TOO_LARGE = "too_large"
    ERROR = "error"


@dataclass
class UploadedFile:
    """A file part received with a submission. content_type is client-declared and never trusted."""

    field_name: str
    filename: str
    content: bytes = b""
    content_type: str = ""
    status: UploadStatus = UploadStatus.OK

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        suffix = PurePosixPath(self.filename).suffix
        return suffix[1:].lower() if suffix else ""

    @property
    def is_present(self) -> bool:
        return bool(self.filename) and self.status != UploadStatus.NO_FILE


@dataclass
class StoredFile:
    url: str
    file: str
    type: str
    filename: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class FileSecurityError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def sniff_mime(content: bytes) -> Optional[str]:
    kind = filetype.guess(content[:8192]) if content else None
    return kind.mime if kind else None


def mime_matches_types(mime: Optional[str], allowed_types: Iterable[str]) -> bool:
    """True when the sniffed type is whitelisted and one of its extensions is allowed."""
    extensions = ALLOWED_MIME_TYPES.get(mime or "")
    if not extensions:
        return False
    allowed = {ext.lower() for ext in allowed_types}
    return any(ext in allowed for ext in extensions)


def _split_name(filename: str) -> Tuple[str, str]:
    path = PurePosixPath(filename)
    return path.stem, path.suffix[1:].lower() if path.suffix else ""


def check_upload_safety(upload: UploadedFile) -> str:
    """Reject traversal, dangerous and disguised files; return the sniffed MIME type."""
    name = upload.filename or ""
    if not name or name in (".", "..") or ".." in name or any(ch in UNSAFE_NAME_CHARS for ch in name):
        raise FileSecurityError(ERROR.FILE_INVALID_NAME)

    stem, extension = _split_name(name)
    if extension in DANGEROUS_EXTENSIONS or name.lower().lstrip(".") in DANGEROUS_EXTENSIONS:
        raise FileSecurityError(ERROR.FILE_TYPE_NOT_ALLOWED)

    # shell.php.jpg style names
    inner = [part.lower() for part in stem.split(".")[1:]]
    if any(part in DANGEROUS_EXTENSIONS for part in inner):
        raise FileSecurityError(ERROR.FILE_DOUBLE_EXTENSION)

    mime = sniff_mime(upload.content)
    if mime not in ALLOWED_MIME_TYPES:
        raise FileSecurityError(ERROR.FILE_MIME_NOT_ALLOWED)
    return mime


def safe_basename(stem: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in stem)
    cleaned = cleaned.strip("-_.")
    return cleaned or "file"


def random_suffix(length: int = 6) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


class FileStorage(ABC):
    @abstractmethod
    def store(self, upload: UploadedFile, form_id: int) -> StoredFile:
        ...

    @abstractmethod
    def remove(self, stored: StoredFile) -> None:
        ...


class LocalFileStorage(FileStorage):
    """
    Stores uploads under one directory per form.

    The directory name carries a random component so it cannot be guessed
    from the form id, and is reused for every later upload to the same form.
    Stored names get a random suffix since concurrent submissions share it.
    """

    def __init__(self, base_dir: Optional[str] = None, base_url: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.UPLOAD_DIR)
        self.base_url = (base_url or settings.UPLOAD_BASE_URL).rstrip("/")
        self._lock = threading.Lock()

    def form_directory(self, form_id: int) -> Path:
        with self._lock:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            existing = sorted(self.base_dir.glob(f"fplant_{form_id}_*_uploads"))
            if existing:
                return existing[0]
            directory = self.base_dir / f"fplant_{form_id}_{random_suffix(12).lower()}_uploads"
            directory.mkdir()
            logger.info(f"Created upload directory {directory.name} for form {form_id}")
            return directory

    def store(self, upload: UploadedFile, form_id: int) -> StoredFile:
        mime = check_upload_safety(upload)
        directory = self.form_directory(form_id)
        stem, extension = _split_name(upload.filename)
        base = safe_basename(stem)

        for _ in range(5):
            stored_name = f"{base}_{random_suffix()}.{extension}" if extension else f"{base}_{random_suffix()}"
            path = directory / stored_name
            try:
                with open(path, "xb") as handle:
                    handle.write(upload.content)
            except FileExistsError:
                continue
            return StoredFile(
                url=f"{self.base_url}/{directory.name}/{stored_name}",
                file=str(path),
                type=mime,
                filename=PurePosixPath(upload.filename).name,
            )
        raise OSError(f"Could not find a free file name for {upload.filename}")

    def remove(self, stored: StoredFile) -> None:
        try:
            Path(stored.file).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove stored file {stored.file}: {e}")


def store_uploads(storage: FileStorage, uploads: Dict[str, UploadedFile], form_id: int,
                  field_names: List[str]) -> Dict[str, StoredFile]:
    """Store every present upload of the given file fields; all or nothing."""
    stored: Dict[str, StoredFile] = {}
    try:
        for name in field_names:
            upload = uploads.get(name)
            if upload is None or not upload.is_present:
                continue
            stored[name] = storage.store(upload, form_id)
    except Exception:
        discard_uploads(storage, stored.values())
        raise
    return stored


def discard_uploads(storage: FileStorage, stored: Iterable[StoredFile]) -> None:
    for item in stored:
        storage.remove(item)
