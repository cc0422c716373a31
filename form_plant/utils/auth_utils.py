import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import JWTError, jwt

CONFIRMATION_TOKEN_TYPE = "form_confirmation"


def generate_jwt(data: dict, expire_minutes: int, secret_key: str, algorithm: str):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)

    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(to_encode, secret_key, algorithm=algorithm)
    return encoded_jwt


def verify_jwt(token: str, secret_key: str, algorithm: str):
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
        return payload
    except JWTError:
        return None


def _canonical(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return [_canonical(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _canonical(item) for key, item in value.items()}
    return str(value)


def data_digest(data: Dict[str, Any]) -> str:
    """sha256 over a type-insensitive JSON rendering of the submitted values.

    JSON and multipart clients send the same answer as 5 or "5", so every
    scalar is compared in its string form.
    """
    canonical = json.dumps(_canonical(data), sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def generate_confirmation_token(
    form_id: int,
    data: Dict[str, Any],
    expire_minutes: int,
    secret_key: str,
    algorithm: str,
) -> str:
    return generate_jwt(
        {"typ": CONFIRMATION_TOKEN_TYPE, "form_id": form_id, "digest": data_digest(data)},
        expire_minutes=expire_minutes,
        secret_key=secret_key,
        algorithm=algorithm,
    )


def verify_confirmation_token(
    token: Optional[str],
    form_id: int,
    data: Dict[str, Any],
    secret_key: str,
    algorithm: str,
) -> Optional[str]:
    """Return None when the token binds exactly this form and data, else a reason."""
    if not token:
        return "missing"
    payload = verify_jwt(token, secret_key=secret_key, algorithm=algorithm)
    if not payload or payload.get("typ") != CONFIRMATION_TOKEN_TYPE:
        return "invalid"
    if payload.get("form_id") != form_id:
        return "invalid"
    if payload.get("digest") != data_digest(data):
        return "changed"
    return None
