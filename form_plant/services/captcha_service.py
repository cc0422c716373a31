import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from form_plant.config.env_config import settings
from form_plant.constants.error import ERROR
from form_plant.schema.form_schema import FormDefinition

logger = logging.getLogger(__name__)


@dataclass
class CaptchaResult:
    success: bool
    score: Optional[float] = None
    unreachable: bool = False


class CaptchaVerifier(ABC):
    @property
    def configured(self) -> bool:
        return True

    @abstractmethod
    def verify(self, token: str, remote_ip: str) -> CaptchaResult:
        ...


class RecaptchaVerifier(CaptchaVerifier):
    def __init__(self, secret_key: Optional[str] = None, verify_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.secret_key = settings.RECAPTCHA_SECRET_KEY if secret_key is None else secret_key
        self.verify_url = verify_url or settings.RECAPTCHA_VERIFY_URL
        self.timeout = timeout or settings.RECAPTCHA_TIMEOUT

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    def verify(self, token: str, remote_ip: str) -> CaptchaResult:
        payload = {"secret": self.secret_key, "response": token, "remoteip": remote_ip}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.verify_url, data=payload)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            # a timeout is a failed verification, never a skipped one
            logger.error(f"reCAPTCHA verification request failed: {str(e)}")
            return CaptchaResult(success=False, unreachable=True)

        score = body.get("score")
        if not body.get("success"):
            logger.info(f"reCAPTCHA rejected token: {body.get('error-codes')}")
        return CaptchaResult(
            success=bool(body.get("success")),
            score=float(score) if score is not None else None,
        )


def check_captcha(form: FormDefinition, token: Optional[str], remote_ip: str,
                  verifier: CaptchaVerifier) -> Optional[str]:
    """Error message when the form requires a CAPTCHA and it did not pass."""
    if not form.settings.recaptcha_enabled:
        return None
    if not verifier.configured:
        logger.error(f"Form {form.id} enables reCAPTCHA but no secret key is configured")
        return ERROR.RECAPTCHA_NOT_CONFIGURED
    if not token:
        return ERROR.RECAPTCHA_FAILED

    result = verifier.verify(token, remote_ip)
    if result.unreachable:
        return ERROR.RECAPTCHA_UNREACHABLE
    if not result.success:
        return ERROR.RECAPTCHA_FAILED
    if result.score is not None and result.score < settings.RECAPTCHA_V3_THRESHOLD:
        logger.info(f"reCAPTCHA score {result.score} below threshold on form {form.id}")
        return ERROR.RECAPTCHA_LOW_SCORE
    return None
