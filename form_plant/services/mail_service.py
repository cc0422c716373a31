import httpx
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from form_plant.config.env_config import settings

logger = logging.getLogger(__name__)


class MailTransport(ABC):
    @abstractmethod
    def send(self, to: List[str], subject: str, body: str, headers: List[str],
             attachments: Optional[List[str]] = None) -> bool:
        """Hand one message to the delivery channel; True when it was accepted."""


class WebhookMailTransport(MailTransport):
    """
    Deliver mail through an HTTP relay (an n8n workflow or similar).

    The relay receives the fully built message as JSON and owns SMTP.
    Attachments are passed as server paths, so the relay must share the
    upload volume.
    """

    def __init__(self, webhook_url: Optional[str] = None, timeout: Optional[float] = None):
        self.webhook_url = settings.MAIL_WEBHOOK_URL if webhook_url is None else webhook_url
        self.timeout = timeout or settings.MAIL_TIMEOUT

    def send(self, to: List[str], subject: str, body: str, headers: List[str],
             attachments: Optional[List[str]] = None) -> bool:
        if not self.webhook_url:
            logger.warning(f"MAIL_WEBHOOK_URL is not set, mail to {', '.join(to)} was not sent")
            return False

        payload = {
            "to": to,
            "subject": subject,
            "body": body,
            "headers": headers,
            "attachments": [
                {"path": path, "filename": Path(path).name} for path in (attachments or [])
            ],
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(self.webhook_url, json=payload)
                response.raise_for_status()
            logger.info(f"Mail '{subject}' handed to relay for {', '.join(to)}")
            return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send mail '{subject}' to {', '.join(to)}: {str(e)}")
            return False
