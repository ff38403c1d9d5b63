"""
SendGrid API client for outbound reminder email.
Low-level HTTP client implementing the NotificationSender port.
/services/sendgrid_service.py
"""

import asyncio
from typing import Any

import requests

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

REQUEST_TIMEOUT = 20  # seconds


class SendGridError(Exception):
    """Custom exception for SendGrid API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
        self.recoverable = recoverable


class SendGridService:
    """
    Client for the SendGrid v3 mail/send endpoint.

    The session carries no retry adapter: one reminder gets exactly one
    delivery attempt per run, and failures surface as SendGridError.
    """

    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = from_email or settings.SENDGRID_FROM_EMAIL
        self.from_name = from_name or settings.REMINDER_SENDER_COMPANY
        self._session = requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_auth_headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None,
        to_name: str | None,
    ) -> dict[str, Any]:
        recipient = {"email": to}
        if to_name:
            recipient["name"] = to_name

        content = [{"type": "text/plain", "value": body}]
        if html_body:
            content.append({"type": "text/html", "value": html_body})

        return {
            "personalizations": [{"to": [recipient], "subject": subject}],
            "from": {"email": self.from_email, "name": self.from_name},
            "content": content,
        }

    def _handle_api_response(self, response: requests.Response) -> dict:
        """
        SendGrid answers 202 Accepted with an empty body on success.

        Raises:
            SendGridError: For any non-2xx response
        """
        if response.ok:
            return {
                "accepted": True,
                "status_code": response.status_code,
                "message_id": response.headers.get("X-Message-Id"),
            }

        response_text = response.text[:500] if response.text else ""
        logger.error(
            "SendGrid send failed",
            status_code=response.status_code,
            response_text=response_text[:200],
        )
        raise SendGridError(
            f"SendGrid API error: {response.status_code} - {response_text}",
            status_code=response.status_code,
            response_text=response_text,
            # 4xx other than throttling will fail the same way next time
            recoverable=response.status_code == 429 or response.status_code >= 500,
        )

    async def send(
        self,
        to: str,
        subject: str,
        body: str,
        *,
        html_body: str | None = None,
        to_name: str | None = None,
    ) -> dict:
        """
        Send one email.

        Args:
            to: Recipient address
            subject: Email subject
            body: Plain-text body
            html_body: Optional HTML alternative
            to_name: Optional recipient display name

        Returns:
            dict: {"accepted": True, "status_code": int, "message_id": str | None}

        Raises:
            SendGridError: If the key is missing, the request fails, or SendGrid rejects it
        """
        if not self.is_configured:
            raise SendGridError("SendGrid API key not configured", recoverable=False)

        payload = self._build_payload(to, subject, body, html_body, to_name)

        try:
            # requests blocks, so the call runs in a worker thread
            response = await asyncio.to_thread(
                self._session.post,
                SENDGRID_API_URL,
                headers=self._get_auth_headers(),
                json=payload,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error("SendGrid request error", error=str(e), error_type=type(e).__name__)
            raise SendGridError(f"SendGrid request failed: {e}") from e

        result = self._handle_api_response(response)
        logger.info("Reminder email accepted by SendGrid", message_id=result["message_id"])
        return result


sendgrid_service = SendGridService()
