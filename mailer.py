"""SendGrid mail client for the SMS relay.

Builds the message with the SendGrid helpers and sends it through
SendGridAPIClient. The client is synchronous, so sends run in a worker
thread to keep the relay's event loop free.
"""

import asyncio
import json
from typing import Any, List, Optional

from python_http_client.exceptions import HTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    BypassListManagement,
    ClickTracking,
    Mail,
    MailSettings,
    OpenTracking,
    TrackingSettings,
)

from logger_config import setup_logger

logger = setup_logger(__name__, 'mailer.log')


class ProviderError(Exception):
    """SendGrid refused the message.

    Attributes:
        message: first error message reported by SendGrid
        errors: the full error list from the response body
        status_code: HTTP status returned by SendGrid
    """

    def __init__(self, message: str, errors: Optional[List[Any]] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.status_code = status_code


def _error_body(body: Any) -> dict:
    if isinstance(body, bytes):
        body = body.decode('utf-8', errors='replace')
    try:
        parsed = json.loads(body) if body else {}
    except ValueError:
        return {'message': body}
    return parsed if isinstance(parsed, dict) else {'message': body}


def provider_error(exc: HTTPError) -> ProviderError:
    """Turn a SendGrid HTTP error into a ProviderError with its first message."""
    body = _error_body(exc.body)
    errors = body.get('errors')
    if errors and isinstance(errors[0], dict) and errors[0].get('message'):
        message = errors[0]['message']
    elif body.get('message'):
        message = body['message']
    else:
        message = 'Unknown SendGrid error'
    return ProviderError(message, errors=errors or [body], status_code=exc.status_code)


class SendGridMailer:
    """Sends single-recipient plain-text mail through SendGrid.

    Args:
        api_key: SendGrid API key
        from_email: verified sender address
        host: SendGrid API host
        client: object with a send(Mail) method; defaults to SendGridAPIClient
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        host: str = "https://api.sendgrid.com",
        client: Optional[Any] = None,
    ):
        self.from_email = from_email
        self.client = client or SendGridAPIClient(api_key=api_key, host=host)

    def build_message(self, to: str, subject: str, text: str) -> Mail:
        message = Mail(
            from_email=self.from_email,
            to_emails=to,
            subject=subject,
            plain_text_content=text,
        )
        # Gateway addresses are not real mailboxes: skip suppression lists
        message.mail_settings = MailSettings(bypass_list_management=BypassListManagement(True))
        message.tracking_settings = TrackingSettings(
            click_tracking=ClickTracking(False, False),
            open_tracking=OpenTracking(False),
        )
        return message

    async def send(self, to: str, subject: str, text: str) -> None:
        """Send one message.

        Raises:
            ProviderError: SendGrid rejected the request
            OSError: SendGrid could not be reached
        """
        message = self.build_message(to, subject, text)
        try:
            response = await asyncio.to_thread(self.client.send, message)
        except HTTPError as e:
            raise provider_error(e) from e

        logger.info(f"SendGrid accepted message to {to} (status {response.status_code})")
