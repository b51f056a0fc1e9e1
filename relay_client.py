"""Client for the SMS relay endpoint.

Used by the dispatcher and the send-now action. Failures are returned as
SendResult(success=False) and logged, never raised.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from config import settings
from logger_config import setup_logger

logger = setup_logger(__name__, 'relay_client.log')

TEST_PHONE = '1234567890'
TEST_CARRIER = 'verizon'
TEST_MESSAGE = 'Test connection from Family Connect'

CONNECTION_HINTS = {
    400: 'Check that all required fields are being sent.',
    401: 'Check the relay API key (RELAY_API_KEY).',
    500: 'Check the relay logs for the provider error.',
}


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None
    details: Any = None
    status_code: Optional[int] = None


class RelayClient:
    """Posts {phone, carrier, message} to the relay endpoint.

    Args:
        url: full relay URL; None means not configured
        api_key: sent as x-api-key when set
        timeout: seconds per request
        transport: optional httpx transport (tests)
    """

    def __init__(
        self,
        url: Optional[str],
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def send_sms(self, phone: str, carrier: str, message: str) -> SendResult:
        """Ask the relay to text one phone."""
        if not self.url:
            return SendResult(success=False, error="Relay URL not configured")

        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['x-api-key'] = self.api_key

        payload = {'phone': phone, 'carrier': carrier, 'message': message}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"Timeout while sending SMS to {phone} via {carrier}")
            return SendResult(success=False, error="Network error: request timed out")
        except httpx.RequestError as e:
            logger.error(f"Network error sending SMS to {phone} via {carrier}: {str(e)}")
            return SendResult(success=False, error=f"Network error: {str(e)}")

        try:
            body = response.json()
        except ValueError:
            body = {'message': response.text}
        if not isinstance(body, dict):
            body = {'message': response.text}

        if response.is_success:
            return SendResult(success=True, details=body, status_code=response.status_code)

        logger.error(
            f"Relay error sending SMS to {phone} via {carrier}. "
            f"Status: {response.status_code}, Response: {body}"
        )
        error = (
            body.get('error')
            or body.get('details')
            or body.get('message')
            or f"HTTP {response.status_code}: {response.reason_phrase}"
        )
        return SendResult(success=False, error=str(error), details=body, status_code=response.status_code)

    async def test_connection(self) -> SendResult:
        """Send a dummy reminder through the relay to check it end to end."""
        result = await self.send_sms(TEST_PHONE, TEST_CARRIER, TEST_MESSAGE)
        if result.success:
            logger.info(f"Relay connection test to {self.url} succeeded")
        else:
            logger.warning(f"Relay connection test to {self.url} failed: {result.error}")
        return result


def get_relay_client() -> RelayClient:
    """Relay client built from settings."""
    return RelayClient(settings.RELAY_URL, settings.RELAY_API_KEY, settings.RELAY_TIMEOUT)


def connection_hint(result: SendResult) -> Optional[str]:
    """Suggestion for a failed connection test, keyed by relay status."""
    if result.success:
        return None
    if result.status_code is None:
        return 'Check that the relay URL is correct and the relay is running.'
    return CONNECTION_HINTS.get(result.status_code)
