"""FastAPI SMS relay for Family Connect.

Turns {phone, carrier, message} into an email to the carrier's
email-to-SMS gateway and sends it through SendGrid. The relay keeps no
state and never retries; callers retry on their own schedule.

Responses:
- 200 {success, message, sentTo}
- 400 {error} for missing fields, a bad phone or an unknown carrier
- 401 {error} when the shared secret does not match
- 405 {error} for methods other than POST/OPTIONS
- 500 {error, details?} for missing configuration or send failures
"""

from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from carriers import PHONE_DIGITS, compose_address, gateway_for, normalize_phone, supported_carriers
from config import settings
from logger_config import setup_logger
from mailer import ProviderError, SendGridMailer

logger = setup_logger(__name__, 'relay.log')

MAX_SMS_LENGTH = 160

app = FastAPI(
    title="Family Connect SMS Relay",
    description="Email-to-SMS relay for family reminders",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "x-api-key"],
)


def get_mailer() -> SendGridMailer:
    """Mailer dependency built from settings."""
    return SendGridMailer(
        api_key=settings.SENDGRID_API_KEY or '',
        from_email=settings.SENDGRID_FROM_EMAIL or '',
        host=settings.SENDGRID_API_HOST,
    )


def truncate_sms(message: str) -> str:
    """Carrier gateways typically deliver 160 characters."""
    if len(message) > MAX_SMS_LENGTH:
        return message[:MAX_SMS_LENGTH - 3] + '...'
    return message


def _error(status_code: int, error: str, details: Optional[Any] = None) -> JSONResponse:
    content = {'error': error}
    if details is not None:
        content['details'] = details
    return JSONResponse(status_code=status_code, content=content)


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _present(value: Any) -> bool:
    return isinstance(value, str) and value != ''


@app.get("/health")
def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": "sms_relay",
        "provider_configured": bool(settings.SENDGRID_API_KEY and settings.SENDGRID_FROM_EMAIL),
        "api_key_required": bool(settings.FAMILY_CONNECT_API_KEY),
    }


@app.options(settings.RELAY_PATH)
def preflight():
    """CORS preflight."""
    return Response(status_code=200)


@app.api_route(settings.RELAY_PATH, methods=["GET", "PUT", "PATCH", "DELETE"])
def method_not_allowed():
    return _error(405, 'Method not allowed')


@app.post(settings.RELAY_PATH)
async def send_reminder(request: Request, mailer: SendGridMailer = Depends(get_mailer)):
    """Send one SMS through the carrier's email gateway.

    Request body example:
    ```json
    {"phone": "555-123-4567", "carrier": "verizon", "message": "Soccer practice"}
    ```
    """
    if settings.FAMILY_CONNECT_API_KEY:
        if request.headers.get('x-api-key') != settings.FAMILY_CONNECT_API_KEY:
            return _error(401, 'Unauthorized - Invalid API key')

    body = await _read_body(request)
    phone, carrier, message = body.get('phone'), body.get('carrier'), body.get('message')

    if not (_present(phone) and _present(carrier) and _present(message)):
        content = {'error': 'Missing required fields: phone, carrier, message'}
        if not _present(carrier):
            content['supportedCarriers'] = supported_carriers()
        return JSONResponse(status_code=400, content=content)

    if len(normalize_phone(phone)) != PHONE_DIGITS:
        return _error(400, f'Invalid phone number. Must be {PHONE_DIGITS} digits.')

    if gateway_for(carrier) is None:
        return _error(400, 'Invalid carrier. Supported carriers: ' + ', '.join(supported_carriers()))

    if not settings.SENDGRID_API_KEY:
        return _error(500, 'SendGrid API key not configured. Please set SENDGRID_API_KEY environment variable.')

    if not settings.SENDGRID_FROM_EMAIL:
        return _error(500, 'SendGrid from email not configured. Please set SENDGRID_FROM_EMAIL environment variable.')

    address = compose_address(phone, carrier)

    try:
        await mailer.send(address, settings.SMS_SUBJECT, truncate_sms(message))
    except ProviderError as e:
        logger.error(f"SendGrid rejected message to {address}: status={e.status_code} errors={e.errors}")
        return _error(500, 'Failed to send SMS', details=e.message)
    except OSError as e:
        logger.error(f"Error sending SMS to {address}: {str(e)}", exc_info=True)
        return _error(500, 'Internal server error')

    logger.info(f"SMS reminder sent to {address}")
    return {
        'success': True,
        'message': 'SMS reminder sent successfully',
        'sentTo': address,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.RELAY_HOST,
        port=settings.RELAY_PORT,
        log_level="info"
    )
