"""Supabase database webhook for new-user provisioning."""

import hmac
import hashlib
import logging
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..database import get_db
from ..core.config import settings
from ..exceptions import ValidationError, WebhookValidationError
from ..schemas.webhook import SignupWebhookPayload, WebhookResponse
from ..services.signup_service import SignupService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "X-Webhook-Signature"


def verify_signature(payload: bytes, signature_header: str, secret: str) -> bool:
    """
    Verify an HMAC-SHA256 webhook signature.

    Args:
        payload: Raw request body bytes
        signature_header: Value of the X-Webhook-Signature header, ``sha256=<hex>``
        secret: Shared secret configured on the Supabase webhook

    Returns:
        True if signature is valid
    """
    if not signature_header or not signature_header.startswith("sha256="):
        return False

    expected_sig = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256
    ).hexdigest()

    received_sig = signature_header[7:]
    return hmac.compare_digest(expected_sig, received_sig)


@router.post("/supabase/signup", response_model=WebhookResponse)
async def supabase_signup_webhook(
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Receive the ``auth.users`` INSERT webhook and provision the new user.

    Validates the signature when SUPABASE_WEBHOOK_SECRET is set, assigns
    the user a project folder and creates their workspace. Other event
    types are acknowledged and ignored.
    """
    body = await request.body()

    webhook_secret = settings.supabase_webhook_secret
    if webhook_secret:
        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not verify_signature(body, signature, webhook_secret):
            logger.warning("Webhook signature verification failed")
            raise WebhookValidationError()
    else:
        logger.warning("SUPABASE_WEBHOOK_SECRET not configured, skipping signature verification")

    try:
        payload = SignupWebhookPayload.model_validate_json(body)
    except PydanticValidationError:
        raise ValidationError("Invalid webhook payload")

    return SignupService(db).handle(payload)
