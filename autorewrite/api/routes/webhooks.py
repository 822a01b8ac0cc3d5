import base64
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from autorewrite.api.deps import get_context
from autorewrite.config import settings
from autorewrite.services.context import EnrichmentContext
from autorewrite.services.enrichment_pipeline import (
    InvalidWebhookPayload,
    PipelineStatus,
    handle_product_webhook,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_RESPONSES = {
    PipelineStatus.PROCESSED: (200, "OK"),
    PipelineStatus.ALREADY_PROCESSED: (200, "Already processed"),
    PipelineStatus.NOT_READY: (202, "Product not ready yet"),
}


def verify_shopify_hmac(raw_body: bytes, hmac_header: str | None, secret: str) -> bool:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("utf-8")
    return hmac.compare_digest(expected, hmac_header or "")


@router.post("/shopify/products")
async def shopify_product_webhook(request: Request, context: EnrichmentContext = Depends(get_context)):
    """
    Receive a Shopify products/create or products/update webhook and run the
    enrichment pass inline; the response status tells Shopify whether to
    redeliver (202 when the product was not readable yet).
    """
    raw = await request.body()
    secret = settings.SHOPIFY_WEBHOOK_SECRET
    if secret:
        if not verify_shopify_hmac(raw, request.headers.get("X-Shopify-Hmac-Sha256"), secret):
            logger.warning("Webhook HMAC verification failed")
            return PlainTextResponse("HMAC failed", status_code=401)
    else:
        logger.warning("SHOPIFY_WEBHOOK_SECRET not set; skipping HMAC verification")

    try:
        payload = json.loads(raw)
    except ValueError:
        return PlainTextResponse("Invalid payload", status_code=400)
    if not isinstance(payload, dict):
        logger.warning("Rejected webhook: body is not a JSON object")
        return PlainTextResponse("Invalid payload", status_code=400)

    topic = request.headers.get("X-Shopify-Topic")
    logger.info("Received Shopify webhook topic=%s product=%s", topic, payload.get("id"))

    try:
        result = await handle_product_webhook(payload, context)
    except InvalidWebhookPayload as e:
        logger.warning("Rejected webhook: %s", e)
        return PlainTextResponse("Invalid payload", status_code=400)
    except Exception:
        logger.exception("Enrichment failed for product %s", payload.get("id"))
        return PlainTextResponse("Error", status_code=500)

    status_code, message = STATUS_RESPONSES[result.status]
    return PlainTextResponse(message, status_code=status_code)
