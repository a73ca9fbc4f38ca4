"""
Payment gateway webhook router.

Answers 400 for malformed JSON and 401 for a bad signature; everything
else is acknowledged with 200 so the gateway does not retry.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from condoadmin.features.payments.webhook import WebhookRejected, process_webhook

logger = logging.getLogger("condoadmin.webhooks")

router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])


@router.post("/mercadopago")
async def mercadopago_webhook(request: Request):
    body = await request.body()
    try:
        return await run_in_threadpool(process_webhook, body, request.headers)
    except WebhookRejected as exc:
        logger.warning(f"[webhooks] mercadopago notification rejected: {exc.message} ({exc.details})")
        content = {"error": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)
