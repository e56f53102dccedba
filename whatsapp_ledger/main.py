"""
WhatsApp Ledger - FastAPI Server

Receives WhatsApp Cloud API webhooks, classifies each chat message into a
ledger intent with an LLM and answers with a single WhatsApp reply.
"""

import hashlib
import hmac
import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Mapping, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .clients import SarvamTranscriptionClient, WhatsAppClient
from .config import settings
from .db import close_db, get_db, init_db
from .errors import InvalidPayloadError
from .llm import IntentClassifier, build_backends
from .models import WebhookPayload, WebhookResult
from .orchestrator import ConversationOrchestrator, build_orchestrator, freeze_quick_replies

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup resources."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db(settings.database_url)
    yield
    await close_db()


app = FastAPI(
    title="WhatsApp Ledger",
    description="Track money given and received through a WhatsApp chat",
    version="1.0.0",
    lifespan=lifespan,
)


def get_whatsapp_client() -> WhatsAppClient:
    """Dependency to get the WhatsApp Cloud API client"""
    return WhatsAppClient(
        settings.whatsapp_phone_number_id,
        settings.meta_whatsapp_token,
        graph_version=settings.whatsapp_graph_version,
        graph_base=settings.whatsapp_graph_base,
    )


def get_transcriber() -> SarvamTranscriptionClient:
    return SarvamTranscriptionClient(
        settings.sarvam_api_key, url=settings.sarvam_url, model=settings.sarvam_model
    )


@lru_cache
def get_classifier() -> IntentClassifier:
    """Backends are built once; their agents hold the model clients."""
    return IntentClassifier(build_backends(settings))


@lru_cache
def get_quick_replies() -> Mapping[str, str]:
    return freeze_quick_replies(settings.quick_replies)


async def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    whatsapp: WhatsAppClient = Depends(get_whatsapp_client),
    transcriber: SarvamTranscriptionClient = Depends(get_transcriber),
    classifier: IntentClassifier = Depends(get_classifier),
    quick_replies: Mapping[str, str] = Depends(get_quick_replies),
) -> ConversationOrchestrator:
    return build_orchestrator(
        db,
        classifier=classifier,
        messenger=whatsapp,
        media=whatsapp,
        transcriber=transcriber,
        quick_replies=quick_replies,
    )


async def verify_signature(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(default=None),
) -> None:
    """Check Meta's HMAC signature if an app secret is configured"""
    if not settings.meta_app_secret:
        return

    body = await request.body()
    expected = "sha256=" + hmac.new(
        settings.meta_app_secret.encode(), body, hashlib.sha256
    ).hexdigest()
    if not x_hub_signature_256 or not hmac.compare_digest(expected, x_hub_signature_256):
        logger.warning("Rejected webhook call with a bad signature")
        raise HTTPException(status_code=403, detail="Invalid signature")


@app.get("/webhook", response_class=PlainTextResponse)
async def verify_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
) -> str:
    """Meta's subscription handshake: echo the challenge if the token matches"""
    if hub_verify_token == settings.meta_verify_token and hub_challenge is not None:
        logger.info("Webhook verified (mode=%s)", hub_mode)
        return hub_challenge

    logger.warning("Webhook verification failed")
    raise HTTPException(status_code=403, detail="Verification failed")


@app.post("/webhook", response_model=WebhookResult)
async def receive_webhook(
    payload: WebhookPayload,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    _: None = Depends(verify_signature),
) -> WebhookResult:
    """
    Handle one webhook delivery:
    1. Ignore status updates and unsupported message types
    2. Drop duplicate deliveries
    3. Transcribe voice notes
    4. Route or classify, then reply on WhatsApp
    """
    try:
        return await orchestrator.handle_webhook(payload)
    except InvalidPayloadError as e:
        logger.warning("Invalid webhook payload: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Failed to process webhook message")
        raise HTTPException(status_code=500, detail="Failed to process message")


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# Run with: uvicorn whatsapp_ledger.main:app --reload

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
