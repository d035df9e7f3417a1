"""Facebook Messenger webhook handlers"""

import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from chatorder.bot.dialogue import OrderingDialogue
from chatorder.bot.events import classify_event, extract_messaging_events
from chatorder.bot.messenger import MessageSender, MessengerClient
from chatorder.bot.store import Store
from chatorder.config import Settings, get_settings
from chatorder.database import get_db

router = APIRouter()
logger = structlog.get_logger()

SIGNATURE_HEADERS = ("x-hub-signature-256", "x-hub-signature")


def get_sender(settings: Settings = Depends(get_settings)) -> MessageSender:
    """Outbound message channel; overridden in tests"""
    return MessengerClient(settings)


def verify_signature(raw_body: bytes, signature: Optional[str], settings: Settings) -> bool:
    """
    Check the X-Hub-Signature header against an HMAC of the raw body.

    A missing app secret or header passes unless require_signature is set.
    """
    if not settings.fb_app_secret or not signature:
        return not settings.require_signature

    algorithm, _, digest = signature.partition("=")
    if algorithm == "sha256":
        digestmod = hashlib.sha256
    elif algorithm == "sha1":
        digestmod = hashlib.sha1
    else:
        return False

    expected = hmac.new(settings.fb_app_secret.encode("utf-8"), raw_body, digestmod).hexdigest()
    return hmac.compare_digest(expected, digest)


def _is_profile_setup(request: Request, settings: Settings) -> bool:
    params = request.query_params
    return (
        params.get("setup") == "profile"
        and bool(settings.fb_verify_token)
        and params.get("token") == settings.fb_verify_token
    )


@router.get("")
async def verify_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    sender: MessageSender = Depends(get_sender),
):
    """
    Webhook subscription handshake.
    Also registers the Messenger profile when called with setup=profile.
    """
    if _is_profile_setup(request, settings):
        logger.info("Messenger profile setup requested")
        return JSONResponse(await sender.setup_profile())

    params = request.query_params
    if (
        params.get("hub.mode") == "subscribe"
        and settings.fb_verify_token
        and params.get("hub.verify_token") == settings.fb_verify_token
    ):
        logger.info("Webhook verified")
        return PlainTextResponse(params.get("hub.challenge") or "")

    logger.warning("Webhook verification failed", mode=params.get("hub.mode"))
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("")
async def receive_events(
    request: Request,
    db: Optional[AsyncSession] = Depends(get_db),
    settings: Settings = Depends(get_settings),
    sender: MessageSender = Depends(get_sender),
):
    """
    Handle Messenger events.

    Always acknowledges with 200 once the signature passes, so the platform
    does not redeliver a payload we failed to process.
    """
    if _is_profile_setup(request, settings):
        return JSONResponse(await sender.setup_profile())

    raw_body = await request.body()
    signature = next(
        (request.headers[name] for name in SIGNATURE_HEADERS if request.headers.get(name)),
        None,
    )
    if not verify_signature(raw_body, signature, settings):
        logger.warning("Rejected webhook with bad signature")
        return JSONResponse({"ok": False}, status_code=403)

    try:
        body = json.loads(raw_body or b"{}")
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return {"ok": True}

    if not isinstance(body, dict) or body.get("object") != "page":
        return {"ok": True}

    dialogue = OrderingDialogue(Store(db) if db is not None else None, sender, settings)

    entries = body.get("entry") or []
    if not isinstance(entries, list):
        entries = []

    processed = 0
    for entry in entries:
        for raw_event in extract_messaging_events(entry):
            event = classify_event(raw_event)
            if event is None:
                continue
            try:
                await dialogue.handle_event(event)
                processed += 1
            except Exception as e:
                logger.exception(
                    "Messenger event failed",
                    psid=event.sender_id,
                    event_kind=event.kind.value,
                    failure_kind=type(e).__name__,
                )

    logger.info("Webhook processed", event_count=processed)
    return {"ok": True}


@router.api_route("", methods=["PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"])
async def method_not_allowed():
    return Response(
        content="Method Not Allowed",
        status_code=405,
        headers={"Allow": "GET, POST"},
        media_type="text/plain",
    )
