"""FastAPI app that receives GitHub webhooks."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from themesync.config.models import ThemeSyncConfig
from themesync.context import InstallationContextFactory
from themesync.errors import EventParseError, SignatureError
from themesync.github.auth import InstallationAuthenticator
from themesync.webhook.events import parse_event
from themesync.webhook.router import EventRouter

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"


def verify_signature(secret: str, body: bytes, signature: str | None) -> None:
    """Check ``sha256=<hex>`` HMAC of the raw body in constant time.

    Raises:
        SignatureError: if the header is missing or does not match.
    """
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not signature or not hmac.compare_digest(signature.encode(), expected.encode()):
        raise SignatureError("signature mismatch")


def create_app(router: EventRouter, secret: str, path: str = "/api/webhook") -> FastAPI:
    app = FastAPI(title="themesync webhook")

    @app.get(path, response_class=PlainTextResponse)
    async def webhook_ping() -> str:
        return "ok"

    @app.post(path, response_class=PlainTextResponse)
    async def receive_webhook(request: Request) -> PlainTextResponse:
        body = await request.body()
        try:
            verify_signature(secret, body, request.headers.get(SIGNATURE_HEADER))
        except SignatureError:
            logger.warning(
                "Rejected delivery %s: signature mismatch",
                request.headers.get(DELIVERY_HEADER, "-"),
            )
            return PlainTextResponse("signature mismatch", status_code=401)

        name = request.headers.get(EVENT_HEADER, "")
        try:
            payload = json.loads(body)
            if not isinstance(payload, dict):
                raise EventParseError("payload is not a JSON object")
            event = parse_event(name, payload)
        except (ValueError, EventParseError) as e:
            logger.error(
                "[webhook:error] event=%s delivery=%s: %s",
                name, request.headers.get(DELIVERY_HEADER, "-"), e,
            )
            return PlainTextResponse("webhook error", status_code=400)

        if event is not None:
            await router.dispatch(event)
        return PlainTextResponse("ok")

    return app


def app_from_config(config: ThemeSyncConfig) -> FastAPI:
    """Build the production app from env-provided App credentials."""
    secret = os.environ.get(config.github.webhook_secret_env, "")
    if not secret:
        raise ValueError(f"{config.github.webhook_secret_env} required")
    authenticator = InstallationAuthenticator.from_env(config.github)
    router = EventRouter(config, InstallationContextFactory(config, authenticator))
    return create_app(router, secret, config.server.path)
