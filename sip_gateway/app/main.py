"""FastAPI entrypoint for realtime SIP call webhooks.

This module performs four primary responsibilities:
1. Configure process logging from settings.
2. Wire the admission ledger, acceptance client, and session launcher.
3. Host the webhook endpoint that admits and accepts incoming calls.
4. Provide the `sip-gateway` console entry point with its startup checks.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from .acceptance_client import CallAcceptanceClient
from .admission import CallAdmissionLedger
from .agent.script import get_call_instructions, get_greeting_instructions
from .config import Settings, settings
from .session.launcher import SessionLauncher
from .session.supervisor import SessionSupervisor
from .webhook import CallWebhookHandler

_LOGGER = logging.getLogger(__name__)


def _configure_logging() -> None:
    """Sets log levels for the SIP gateway and the websockets library."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    websockets_level = getattr(
        logging,
        settings.WEBSOCKETS_LOG_LEVEL.upper(),
        logging.INFO,
    )
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
    else:
        root_logger.setLevel(level)

    _LOGGER.setLevel(level)
    logging.getLogger("sip_gateway").setLevel(level)
    logging.getLogger("websockets").setLevel(websockets_level)
    logging.getLogger("websockets.client").setLevel(websockets_level)
    _LOGGER.debug(
        "Logging configured for SIP gateway.",
        extra={
            "log_level": settings.LOG_LEVEL,
            "websockets_log_level": settings.WEBSOCKETS_LOG_LEVEL,
            "webhook_signature_check": settings.webhook_secret is not None,
        },
    )


def build_session_launcher(config: Settings) -> SessionLauncher:
    """Builds the launcher that runs one supervisor per accepted call."""

    def supervisor_factory(call_id: str) -> SessionSupervisor:
        return SessionSupervisor(
            call_id,
            api_key=config.OPENAI_API_KEY,
            realtime_url=config.OPENAI_REALTIME_WS_URL,
            origin=config.OPENAI_REALTIME_ORIGIN,
            greeting_instructions=get_greeting_instructions(),
            greeting_fallback_seconds=config.GREETING_FALLBACK_SECONDS,
        )

    return SessionLauncher(supervisor_factory)


def build_webhook_handler(
    config: Settings,
    *,
    acceptance_client: CallAcceptanceClient,
    session_launcher: SessionLauncher,
) -> CallWebhookHandler:
    """Wires the webhook handler from settings and process-scoped components."""
    return CallWebhookHandler(
        ledger=CallAdmissionLedger(),
        acceptance_client=acceptance_client,
        session_launcher=session_launcher,
        webhook_secret=config.webhook_secret,
        model=config.REALTIME_MODEL,
        voice=config.DEFAULT_VOICE,
        instructions_provider=get_call_instructions,
        timestamp_tolerance_seconds=config.WEBHOOK_TIMESTAMP_TOLERANCE_SECONDS,
    )


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Creates and tears down process-scoped gateway components.

    Args:
        app: FastAPI app whose state receives the webhook handler.
    """
    _LOGGER.debug("SIP gateway lifespan startup beginning.")
    if not settings.OPENAI_API_KEY:
        _LOGGER.error("OPENAI_API_KEY is not set; refusing to start.")
        raise RuntimeError("OPENAI_API_KEY is required")
    if settings.webhook_secret is None:
        _LOGGER.warning("OPENAI_WEBHOOK_SECRET is not set; skipping webhook signature verification.")
    acceptance_client = CallAcceptanceClient(
        settings.OPENAI_API_BASE_URL,
        settings.OPENAI_API_KEY,
        timeout=settings.ACCEPT_TIMEOUT_SECONDS,
    )
    session_launcher = build_session_launcher(settings)
    app.state.session_launcher = session_launcher
    app.state.webhook_handler = build_webhook_handler(
        settings,
        acceptance_client=acceptance_client,
        session_launcher=session_launcher,
    )
    _LOGGER.info(
        "SIP gateway ready.",
        extra={"model": settings.REALTIME_MODEL, "voice": settings.DEFAULT_VOICE},
    )
    try:
        yield
    finally:
        _LOGGER.debug("SIP gateway lifespan shutdown beginning.")
        try:
            await session_launcher.shutdown()
        except Exception:
            _LOGGER.exception("Failed to cancel running realtime sessions.")
        try:
            await acceptance_client.close()
        except Exception:
            _LOGGER.exception("Failed to close call acceptance client.")


_configure_logging()
app = FastAPI(lifespan=_lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    """Returns a minimal liveness response for probes."""
    return {"status": "ok", "service": "sip_gateway"}


@app.post("/openai-webhook")
async def openai_webhook(request: Request) -> PlainTextResponse:
    """Receives realtime call notifications in any content type.

    The raw body is read untouched so the signature check sees the exact
    bytes the provider signed.

    Args:
        request: Inbound webhook request.

    Returns:
        Plain-text acknowledgement or error with the status chosen by the
        webhook handler.
    """
    raw_body = await request.body()
    _LOGGER.debug("Webhook received.", extra={"body_length": len(raw_body)})
    handler: CallWebhookHandler = request.app.state.webhook_handler
    result = await handler.handle(raw_body, request.headers)
    return PlainTextResponse(content=result.body, status_code=result.status_code)


def run() -> None:
    """Console entry point: validates mandatory settings and serves the app."""
    if not settings.OPENAI_API_KEY:
        _LOGGER.error("OPENAI_API_KEY is not set.")
        sys.exit(1)
    _LOGGER.info(
        "Starting SIP gateway.",
        extra={"port": settings.PORT, "model": settings.REALTIME_MODEL, "voice": settings.DEFAULT_VOICE},
    )
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_config=None)
