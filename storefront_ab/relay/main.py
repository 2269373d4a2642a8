"""
Relay Ingestion Endpoint - FastAPI Application

Receives analytics events from the relay channel (arm B), provisions the
durable first-party identifier on first contact and hands each event to a
collector forwarder after acknowledging it.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from pydantic import ValidationError as SchemaError

from ..errors import ValidationError
from ..gating import VariantGate, VariantGateMiddleware
from ..identity import IdentifierStore
from ..metrics import RELAY_EVENTS
from ..models.experiment_models import (
    ExperimentConfig,
    ForwardedEvent,
    TrackError,
    TrackRequest,
    TrackResponse,
    TrackStatus,
    channel_for
)
from .forwarder import Forwarder, LoggingForwarder

logger = logging.getLogger(__name__)


def parse_track_request(body: Any) -> TrackRequest:
    """
    Validate a decoded /track body.

    Raises:
        ValidationError: body is not an object, or event_name is missing/unknown
    """
    if not isinstance(body, dict):
        raise ValidationError("Event payload must be a JSON object")
    try:
        return TrackRequest.model_validate(body)
    except SchemaError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ValidationError(f"Invalid event payload: {details}")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=TrackError(message=message).model_dump()
    )


async def _forward(forwarder: Forwarder, event: ForwardedEvent) -> None:
    # Runs after the acknowledgement has been sent
    try:
        await forwarder.forward(event)
    except Exception as e:
        logger.error(f"Forwarder failed for {event.event_name.value}: {e}")


def create_app(
    config: ExperimentConfig = None,
    forwarder: Forwarder = None,
    identifier_store: IdentifierStore = None,
    gate: VariantGate = None
) -> FastAPI:
    """Build the relay application with its collaborators injected"""
    config = config or ExperimentConfig()
    forwarder = forwarder or LoggingForwarder()
    identifiers = identifier_store or IdentifierStore(config)
    gate = gate or VariantGate(config)

    app = FastAPI(
        title="Storefront A/B Relay",
        description="Relay ingestion endpoint for the experiment's server-side arm",
        version="1.0.0"
    )
    app.state.config = config
    app.state.forwarder = forwarder
    app.state.identifiers = identifiers
    app.state.gate = gate

    app.add_middleware(VariantGateMiddleware, gate=gate)
    app.mount("/metrics", make_asgi_app())

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.post(config.relay_path, response_model=TrackResponse)
    async def track_event(request: Request, background_tasks: BackgroundTasks):
        """
        Ingest one relayed event.

        Flow:
        1. Parse and validate the body (400 on failure, no cookie written)
        2. Resolve or provision the FPID
        3. Schedule forwarding and acknowledge immediately
        """
        try:
            try:
                body = await request.json()
            except ValueError:
                RELAY_EVENTS.labels(status="rejected").inc()
                return _error(400, "Malformed JSON body")

            try:
                track_request = parse_track_request(body)
            except ValidationError as e:
                RELAY_EVENTS.labels(status="rejected").inc()
                logger.warning(f"Rejected relay event: {e.message}")
                return _error(400, e.message)

            fpid, cookie = identifiers.get_or_create(request.cookies)
            logger.info(
                f"Event received: {track_request.event_name.value} "
                f"(fpid={identifiers.preview(fpid)})"
            )

            background_tasks.add_task(_forward, forwarder, ForwardedEvent(
                fpid=fpid,
                event_name=track_request.event_name,
                parameters=track_request.parameters,
                page_url=track_request.page_url,
                page_title=track_request.page_title,
                user_agent=track_request.user_agent or request.headers.get("user-agent", ""),
                timestamp=track_request.timestamp,
            ))

            response = JSONResponse(content=TrackResponse(fpid=fpid).model_dump())
            if cookie is not None:
                cookie.apply(response)
            RELAY_EVENTS.labels(status="accepted").inc()
            return response

        except Exception as e:
            RELAY_EVENTS.labels(status="error").inc()
            logger.error(f"Failed to process relay event: {e}")
            return _error(500, "Internal server error")

    @app.get(config.relay_path, response_model=TrackStatus)
    async def track_status(request: Request):
        """Report whether the caller has an FPID, exposing only a preview"""
        fpid = identifiers.peek(request.cookies)
        return TrackStatus(fpid_exists=fpid is not None, fpid=identifiers.preview(fpid))

    @app.get("/variant")
    async def current_variant(request: Request):
        """Debug view of the caller's experiment arm"""
        session = request.state.visitor
        return {
            "variant": session.variant.value,
            "channel": channel_for(session.variant).value,
            "is_new": session.is_new,
        }

    logger.info(f"Relay app created, ingesting at {config.relay_path}")
    return app


app = create_app(ExperimentConfig.from_env())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
