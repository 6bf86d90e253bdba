"""
api/routes/handshake.py -- Client liveness handshake.

Routes:
  GET  /api/handshake          -- issue a nonce and the server packet
  POST /api/handshake/confirm  -- echo the nonce back; single use, 2 minute TTL

Both handlers are async defs and never block: the registry is an in-memory
map, and issuing on the event loop lets it schedule the eviction timer with
loop.call_later().
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from api.models import HandshakeConfirmRequest, HandshakePacketResponse, OkResponse
from core.errors import NonceInvalidOrExpired
from handshake.registry import HandshakeRegistry

# Auth policy: both endpoints are public -- the handshake precedes login.
router = APIRouter()

# Client metadata is free-form and only logged.
_METADATA_FIELDS = {"browser", "platform", "language", "vendor"}
_METADATA_MAX_LENGTH = 200


@router.get("/handshake", response_model=HandshakePacketResponse)
async def issue_handshake(request: Request) -> HandshakePacketResponse:
    registry: HandshakeRegistry = request.app.state.handshake_registry
    return HandshakePacketResponse.from_packet(registry.issue())


@router.post("/handshake/confirm", response_model=OkResponse)
async def confirm_handshake(request: Request, body: Optional[HandshakeConfirmRequest] = None) -> OkResponse:
    """Consume the echoed nonce. 400 when it is missing, unknown, used, or expired."""
    registry: HandshakeRegistry = request.app.state.handshake_registry
    body = body or HandshakeConfirmRequest()
    nonce = body.echo_nonce
    if nonce is not None and not isinstance(nonce, str):
        raise NonceInvalidOrExpired()
    metadata = {
        field: str(value)[:_METADATA_MAX_LENGTH]
        for field, value in body.model_dump(include=_METADATA_FIELDS, exclude_none=True).items()
    }
    registry.confirm(nonce, metadata)
    return OkResponse()
