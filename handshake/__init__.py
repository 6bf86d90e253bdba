"""handshake/ -- Client liveness handshake (nonce issue / echo confirm).

Independent of identity: a completed handshake says the client can reach the
API and round-trip a packet, nothing about who the user is.

Layer rule: handshake/ imports only stdlib and core/. It does NOT import from
api/, auth/, shop/, or storage/.
"""

from handshake.registry import HandshakePacket, HandshakeRegistry

__all__ = ["HandshakePacket", "HandshakeRegistry"]
