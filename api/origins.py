"""
api/origins.py -- Cross-origin policy: allow-list plus loopback exception.

OriginPolicy.is_allowed(origin):
  - no Origin header (curl, server-to-server)   -> allowed
  - origin in CORS_ALLOWED_ORIGINS              -> allowed
  - origin host is loopback, any port           -> allowed (local development)
  - anything else                               -> rejected, logged

Loopback means localhost, *.localhost, 127.0.0.0/8, and ::1.

Wiring (see api/main.py):
  PolicyCORSMiddleware is Starlette's CORSMiddleware with is_allowed_origin()
  delegated to the policy, so allowed origins get the usual CORS headers and
  preflight answers. The reject_disallowed_origins middleware sits in front of
  it and answers any request carrying a disallowed Origin -- preflight
  included -- with 403 origin_rejected before a route can run.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable
from typing import Optional
from urllib.parse import urlsplit

from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger("careshop.cors")


def _is_loopback_host(host: str) -> bool:
    host = host.lower()
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


class OriginPolicy:
    """Decides whether a browser origin may call the API."""

    def __init__(self, allowed_origins: Iterable[str] = ()) -> None:
        self.allowed_origins = frozenset(o.rstrip("/") for o in allowed_origins)

    def is_allowed(self, origin: Optional[str]) -> bool:
        if not origin:
            return True
        if origin.rstrip("/") in self.allowed_origins:
            return True
        try:
            host = urlsplit(origin).hostname
        except ValueError:
            host = None
        if host and _is_loopback_host(host):
            return True
        logger.warning("Rejected cross-origin request from %r", origin[:200])
        return False


class PolicyCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose origin check is an OriginPolicy."""

    def __init__(self, app: ASGIApp, policy: OriginPolicy, **kwargs) -> None:
        super().__init__(app, allow_origins=(), **kwargs)
        self.policy = policy

    def is_allowed_origin(self, origin: str) -> bool:
        return self.policy.is_allowed(origin)
