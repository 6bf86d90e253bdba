"""
API request and response models for CareShop REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
handshake/registry.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (echoNonce, expiresIn, userId) to stay compatible
with the existing browser client. Models that cross the wire in camelCase use
_CamelModel; populate_by_name lets Python code build them with snake_case.

RegisterRequest and HandshakeConfirmRequest accept Any for their fields and
leave type and length checks to the endpoint: register must answer
role=admin with role_not_permitted before it looks at any other field, and
handshake confirm answers every unusable nonce with a 400 nonce error. A
422 from Pydantic would pre-empt both.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import User
from handshake.registry import HandshakePacket


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class OkResponse(BaseModel):
    """Response for operations with nothing to return but success."""

    model_config = ConfigDict(frozen=True)

    ok: bool = True


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/register. role defaults to client.

    Fields are unvalidated here; api/routes/auth.py checks role first.
    """

    name: Any = None
    email: Any = None
    password: Any = None
    role: Any = None


class LoginRequest(BaseModel):
    """Request body for POST /api/login."""

    email: Optional[str] = Field(default=None, max_length=254)
    password: Optional[str] = Field(default=None, max_length=1024)


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, name=user.name, email=user.email, role=user.role)


class LoginResponse(_CamelModel):
    """Response for POST /api/login. expires_in is in seconds."""

    model_config = ConfigDict(frozen=True)

    token: str
    expires_in: int
    user: UserResponse


# ---------------------------------------------------------------------------
# Handshake
# ---------------------------------------------------------------------------


class HandshakePacketResponse(_CamelModel):
    """Response for GET /api/handshake."""

    model_config = ConfigDict(frozen=True)

    nonce: str
    server_version: str
    server_type: str
    server_name: str
    timestamp: int
    features: list[str]

    @classmethod
    def from_packet(cls, packet: HandshakePacket) -> "HandshakePacketResponse":
        return cls(
            nonce=packet.nonce,
            server_version=packet.server_version,
            server_type=packet.server_type,
            server_name=packet.server_name,
            timestamp=packet.timestamp,
            features=list(packet.features),
        )


class HandshakeConfirmRequest(_CamelModel):
    """Request body for POST /api/handshake/confirm.

    Only echo_nonce matters for the protocol; the rest is client metadata
    that is logged (truncated) on success. Other client packet fields such
    as serverVersion and clientTimestamp are ignored.
    """

    echo_nonce: Any = None
    browser: Any = None
    platform: Any = None
    language: Any = None
    vendor: Any = None


# ---------------------------------------------------------------------------
# Shop
# ---------------------------------------------------------------------------

_Price = Union[str, float, int]


class InventoryCreate(BaseModel):
    """Request body for POST /api/inventory. Blank fields get shop defaults."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    category: Optional[str] = Field(default=None, max_length=100)
    price: Optional[_Price] = None
    img: Optional[str] = Field(default=None, max_length=500)


class InventoryItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: str = ""
    price: str = "0.00"
    img: str = ""


class CartItemRequest(BaseModel):
    """Request body for POST /api/cart."""

    id: str = Field(min_length=1, max_length=100)
    name: Optional[str] = Field(default=None, max_length=200)
    price: Optional[_Price] = None
    qty: int = Field(default=1, ge=1, le=1000)
    img: Optional[str] = Field(default=None, max_length=500)


class CartItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: Optional[str] = None
    price: Optional[_Price] = None
    qty: int = 1
    img: str = ""


class CartResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: list[CartItem] = Field(default_factory=list)


class AppointmentCreate(BaseModel):
    """Request body for POST /api/appointments."""

    model_config = ConfigDict(str_strip_whitespace=True)

    datetime: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=5000)
    status: Optional[str] = Field(default=None, max_length=50)


class AppointmentUpdate(AppointmentCreate):
    """Request body for PUT /api/appointments/{id}. Blank fields are kept."""


class AppointmentResponse(_CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    datetime: str = ""
    notes: str = ""
    status: str = ""


class DeletedResponse(BaseModel):
    """Number of records removed by a DELETE."""

    model_config = ConfigDict(frozen=True)

    deleted: int
