"""
api/routes/shop.py -- Inventory, cart, appointments, and admin user listing.

Routes:
  GET    /api/inventory               -- public product list
  POST   /api/inventory               -- worker/admin: add product
  DELETE /api/inventory/{id}          -- worker/admin: remove product
  GET    /api/cart                    -- public shared cart
  POST   /api/cart                    -- add a line (qty merges into an existing line)
  DELETE /api/cart/{id}               -- remove a line
  DELETE /api/cart                    -- empty the cart
  GET    /api/appointments            -- clients: own; staff: all
  POST   /api/appointments            -- any signed-in user
  PUT    /api/appointments/{id}       -- owner or staff
  DELETE /api/appointments/{id}       -- owner or staff
  GET    /api/users                   -- admin: public user list

Every gated endpoint states its policy through require_role(); none of them
inspects user.role inline. Unauthenticated requests get 401, signed-in users
with the wrong role get 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentUpdate,
    CartItemRequest,
    CartResponse,
    DeletedResponse,
    InventoryCreate,
    InventoryItem,
    UserResponse,
)
from auth.dependencies import require_role
from auth.models import ROLES, STAFF_ROLES, User
from auth.store import UserStore
from shop.store import ShopStore

# Auth policy:
# - inventory reads and the whole cart: public
# - inventory writes: require_role(*STAFF_ROLES)
# - appointments: require_role(*ROLES), ownership enforced by ShopStore
# - user listing: require_role("admin")
router = APIRouter()

_staff = require_role(*STAFF_ROLES)
_any_user = require_role(*ROLES)
_admin = require_role("admin")


def _shop(request: Request) -> ShopStore:
    return request.app.state.shop_store


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@router.get("/inventory", response_model=list[InventoryItem])
def list_inventory(request: Request) -> list[dict]:
    return _shop(request).list_inventory()


@router.post("/inventory", response_model=InventoryItem)
def add_inventory_item(request: Request, body: InventoryCreate, user: User = Depends(_staff)) -> dict:
    return _shop(request).add_inventory_item(
        name=body.name,
        description=body.description,
        category=body.category,
        price=body.price,
        img=body.img,
    )


@router.delete("/inventory/{item_id}", response_model=DeletedResponse)
def delete_inventory_item(request: Request, item_id: str, user: User = Depends(_staff)) -> DeletedResponse:
    return DeletedResponse(deleted=_shop(request).delete_inventory_item(item_id))


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


@router.get("/cart", response_model=CartResponse)
def get_cart(request: Request) -> dict:
    return _shop(request).get_cart()


@router.post("/cart", response_model=CartResponse)
def add_to_cart(request: Request, body: CartItemRequest) -> dict:
    return _shop(request).add_to_cart(
        body.id,
        name=body.name,
        price=body.price,
        qty=body.qty,
        img=body.img,
    )


@router.delete("/cart/{item_id}", response_model=CartResponse)
def remove_from_cart(request: Request, item_id: str) -> dict:
    return _shop(request).remove_from_cart(item_id)


@router.delete("/cart", response_model=CartResponse)
def clear_cart(request: Request) -> dict:
    return _shop(request).clear_cart()


# ---------------------------------------------------------------------------
# Appointments
# ---------------------------------------------------------------------------


@router.get("/appointments", response_model=list[AppointmentResponse])
def list_appointments(request: Request, user: User = Depends(_any_user)) -> list[dict]:
    return _shop(request).list_appointments(user)


@router.post("/appointments", response_model=AppointmentResponse)
def create_appointment(request: Request, body: AppointmentCreate, user: User = Depends(_any_user)) -> dict:
    return _shop(request).create_appointment(user, when=body.datetime, notes=body.notes, status=body.status)


@router.put("/appointments/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    request: Request,
    appointment_id: str,
    body: AppointmentUpdate,
    user: User = Depends(_any_user),
) -> dict:
    return _shop(request).update_appointment(
        user,
        appointment_id,
        when=body.datetime,
        notes=body.notes,
        status=body.status,
    )


@router.delete("/appointments/{appointment_id}", response_model=DeletedResponse)
def delete_appointment(request: Request, appointment_id: str, user: User = Depends(_any_user)) -> DeletedResponse:
    return DeletedResponse(deleted=_shop(request).delete_appointment(user, appointment_id))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, user: User = Depends(_admin)) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]
