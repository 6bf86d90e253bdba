"""
shop/store.py -- Repository for the inventory, cart, and appointments documents.

Document shapes:
  inventory     [{"id", "name", "description", "category", "price", "img"}]  newest first
  cart          {"items": [{"id", "name", "price", "qty", "img"}]}           one shared cart
  appointments  [{"id", "userId", "datetime", "notes", "status"}]            newest first

Every mutation is a single DocumentStore.edit() block, so concurrent
requests against the same document never lose an update (two simultaneous
"add X" calls to the cart end with qty 2, not 1).
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import uuid4

from auth.models import User
from core.errors import Forbidden, NotFound
from storage.documents import DocumentStore

logger = logging.getLogger("careshop.shop")

INVENTORY_DOCUMENT = "inventory"
CART_DOCUMENT = "cart"
APPOINTMENTS_DOCUMENT = "appointments"

DEFAULT_PRODUCT_NAME = "Nieuwe product"
DEFAULT_CATEGORY = "Algemeen"
DEFAULT_PRICE = "0.00"
DEFAULT_APPOINTMENT_STATUS = "gepland"


def _empty_cart() -> dict:
    return {"items": []}


class ShopStore:
    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def list_inventory(self) -> list[dict]:
        return self.documents.read(INVENTORY_DOCUMENT, [])

    def add_inventory_item(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        price: Any = None,
        img: Optional[str] = None,
    ) -> dict:
        """Create a product at the top of the list. Blank fields get defaults."""
        item = {
            "id": str(uuid4()),
            "name": name or DEFAULT_PRODUCT_NAME,
            "description": description or "",
            "category": category or DEFAULT_CATEGORY,
            "price": str(price) if price not in (None, "") else DEFAULT_PRICE,
            "img": img or "",
        }
        with self.documents.edit(INVENTORY_DOCUMENT, []) as inventory:
            inventory.insert(0, item)
        logger.info("Added inventory item %s", item["id"])
        return item

    def delete_inventory_item(self, item_id: str) -> int:
        """Remove a product. Returns how many records were removed (0 or 1)."""
        with self.documents.edit(INVENTORY_DOCUMENT, []) as inventory:
            before = len(inventory)
            inventory[:] = [i for i in inventory if i.get("id") != item_id]
            deleted = before - len(inventory)
        if deleted:
            logger.info("Deleted inventory item %s", item_id)
        return deleted

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def get_cart(self) -> dict:
        return self.documents.read(CART_DOCUMENT, _empty_cart())

    def add_to_cart(
        self,
        item_id: str,
        name: Optional[str] = None,
        price: Any = None,
        qty: int = 1,
        img: Optional[str] = None,
    ) -> dict:
        """Add qty of item_id; an existing line is incremented, not duplicated."""
        with self.documents.edit(CART_DOCUMENT, _empty_cart()) as cart:
            items = cart.setdefault("items", [])
            existing = next((line for line in items if line.get("id") == item_id), None)
            if existing is not None:
                existing["qty"] = (existing.get("qty") or 1) + qty
            else:
                items.append({"id": item_id, "name": name, "price": price, "qty": qty, "img": img or ""})
            return cart

    def remove_from_cart(self, item_id: str) -> dict:
        with self.documents.edit(CART_DOCUMENT, _empty_cart()) as cart:
            cart["items"] = [line for line in cart.get("items", []) if line.get("id") != item_id]
            return cart

    def clear_cart(self) -> dict:
        cart = _empty_cart()
        self.documents.write(CART_DOCUMENT, cart)
        return cart

    # ------------------------------------------------------------------
    # Appointments
    # ------------------------------------------------------------------

    def list_appointments(self, user: User) -> list[dict]:
        """Clients see their own appointments; staff see all of them."""
        appointments = self.documents.read(APPOINTMENTS_DOCUMENT, [])
        if user.role == "client":
            return [a for a in appointments if a.get("userId") == user.id]
        return appointments

    def create_appointment(
        self,
        user: User,
        when: Optional[str] = None,
        notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict:
        appointment = {
            "id": str(uuid4()),
            "userId": user.id,
            "datetime": when or "",
            "notes": notes or "",
            "status": status or DEFAULT_APPOINTMENT_STATUS,
        }
        with self.documents.edit(APPOINTMENTS_DOCUMENT, []) as appointments:
            appointments.insert(0, appointment)
        logger.info("User %s created appointment %s", user.id, appointment["id"])
        return appointment

    def update_appointment(
        self,
        user: User,
        appointment_id: str,
        when: Optional[str] = None,
        notes: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict:
        """Overwrite the non-blank fields of an appointment.

        Raises NotFound if it does not exist, Forbidden if a client tries to
        change someone else's.
        """
        with self.documents.edit(APPOINTMENTS_DOCUMENT, []) as appointments:
            appointment = self._find_owned(appointments, user, appointment_id)
            appointment["datetime"] = when or appointment.get("datetime", "")
            appointment["notes"] = notes or appointment.get("notes", "")
            appointment["status"] = status or appointment.get("status", "")
            return appointment

    def delete_appointment(self, user: User, appointment_id: str) -> int:
        with self.documents.edit(APPOINTMENTS_DOCUMENT, []) as appointments:
            appointment = self._find_owned(appointments, user, appointment_id)
            appointments.remove(appointment)
        logger.info("User %s deleted appointment %s", user.id, appointment_id)
        return 1

    @staticmethod
    def _find_owned(appointments: list[dict], user: User, appointment_id: str) -> dict:
        appointment = next((a for a in appointments if a.get("id") == appointment_id), None)
        if appointment is None:
            raise NotFound("Appointment not found.")
        if user.role == "client" and appointment.get("userId") != user.id:
            logger.warning("User %s denied access to appointment %s", user.id, appointment_id)
            raise Forbidden()
        return appointment
