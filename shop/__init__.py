"""shop/ -- Inventory, cart, and appointments over the document store.

Thin glue: the business rules are deliberately as simple as the documents
they edit. Authentication and role gating happen in api/ before these
methods are called; ownership of appointments is checked here because it
needs the stored record.

Layer rule: shop/ imports stdlib, core/, storage/, and auth.models only. It
does NOT import from api/ or handshake/.
"""

from shop.store import ShopStore

__all__ = ["ShopStore"]
