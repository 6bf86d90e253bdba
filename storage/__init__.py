"""storage/ -- Named JSON document persistence for CareShop.

Layer rule: storage/ imports only stdlib + third-party libraries and core/.
It does NOT import from api/, auth/, handshake/, or shop/.
"""

from storage.backends import FileBackend, SqlBackend
from storage.documents import DocumentStore, create_document_store

__all__ = ["DocumentStore", "FileBackend", "SqlBackend", "create_document_store"]
