"""auth/ -- Credentials, sessions, and request authentication for CareShop.

Layer rule: auth/ imports only stdlib + third-party libraries, core/, and
storage/. It does NOT import from api/, handshake/, or shop/.
api/ imports from auth/, not the other way around.
"""
