"""
asgi.py -- ASGI entry point for the CareShop API.

The app is assembled in api/main.py; this module only gives servers a
stable import path.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app

__all__ = ["app"]
