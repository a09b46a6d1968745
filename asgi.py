"""
asgi.py -- ASGI entry point for SessionWard.

Run with:  uvicorn asgi:app --reload
           python main.py serve

The application, its middleware and its routers are all assembled in
api/main.py; this module only exposes the object a process manager imports.
"""

from api.main import app

__all__ = ["app"]
