"""
asgi.py -- ASGI entry point for the GeekCraft server.

uvicorn and other ASGI servers import the app from here so the module path
stays stable if api/main.py is reorganised.

Run with:  uvicorn asgi:app --reload
           python main.py
"""

from api.main import app

__all__ = ["app"]
