"""
asgi.py -- ASGI entry point for the backend template.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app  # noqa: F401
