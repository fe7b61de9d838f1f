"""
asgi.py -- Application assembly for AdminGate.

Run with:  uvicorn asgi:app --reload

Kept separate from api/main.py so the process bootstrap (uvicorn, env files,
working directory) has one obvious import target, and so a UI layer can be
mounted here later without api/ importing it.
"""

from api.main import app

__all__ = ["app"]
