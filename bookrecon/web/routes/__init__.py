"""Route modules for the reference catalog service.

Each module exports a ``router`` (APIRouter) that app.py includes.
"""

from bookrecon.web.routes import books, health, publishers, quotations

__all__ = ["books", "health", "publishers", "quotations"]
