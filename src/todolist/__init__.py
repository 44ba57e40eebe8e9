"""
Todo List API package.

The FastAPI application lives in `todolist.main` (`todolist.main:app` for
ASGI servers, `todolist.main.create_app` for a configured instance).
"""

__version__ = "1.0.0"
