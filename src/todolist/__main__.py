"""
Run the service with uvicorn.

Usage:
    python -m todolist

HOST and PORT are read from the environment (see todolist.settings).
"""
from __future__ import annotations

import uvicorn

from .settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "todolist.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
