"""Run the API with uvicorn: ``python -m marketplace.server``."""
from __future__ import annotations

import uvicorn

from marketplace.app import create_app
from marketplace.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
