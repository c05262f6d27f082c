"""ASGI entry point.

Run with ``uvicorn app.main:app`` or the ``qrlink`` console script.
"""

import uvicorn

from app.core.app_factory import create_app
from app.core.config import settings

app = create_app(settings)


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(
        app,
        host=settings.app.host,
        port=settings.app.port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    run()
