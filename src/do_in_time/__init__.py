import logging

import uvicorn

from do_in_time.app import create_app
from do_in_time.config import Settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Expose app for ASGI servers: uvicorn do_in_time:app
app = create_app()


def main() -> None:
    """Entry point for the do-in-time console script."""
    settings = Settings()
    uvicorn.run("do_in_time:app", host=settings.host, port=settings.port)
