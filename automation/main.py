"""Main FastAPI application for the automation engine."""

import uvicorn

from .config import load_config
from .factory import create_app

config = load_config()
app = create_app(config)


def run():
    """Serve the application with uvicorn."""
    uvicorn.run("automation.main:app", **config.get_uvicorn_config())


if __name__ == "__main__":
    run()
