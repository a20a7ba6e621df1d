"""CLI entry point for launching the FastAPI app with uvicorn."""

import uvicorn

from .app import app
from .dependencies import config


def main() -> None:
    """Run the development server."""
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        factory=False,
    )


if __name__ == "__main__":
    main()
