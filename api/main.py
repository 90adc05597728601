"""API server entrypoint."""

import uvicorn

from shared import config


def run() -> None:
    """Serve the FastAPI app with uvicorn."""
    uvicorn.run("api.app:app", host="0.0.0.0", port=config.server_port())


if __name__ == "__main__":
    run()
