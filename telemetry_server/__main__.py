"""CLI entry point for running the telemetry server."""

from __future__ import annotations

import uvicorn

from telemetry_server.core.config import load_settings


def main() -> None:
    """Run the service on the configured ``SERVER_ADDRESS``."""
    settings = load_settings()
    uvicorn.run(
        "telemetry_server.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    main()
