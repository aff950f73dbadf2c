"""Web API for turnsync."""

import argparse
from pathlib import Path

from ..config import Settings, load_settings


def create_and_run(settings: Settings | None = None, port: int = 5000):
    """Create and run the Flask app."""
    from .app import create_app

    app = create_app(settings or load_settings())
    app.run(host="127.0.0.1", port=port, debug=False)


def main():
    """Standalone entry point for turnsync-web."""
    parser = argparse.ArgumentParser(description="turnsync web API")
    parser.add_argument("--config", type=Path, help="Config file")
    parser.add_argument("--port", type=int, default=5000, help="Port (default 5000)")
    parser.add_argument("--backend-url", help="Backend URL")
    args = parser.parse_args()

    settings = load_settings(args.config)
    if args.backend_url:
        settings.backend_url = args.backend_url
    create_and_run(settings, port=args.port)
