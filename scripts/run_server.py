"""Script to launch the Muninn archive server."""

from __future__ import annotations

import argparse
import os
import sys

import uvicorn

# Ensure src/ is on sys.path (so imports work when run from a checkout)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from muninn_server.config import load_config  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Muninn archive server.")
    parser.add_argument(
        "--config",
        type=str,
        default=os.environ.get("MUNINN_CONFIG"),
        help="Path to a YAML config file (default: $MUNINN_CONFIG or config/default.yaml)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST"),
        help="Host to bind the server to (default: server.host from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ["PORT"]) if os.environ.get("PORT") else None,
        help="Port to bind the server to (default: server.port from config)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development (default: off)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        help="uvicorn log level (default: info)",
    )
    args = parser.parse_args()

    if args.config:
        # The app factory reads the same variable, including in reload workers.
        os.environ["MUNINN_CONFIG"] = args.config
    cfg = load_config(args.config)
    server_cfg = cfg.get("server", {})

    uvicorn.run(
        "muninn_server.server:create_app",
        factory=True,
        host=args.host or server_cfg.get("host", "127.0.0.1"),
        port=args.port or int(server_cfg.get("port", 8080)),
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
