"""Run the CloudSync gateway."""
from __future__ import annotations

import argparse

import uvicorn

from cloudsync.settings import get_settings
from services.gateway.main import create_app


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CloudSync object gateway")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    app = create_app(get_settings(args.config))
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
