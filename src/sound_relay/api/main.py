"""Sound Relay ingestion server - entry point."""

import argparse
from pathlib import Path

import uvicorn

from sound_relay.config.settings import load_config, setup_logging


def main():
    parser = argparse.ArgumentParser(description="Sound Relay ingestion server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind")
    parser.add_argument("--config", type=str, default=".env", help="Config file path")
    parser.add_argument("--db", type=str, default=None, help="sqlite database path (overrides DB_PATH)")

    args = parser.parse_args()

    config = load_config(Path(args.config))
    setup_logging(config.log_level)

    from sound_relay.api.server import create_app
    app = create_app(db_path=args.db or config.db_path)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
