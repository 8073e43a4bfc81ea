"""Script Craft: dev launcher. Serves the API with uvicorn."""

import argparse
import logging
import os

import uvicorn

from script_craft.app import create_app
from script_craft.config import load_config

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Script Craft dev server")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=int(PORT))
    parser.add_argument("--mock", action="store_true",
                        help="Use canned responses even if an API key is configured")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.mock:
        config = config.model_copy(update={"api_key": ""})

    print(f"Starting Script Craft on http://localhost:{args.port} ...")
    uvicorn.run(create_app(config=config), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
