"""Entry point serving the nodeflow API with uvicorn."""

import argparse

from .config import load_config
from .factory import create_app

config = load_config()
app = create_app(config)


def main():
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the nodeflow API server")
    parser.add_argument("--host", default=config.host, help="Bind address")
    parser.add_argument("--port", type=int, default=config.port, help="Bind port")
    parser.add_argument("--reload", action="store_true", default=config.reload, help="Reload on code changes")
    args = parser.parse_args()

    import uvicorn

    uvicorn_config = config.get_uvicorn_config()
    uvicorn_config.update(host=args.host, port=args.port, reload=args.reload)

    if args.reload:
        uvicorn.run("nodeflow.main:app", **uvicorn_config)
    else:
        uvicorn.run(app, **uvicorn_config)


if __name__ == "__main__":
    main()
