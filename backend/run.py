"""
LC Compliance Backend — Uvicorn Launcher

Usage:
    python run.py
    python run.py --port 8100 --reload

Defaults come from the application settings (HOST, PORT, DEBUG, LOG_LEVEL).
Always a single process: rate limits are counted in process memory.
"""
import argparse

import uvicorn

from lc_compliance.config import get_settings


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} API server")
    parser.add_argument("--host", default=settings.HOST, help=f"Bind host (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Bind port (default: {settings.PORT})")
    parser.add_argument(
        "--reload", action=argparse.BooleanOptionalAction, default=settings.DEBUG,
        help="Hot reload on code changes (default: on when DEBUG)",
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    uvicorn.run(
        "lc_compliance.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=get_settings().LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
