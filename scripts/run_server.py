from __future__ import annotations

import argparse

import uvicorn

from app.infrastructure.config import get_settings


def build_parser() -> argparse.ArgumentParser:
    server = get_settings().server
    parser = argparse.ArgumentParser(description="Run the AI robustness rating web app")
    parser.add_argument("--host", default=server.host)
    parser.add_argument("--port", type=int, default=server.port)
    parser.add_argument(
        "--reload", action=argparse.BooleanOptionalAction, default=server.reload
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    uvicorn.run(
        "app.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
