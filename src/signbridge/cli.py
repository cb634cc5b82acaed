"""CLI entry point: ``signbridge serve``."""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from dotenv import load_dotenv

from signbridge.config import SignerSettings


def _project_version() -> str:
    try:
        return version("signbridge")
    except PackageNotFoundError:
        return "0.1.0"


def parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="signbridge", description="Human-approved message signing service"
    )
    parser.add_argument("--version", action="version", version=_project_version())
    parser.add_argument("command", choices=["serve"], help="Subcommand: serve")
    parser.add_argument("--host", default=None, help="Server bind host")
    parser.add_argument("--port", type=int, default=None, help="Server bind port")
    parser.add_argument("--log-level", default="info", help="uvicorn log level")
    parser.add_argument(
        "--env-file", default=None, help="Path to a .env file (default: ./.env)"
    )
    return parser.parse_args(argv)


def run_server(host: str | None = None, port: int | None = None, log_level: str = "info") -> None:
    """Start the FastAPI server with uvicorn."""
    import uvicorn

    settings = SignerSettings.from_env()
    uvicorn.run(
        "signbridge.server.app:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=log_level,
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_cli_args(argv)
    env_file = Path(args.env_file) if args.env_file else Path.cwd() / ".env"
    load_dotenv(dotenv_path=env_file)
    if args.command == "serve":
        run_server(args.host, args.port, args.log_level)


if __name__ == "__main__":
    main()
