"""Run the QR relay server: python -m qrrelay [--port N] [--https-port N] [--ssl-dir DIR]."""
import argparse
from pathlib import Path

from .config import Settings
from .main import configure_logging
from .serve import run


def parse_args(argv: list[str] | None = None, settings: Settings | None = None) -> Settings:
    settings = settings or Settings.from_env()
    parser = argparse.ArgumentParser(description="QR relay: scanners publish, viewers follow")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help="HTTP port, redirect port when TLS is on")
    parser.add_argument("--https-port", type=int, default=settings.https_port, help="HTTPS port")
    parser.add_argument("--ssl-dir", type=Path, default=settings.ssl_dir, help="Directory holding key.pem + cert.pem")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    args = parser.parse_args(argv)

    settings.host = args.host
    settings.port = args.port
    settings.https_port = args.https_port
    settings.ssl_dir = args.ssl_dir
    settings.log_level = args.log_level.upper()
    return settings


def main(argv: list[str] | None = None) -> int:
    settings = parse_args(argv)
    configure_logging(settings.log_level)
    run(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
