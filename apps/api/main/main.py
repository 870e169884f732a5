"""
Process entrypoint for the storefront security API (verification requests, storefront lock and
single-session guard).

`--env` and `--config` are exported as `STOREFRONT_ENV` and `SECURITY_CONFIG_PATH` before the
app module is imported, because `apps.api.main.app` wires the security module at import time.

Docs:
  - docs/architecture/security/time-gated-security-v1.md
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import MutableMapping

import uvicorn

_APP_IMPORT_PATH = "apps.api.main.app:app"
_LOG_LEVEL_ENV_KEY = "SECURITY_LOG_LEVEL"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_ENV_CHOICES = ("dev", "test", "prod")


def _build_parser(*, environ: MutableMapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-security-api",
        description="Serve security routes and the /metrics Prometheus endpoint.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument(
        "--env",
        choices=_ENV_CHOICES,
        default=None,
        help="Runtime environment; overrides STOREFRONT_ENV",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to security.yaml; overrides SECURITY_CONFIG_PATH",
    )
    parser.add_argument(
        "--log-level",
        default=environ.get(_LOG_LEVEL_ENV_KEY, "INFO"),
        help=f"Root log level (default from {_LOG_LEVEL_ENV_KEY}, else INFO)",
    )
    return parser


def _export_runtime_overrides(
    *,
    args: argparse.Namespace,
    environ: MutableMapping[str, str],
) -> None:
    """
    Copy CLI overrides into the environment read by security module wiring.

    Args:
        args: Parsed CLI arguments.
        environ: Mutable process environment.
    Returns:
        None.
    Assumptions:
        Wiring resolves settings from the environment when the app module is imported.
    Raises:
        ValueError: If `--config` is blank.
    Side Effects:
        Mutates `environ`.
    """
    if args.env is not None:
        environ["STOREFRONT_ENV"] = args.env
    if args.config is not None:
        config_path = args.config.strip()
        if not config_path:
            raise ValueError("--config must be non-empty")
        environ["SECURITY_CONFIG_PATH"] = config_path


def main(
    argv: list[str] | None = None,
    *,
    environ: MutableMapping[str, str] | None = None,
) -> int:
    """
    Configure logging, export runtime overrides and serve the security API with uvicorn.

    Args:
        argv: Optional command arguments without program name.
        environ: Optional environment override; defaults to `os.environ`.
    Returns:
        int: Process exit code; `2` when runtime overrides are invalid.
    Assumptions:
        Uvicorn imports `apps.api.main.app:app` after overrides are exported.
    Raises:
        None.
    Side Effects:
        Configures root logging, mutates environment and starts HTTP server loop.
    """
    effective_environ = os.environ if environ is None else environ
    args = _build_parser(environ=effective_environ).parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=_LOG_FORMAT)
    try:
        _export_runtime_overrides(args=args, environ=effective_environ)
    except ValueError as error:
        logging.getLogger(__name__).error("security api not started: %s", error)
        return 2
    uvicorn.run(_APP_IMPORT_PATH, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
