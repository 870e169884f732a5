"""
FastAPI application factory for the storefront security API.
"""

from __future__ import annotations

import os
from typing import Mapping

from fastapi import FastAPI
from prometheus_client import CollectorRegistry, make_asgi_app

from apps.api.common import register_api_error_handlers
from apps.api.wiring.modules import build_security_api_module


def create_app(*, environ: Mapping[str, str] | None = None) -> FastAPI:
    """
    Build FastAPI app with security module wired at startup.

    Docs: docs/architecture/security/time-gated-security-v1.md
    Related: apps.api.routes.security,
      apps.api.wiring.modules.security,
      apps.api.common.errors

    Args:
        environ: Optional environment mapping override.
    Returns:
        FastAPI: Application instance with registered routers and `/metrics` mount.
    Assumptions:
        Module wiring performs fail-fast validation before first request.
    Raises:
        FileNotFoundError: If security config path is missing.
        ValueError: If config parsing/validation or fail-fast checks fail.
    Side Effects:
        Reads security YAML and registers Prometheus counters in an app-local registry.
    """
    effective_environ = os.environ if environ is None else environ
    registry = CollectorRegistry()

    app = FastAPI(
        title="Storefront Security API",
        version="1.0.0",
    )
    register_api_error_handlers(app=app)
    security_module = build_security_api_module(environ=effective_environ, registry=registry)
    app.include_router(security_module.router)
    app.state.security = security_module
    app.mount("/metrics", make_asgi_app(registry=registry))
    return app


app = create_app()
