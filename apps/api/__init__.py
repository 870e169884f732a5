"""Storefront security HTTP API: FastAPI app factory, routers, wiring."""
