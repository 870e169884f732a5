"""Migrations application package."""

from apps.migrations.main import main as run_security_migrations

__all__ = ["run_security_migrations"]
