from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Mapping

from psycopg.conninfo import conninfo_to_dict
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection
from sqlalchemy.engine.url import make_url

from alembic import command
from alembic.config import Config

_DSN_ENV_KEYS: tuple[str, ...] = ("SECURITY_PG_DSN", "POSTGRES_DSN")
_DEFAULT_LOCK_KEY = 41873000001
_URL_SCHEMES: tuple[str, ...] = (
    "postgresql+psycopg://",
    "postgresql://",
    "postgres://",
)
_CONNINFO_URL_KEYS = frozenset({"dbname", "host", "hostaddr", "password", "port", "user"})


def _build_parser() -> argparse.ArgumentParser:
    """
    Build CLI parser for the security schema migration runner.

    Args:
        None.
    Returns:
        argparse.ArgumentParser: Configured command parser.
    Assumptions:
        Entry point may be called from any working directory.
    Raises:
        None.
    Side Effects:
        None.

    Related:
      - alembic.ini
      - alembic/env.py
    """
    parser = argparse.ArgumentParser(prog="storefront-migrations")
    parser.add_argument(
        "--dsn",
        default="",
        help="Postgres DSN. Falls back to $SECURITY_PG_DSN, then $POSTGRES_DSN.",
    )
    parser.add_argument(
        "--lock-key",
        type=int,
        default=_DEFAULT_LOCK_KEY,
        help="pg_advisory_lock key serializing concurrent migration runners.",
    )
    return parser


def _resolve_dsn(*, arg_dsn: str, environ: Mapping[str, str]) -> str:
    """
    Pick the first non-empty DSN among CLI argument and known environment keys.

    Args:
        arg_dsn: CLI `--dsn` value.
        environ: Environment mapping.
    Returns:
        str: Non-empty DSN string.
    Assumptions:
        `SECURITY_PG_DSN` wins over the generic `POSTGRES_DSN`.
    Raises:
        ValueError: If no DSN is configured.
    Side Effects:
        None.
    """
    candidates = [arg_dsn] + [environ.get(key, "") for key in _DSN_ENV_KEYS]
    for candidate in candidates:
        if candidate.strip():
            return candidate.strip()
    raise ValueError("Migration DSN is required via --dsn, SECURITY_PG_DSN or POSTGRES_DSN")


def _build_alembic_config(*, repo_root: Path) -> Config:
    alembic_ini = repo_root / "alembic.ini"
    if not alembic_ini.exists():
        raise ValueError(f"Missing Alembic config file: {alembic_ini}")
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(repo_root / "alembic"))
    return config


def _upgrade_head_under_lock(*, config: Config, sqlalchemy_url: URL, lock_key: int) -> None:
    """
    Run `alembic upgrade head` on one connection holding a Postgres advisory lock.

    Args:
        config: Prepared Alembic config.
        sqlalchemy_url: Psycopg SQLAlchemy URL.
        lock_key: Advisory lock key.
    Returns:
        None.
    Assumptions:
        Alembic reuses the injected connection, so the lock covers every statement.
    Raises:
        Exception: Any DB or Alembic failure is propagated.
    Side Effects:
        Applies DB schema migrations.
    """
    engine = create_engine(sqlalchemy_url, pool_pre_ping=True)
    with engine.connect() as connection:
        _advisory(connection=connection, function="pg_advisory_lock", lock_key=lock_key)
        try:
            config.attributes["connection"] = connection
            print("Running: alembic upgrade head")
            command.upgrade(config, "head")
            connection.commit()
            print("Migration success")
        except Exception:  # noqa: BLE001
            connection.rollback()
            raise
        finally:
            _advisory(connection=connection, function="pg_advisory_unlock", lock_key=lock_key)
            connection.commit()


def _advisory(*, connection: Connection, function: str, lock_key: int) -> None:
    print(f"{function}({lock_key})")
    connection.execute(text(f"SELECT {function}(:lock_key)"), {"lock_key": lock_key})


def _to_sqlalchemy_psycopg_url(*, dsn: str) -> URL:
    """
    Normalize URL or libpq conninfo DSN to a SQLAlchemy `postgresql+psycopg` URL.

    Args:
        dsn: Raw Postgres DSN.
    Returns:
        URL: SQLAlchemy URL using psycopg driver.
    Assumptions:
        Keyword-value DSNs are parsed by psycopg itself.
    Raises:
        ValueError: If DSN is empty, malformed, or uses another driver.
    Side Effects:
        None.
    """
    normalized = dsn.strip()
    if not normalized:
        raise ValueError("Postgres DSN cannot be empty")

    if normalized.startswith(_URL_SCHEMES):
        parsed_url = make_url(normalized)
        if parsed_url.drivername not in {"postgresql", "postgres", "postgresql+psycopg"}:
            raise ValueError("Postgres URL DSN must use postgresql:// or postgres:// scheme")
        return parsed_url.set(drivername="postgresql+psycopg")

    try:
        fields = conninfo_to_dict(normalized)
    except Exception as error:  # noqa: BLE001
        raise ValueError("Postgres DSN must be URL or libpq conninfo format") from error

    raw_port = str(fields.get("port", "")).strip()
    try:
        port = int(raw_port) if raw_port else None
    except ValueError as error:
        raise ValueError("Conninfo port must be numeric when provided") from error

    host = str(fields.get("host", fields.get("hostaddr", ""))).strip()
    return URL.create(
        "postgresql+psycopg",
        username=str(fields.get("user", "")).strip() or None,
        password=str(fields.get("password", "")).strip() or None,
        host=host or None,
        port=port,
        database=str(fields.get("dbname", "")).strip() or None,
        query={
            key: str(value)
            for key, value in sorted(fields.items())
            if key not in _CONNINFO_URL_KEYS and str(value)
        },
    )


def main(argv: list[str] | None = None) -> int:
    """
    Run fail-fast security schema migration with advisory lock.

    Args:
        argv: Optional CLI argument list without program name.
    Returns:
        int: Zero on success, one on failure.
    Assumptions:
        Deployment stops when migrations fail.
    Raises:
        None.
    Side Effects:
        Reads environment, connects to Postgres, applies migrations, prints status lines.

    Related:
      - alembic/env.py
      - alembic/versions/20261017_0001_security_v1.py
    """
    args = _build_parser().parse_args(argv)
    try:
        dsn = _resolve_dsn(arg_dsn=args.dsn, environ=os.environ)
        _upgrade_head_under_lock(
            config=_build_alembic_config(repo_root=Path(__file__).resolve().parents[2]),
            sqlalchemy_url=_to_sqlalchemy_psycopg_url(dsn=dsn),
            lock_key=args.lock_key,
        )
    except Exception as error:  # noqa: BLE001
        print(f"Migration failed: {error}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
