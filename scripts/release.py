"""
Release step run before the web workers start (see scripts/start.py).

Refuses SQLite in production, upgrades the schema to the Alembic head
and seeds the bootstrap admin from ADMIN_EMAIL / ADMIN_CLERK_ID.

Usage:
  python scripts/release.py            migrate + seed
  python scripts/release.py --no-seed  migrate only
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def resolve_database_url() -> str:
    from app.stride.config import normalize_database_url

    raw = (os.environ.get("DATABASE_URL") or "").strip()
    if not raw:
        raise RuntimeError("DATABASE_URL is not set; refusing to fall back to SQLite during a release.")
    db_url = normalize_database_url(raw)
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL points at SQLite but ENV is production.")
    return db_url


def upgrade_schema(db_url: str, revision: str = "head") -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    # alembic.ini is read by ConfigParser; URL-encoded passwords contain %
    cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    command.upgrade(cfg, revision)


def run_release(*, seed: bool = True) -> None:
    db_url = resolve_database_url()
    print(f"[release] ENV={os.environ.get('ENV') or '(unset)'}", flush=True)

    print("[release] alembic upgrade head", flush=True)
    upgrade_schema(db_url)

    if seed:
        from scripts import init_db

        print("[release] seeding admin", flush=True)
        init_db.seed_only(database_url=db_url)
    print("[release] done", flush=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run Stride migrations and the admin seed.")
    parser.add_argument("--no-seed", action="store_true", help="only run migrations")
    args = parser.parse_args(argv)
    run_release(seed=not args.no_seed)


if __name__ == "__main__":
    main()
