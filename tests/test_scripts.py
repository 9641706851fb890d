import pytest

from app.stride.db import build_engine, make_sessionmaker
from app.stride.models import User
from scripts import init_db, release


def _users(db_url):
    engine = build_engine(db_url, pooled=False)
    s = make_sessionmaker(engine)()
    try:
        return [(u.email, u.role, u.clerk_id) for u in s.query(User).order_by(User.email).all()]
    finally:
        s.close()
        engine.dispose()


def test_init_db_creates_tables_and_seeds_admin(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("ADMIN_EMAIL", "Boss@Example.com")
    monkeypatch.setenv("ADMIN_CLERK_ID", "clerk_boss")
    init_db.main()
    # a second run neither duplicates nor demotes
    init_db.main()
    assert _users(db_url) == [("boss@example.com", "ADMIN", "clerk_boss")]


def test_seed_skipped_without_admin_email(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'empty.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    init_db.main()
    assert _users(db_url) == []


def test_release_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        release.resolve_database_url()


def test_release_refuses_sqlite_in_production(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///prod.db")
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(RuntimeError):
        release.resolve_database_url()


def test_release_normalizes_postgres_scheme(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/stride")
    monkeypatch.setenv("ENV", "production")
    assert release.resolve_database_url().startswith("postgresql")
