import os
import sys
from contextlib import contextmanager
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.stride.constants import ROLE_ADMIN
from app.stride.models import Base, User, UserProfile
from app.stride.db import build_engine, make_sessionmaker


@contextmanager
def _script_session(db_url: str):
    engine = build_engine(db_url, pooled=False)
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the bootstrap admin account in an idempotent way.

    The admin signs in through Clerk; ADMIN_CLERK_ID links the row up front,
    otherwise the Clerk webhook links it by email on first sign-up.
    An existing user with ADMIN_EMAIL is promoted to ADMIN, never demoted or duplicated.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    admin_clerk_id = (os.environ.get("ADMIN_CLERK_ID") or "").strip() or None

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///stride.db").strip()
    if not admin_email:
        print("ADMIN_EMAIL not set; skipping admin seed.", flush=True)
        return

    with _script_session(db_url) as s:
        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if user is None:
            user = User(email=admin_email, clerk_id=admin_clerk_id, role=ROLE_ADMIN, is_active=True)
            user.profile = UserProfile(is_onboarded=True)
            s.add(user)
            print(f"Created admin user {admin_email}", flush=True)
            return

        if user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            print(f"Promoted {admin_email} to ADMIN", flush=True)
        if admin_clerk_id and not user.clerk_id:
            user.clerk_id = admin_clerk_id
        if not user.is_active:
            user.is_active = True


def main() -> None:
    """Local development: create all tables directly (no alembic) and seed the admin."""
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///stride.db").strip()
    engine = build_engine(db_url, pooled=False)
    Base.metadata.create_all(engine)
    engine.dispose()
    seed_only(database_url=db_url)
    print("Database initialised.", flush=True)


if __name__ == "__main__":
    main()
