import base64

import pytest
from cryptography.fernet import Fernet
from jose import jwt

from app.stride import create_app
from app.stride.db import session_scope
from app.stride.models import Base, User, UserProfile

JWT_SECRET = "test-secret"
WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"stride-webhook-signing-key").decode()


class FakeModash:
    """Stands in for ModashClient; records calls and serves canned reports."""

    def __init__(self):
        self.reports: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.fail_for: set[str] = set()

    def add_report(self, user_id: str, **profile):
        self.reports[user_id] = {"profile": {"profile": {"userId": user_id, **profile}}}

    def get_profile_report(self, user_id, platform="instagram"):
        from app.stride.modules.modash.client import ModashError

        self.calls.append(("report", user_id, platform))
        if user_id in self.fail_for or user_id not in self.reports:
            raise ModashError(f"HTTP 404 from Modash: unknown {user_id}", status=404)
        return self.reports[user_id]

    def get_credit_usage(self):
        self.calls.append(("credits",))
        return {"used": 12, "limit": 3000, "remaining": 2988, "reset_date": None}

    def search(self, platform, filters, *, page=0, limit=20):
        self.calls.append(("search", platform, filters, page, limit))
        return {"results": [], "total": 0, "page": page, "limit": limit, "hasMore": False}

    def search_by_handle(self, handle, platform):
        self.calls.append(("lookup", handle, platform))
        for user_id, report in self.reports.items():
            profile = report["profile"]["profile"]
            if profile.get("username") == handle.lstrip("@"):
                return {"userId": user_id, "username": profile["username"], "platform": platform}
        return None

    def list_users(self, platform, query=None, limit=10):
        self.calls.append(("users", platform, query, limit))
        return [{"userId": uid, "username": r["profile"]["profile"].get("username")} for uid, r in self.reports.items()][:limit]


class FakeClerk:
    """Stands in for ClerkClient; hands out sequential invitation and user ids."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.fail_with: tuple[int, str | None] | None = None
        self._seq = 0

    def _check(self):
        from app.stride.modules.invitations.clerk_client import ClerkError

        if self.fail_with:
            status, code = self.fail_with
            raise ClerkError(f"HTTP {status} from Clerk", status=status, code=code)

    def create_invitation(self, email, *, public_metadata, redirect_url=None):
        self.calls.append(("invite", email, public_metadata, redirect_url))
        self._check()
        self._seq += 1
        return {"id": f"inv_{self._seq}", "email_address": email, "expires_at": None}

    def revoke_invitation(self, invitation_id):
        self.calls.append(("revoke", invitation_id))
        self._check()
        return {"id": invitation_id, "revoked": True}

    def create_user(self, email, *, first_name, last_name, password, public_metadata):
        self.calls.append(("user", email, first_name, last_name, public_metadata))
        self._check()
        self._seq += 1
        return {"id": f"user_{self._seq}"}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CLERK_JWT_KEY", JWT_SECRET)
    monkeypatch.setenv("CLERK_JWT_ALGORITHMS", "HS256")
    monkeypatch.setenv("CLERK_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setenv("MODASH_REQUEST_DELAY_MS", "0")
    monkeypatch.setenv("PAYMENT_ENCRYPTION_KEY", Fernet.generate_key().decode())
    monkeypatch.setenv("APP_URL", "https://app.example.com")
    for k in ("REDIS_URL", "MODASH_API_KEY", "CLERK_JWKS_URL", "CLERK_SECRET_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    app.extensions["modash_client"] = FakeModash()
    app.extensions["clerk_client"] = FakeClerk()
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture()
def modash(app):
    return app.extensions["modash_client"]


@pytest.fixture()
def clerk(app):
    return app.extensions["clerk_client"]


@pytest.fixture()
def make_user(app):
    """make_user(email, role) -> user id; the Clerk id is "clerk_<local part>"."""

    def _make(email: str, role: str, *, onboarded: bool = True, active: bool = True) -> str:
        with session_scope(app) as s:
            u = User(email=email, role=role, clerk_id="clerk_" + email.split("@")[0], is_active=active)
            u.profile = UserProfile(first_name=email.split("@")[0].title(), is_onboarded=onboarded)
            s.add(u)
            s.flush()
            return u.id

    return _make


def auth_headers(email: str) -> dict[str, str]:
    token = jwt.encode({"sub": "clerk_" + email.split("@")[0]}, JWT_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def as_user():
    return auth_headers


@pytest.fixture()
def staff(make_user):
    make_user("staff@example.com", "STAFF")
    return auth_headers("staff@example.com")


@pytest.fixture()
def admin(make_user):
    make_user("admin@example.com", "ADMIN")
    return auth_headers("admin@example.com")
