from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.stride.constants import (
    ROLE_ADMIN,
    ROLE_BRAND,
    ROLE_INFLUENCER_PARTNERED,
    ROLE_INFLUENCER_SIGNED,
    ROLE_STAFF,
)
from app.stride.models import User

ROLE_HIERARCHY: dict[str, int] = {
    ROLE_BRAND: 1,
    ROLE_INFLUENCER_PARTNERED: 2,
    ROLE_INFLUENCER_SIGNED: 3,
    ROLE_STAFF: 4,
    ROLE_ADMIN: 5,
}

PORTAL_ROLES: dict[str, frozenset[str]] = {
    "brand": frozenset({ROLE_BRAND}),
    "influencer": frozenset({ROLE_INFLUENCER_SIGNED, ROLE_INFLUENCER_PARTNERED}),
    "talent": frozenset({ROLE_INFLUENCER_SIGNED}),
    "staff": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "admin": frozenset({ROLE_ADMIN}),
}

PERMISSIONS: dict[str, frozenset[str]] = {
    # User management
    "CREATE_USERS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "EDIT_ALL_USERS": frozenset({ROLE_ADMIN}),
    "DELETE_USERS": frozenset({ROLE_ADMIN}),
    # Influencer management
    "VIEW_ALL_INFLUENCERS": frozenset({ROLE_BRAND, ROLE_STAFF, ROLE_ADMIN}),
    "EDIT_INFLUENCER_TAGS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "SCRAPE_INFLUENCERS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    # Campaign management
    "CREATE_CAMPAIGNS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "ASSIGN_CAMPAIGNS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "VIEW_ALL_CAMPAIGNS": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    # Financial
    "VIEW_FINANCIAL_DATA": frozenset({ROLE_STAFF, ROLE_ADMIN}),
    "EDIT_FINANCIAL_DATA": frozenset({ROLE_ADMIN}),
    # System
    "MANAGE_SYSTEM_SETTINGS": frozenset({ROLE_ADMIN}),
    "VIEW_AUDIT_LOGS": frozenset({ROLE_ADMIN}),
}

PORTAL_HOME: dict[str, str] = {
    ROLE_BRAND: "/brand",
    ROLE_INFLUENCER_SIGNED: "/influencer",
    ROLE_INFLUENCER_PARTNERED: "/influencer",
    ROLE_STAFF: "/staff",
    ROLE_ADMIN: "/admin",
}


def has_role(user: User | None, required_role: str) -> bool:
    if not user or not user.is_active:
        return False
    return ROLE_HIERARCHY.get(user.role, 0) >= ROLE_HIERARCHY.get(required_role, 99)


def can_access_portal(user: User | None, portal: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.role in PORTAL_ROLES.get(portal, frozenset())


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    return user.role in PERMISSIONS.get(permission_key, frozenset())


def role_redirect_path(role: str | None) -> str:
    return PORTAL_HOME.get(role or "", "/sign-in")


def is_staff(user: User | None) -> bool:
    return can_access_portal(user, "staff")


def _unauthorized():
    return jsonify({"error": "Authentication required"}), 401


def _forbidden(missing: str):
    g.missing_permission = missing
    return jsonify({"error": "Forbidden", "missing_permission": missing}), 403


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return _unauthorized()
        return fn(*args, **kwargs)

    return wrapped


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> 401; authenticated but unauthorized -> 403
            if not user or not user.is_active:
                return _unauthorized()
            if not user_has_permission(user, permission_key):
                return _forbidden(permission_key)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_portal(*portals: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                return _unauthorized()
            if not any(can_access_portal(user, p) for p in portals):
                return _forbidden(f"portal:{'|'.join(portals)}")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
