import logging
import os

from dotenv import load_dotenv
from flask import Flask, g, request

from app.stride.auth import bp as auth_bp, load_current_user
from app.stride.cache import init_cache
from app.stride.config import load_config
from app.stride.db import init_db, teardown_db_session
from app.stride.errors import register_error_handlers
from app.stride.modules.brands.api import bp as brands_bp
from app.stride.modules.campaigns.api import bp as campaigns_bp
from app.stride.modules.content.api import bp as content_bp
from app.stride.modules.influencers.api import bp as influencers_bp
from app.stride.modules.invitations.api import bp as invitations_bp
from app.stride.modules.invitations.clerk_client import client_from_config as clerk_client_from_config
from app.stride.modules.invoices.api import bp as invoices_bp
from app.stride.modules.modash.api import bp as modash_bp
from app.stride.modules.modash.client import client_from_config
from app.stride.modules.onboarding.api import bp as onboarding_bp
from app.stride.modules.payments.api import bp as payments_bp
from app.stride.modules.payments.crypto import cipher_from_config
from app.stride.modules.quotations.api import bp as quotations_bp
from app.stride.modules.shortlists.api import bp as shortlists_bp
from app.stride.modules.templates.api import bp as templates_bp
from app.stride.modules.users.api import bp as users_bp
from app.stride.routes import bp as routes_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("CLERK_JWT_KEY") and not app.config.get("CLERK_JWKS_URL"):
            raise RuntimeError("CLERK_JWT_KEY or CLERK_JWKS_URL is required in production.")
        if not app.config.get("CLERK_WEBHOOK_SECRET"):
            app.logger.error("CLERK_WEBHOOK_SECRET is not set; Clerk webhooks will be rejected.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    init_cache(app)
    app.extensions["modash_client"] = client_from_config(app.config)
    if not app.config.get("MODASH_API_KEY"):
        app.logger.warning("MODASH_API_KEY is not set; Modash calls will fail until it is configured.")
    app.extensions["clerk_client"] = clerk_client_from_config(app.config)
    if not app.config.get("CLERK_SECRET_KEY"):
        app.logger.warning("CLERK_SECRET_KEY is not set; staff invitations are disabled.")
    app.extensions["payment_cipher"] = cipher_from_config(app.config)
    if app.extensions["payment_cipher"] is None:
        app.logger.warning("PAYMENT_ENCRYPTION_KEY is not set; payment details cannot be stored.")

    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(users_bp, url_prefix="/api")
    app.register_blueprint(influencers_bp, url_prefix="/api")
    app.register_blueprint(brands_bp, url_prefix="/api")
    app.register_blueprint(campaigns_bp, url_prefix="/api")
    app.register_blueprint(quotations_bp, url_prefix="/api")
    app.register_blueprint(shortlists_bp, url_prefix="/api")
    app.register_blueprint(invoices_bp, url_prefix="/api")
    app.register_blueprint(modash_bp, url_prefix="/api")
    app.register_blueprint(content_bp, url_prefix="/api")
    app.register_blueprint(templates_bp, url_prefix="/api")
    app.register_blueprint(payments_bp, url_prefix="/api")
    app.register_blueprint(invitations_bp, url_prefix="/api")
    app.register_blueprint(onboarding_bp, url_prefix="/api")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _log_forbidden(response):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if response.status_code == 403 and missing:
            app.logger.warning(
                "Forbidden: %s %s missing_permission=%s request_id=%s",
                request.method,
                request.path,
                missing,
                getattr(g, "request_id", None),
            )
        return response

    # Startup logging
    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
