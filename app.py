import logging

from flask import Flask, request, g, jsonify
from config import Config
from routes import health_bp, access_bp, reservations_bp, chalans_bp, audit_bp

from models import db
from flask_migrate import Migrate
from services.errors import AuthorizationError, DomainError
from utils.audit import log_event
from utils.auth_context import load_current_user
from security.csrf import require_csrf

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(access_bp)
    app.register_blueprint(reservations_bp)
    app.register_blueprint(chalans_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.errorhandler(DomainError)
    def _domain_error(exc):
        user = getattr(g, "user", None)
        if isinstance(exc, AuthorizationError) and user is not None:
            log_event(
                "ACCESS_DENIED",
                user_id=user.id,
                company_id=user.company_id,
                metadata={"path": request.path, "method": request.method, "reason": exc.message},
            )
        elif exc.status_code >= 500:
            logger.error("Unhandled domain error on %s %s: %s", request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.before_request
    def _load_user():
        load_current_user()

    CSRF_EXEMPT_PATHS = {
        "/health",
    }

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.company import Company
from models.user import User, UserModuleAccess
from security.permissions import MODULE_SECTIONS
from security.session import create_session

USER_ROLES = ("admin", "gst", "non_gst", "account", "custom")


def register_cli(app):
    @app.cli.command("create-company")
    @click.argument("name")
    def create_company(name):
        """Create a tenant company."""
        company = Company.query.filter_by(name=name.strip()).first()
        if company:
            print(f"Company already exists (id={company.id})")
            return
        company = Company(name=name.strip())
        db.session.add(company)
        db.session.commit()
        print(f"Company {company.name} created (id={company.id})")

    @app.cli.command("create-user")
    @click.argument("company_id", type=int)
    @click.argument("username")
    @click.option("--role", type=click.Choice(USER_ROLES), default="non_gst", show_default=True)
    @click.option("--full-name", default=None)
    def create_user(company_id, username, role, full_name):
        """Create a user in COMPANY_ID with a fixed role (or custom)."""
        if not db.session.get(Company, company_id):
            print("Company not found")
            return
        if User.query.filter_by(username=username.strip().lower()).first():
            print("Username already taken")
            return
        user = User(company_id=company_id, username=username.strip().lower(), role=role, full_name=full_name)
        db.session.add(user)
        db.session.commit()
        print(f"{user.username} created with role {role} (id={user.id})")

    @app.cli.command("grant-access")
    @click.argument("username")
    @click.argument("module")
    @click.option("--actions", default="view", show_default=True,
                  help="Comma separated: view,create,edit,delete")
    def grant_access(username, module, actions):
        """Grant a custom-role user MODULE (e.g. chalan) on every section behind it."""
        user = User.query.filter_by(username=username.strip().lower()).first()
        if not user:
            print("User not found")
            return
        if module not in MODULE_SECTIONS:
            print(f"Unknown module. Choose from: {', '.join(MODULE_SECTIONS)}")
            return

        wanted = {a.strip() for a in actions.split(",") if a.strip()}
        for grant_module, section in MODULE_SECTIONS[module]:
            grant = UserModuleAccess.query.filter_by(user_id=user.id, module=grant_module, section=section).first()
            if grant is None:
                grant = UserModuleAccess(user_id=user.id, module=grant_module, section=section)
                db.session.add(grant)
            for action in ("view", "create", "edit", "delete"):
                setattr(grant, f"can_{action}", action in wanted)
        db.session.commit()
        print(f"{user.username}: {module} -> {', '.join(sorted(wanted)) or 'none'}")

    @app.cli.command("issue-token")
    @click.argument("username")
    def issue_token(username):
        """Create a session for USERNAME and print the raw cookie token."""
        user = User.query.filter_by(username=username.strip().lower(), is_active=True).first()
        if not user:
            print("User not found")
            return
        print(create_session(user.id))

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
