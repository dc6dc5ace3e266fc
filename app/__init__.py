from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from app.beneficio import beneficio_bp
from app.core.auth import auth_bp
from app.core.config import Config
from app.core.errors import DomainError
from app.core.extensions import db, login_manager, migrate
from app.core.models import Unidade, User, seed_demo_data
from app.core.tenancy import load_unit_context


def create_app(config_object: type[Config] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.before_request(load_unit_context)

    app.register_blueprint(auth_bp)
    app.register_blueprint(beneficio_bp)

    register_cli(app)
    register_error_handlers(app)
    return app


def configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger("app").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s] %(message)s")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def domain_error(error: DomainError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValueError)
    def value_error(error: ValueError):
        return jsonify({"error": "validation_error", "message": str(error), "details": {}}), 422

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        code = (error.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": error.description, "details": {}}), error.code


def register_cli(app: Flask) -> None:
    @app.cli.command("seed-demo")
    @click.option("--reset", is_flag=True, help="Delete existing data before seed.")
    def seed_demo(reset: bool) -> None:
        """Seed demo units, users, benefit types and citizens."""
        if reset:
            db.drop_all()
            db.create_all()
        if not Unidade.query.first():
            seed_demo_data(db.session)
            click.echo("Demo data seeded.")
        else:
            click.echo("Seed skipped: existing units found.")

    @app.cli.command("cessation-sweep-orphans")
    @click.option("--dry-run", is_flag=True, help="Only list files without removing them.")
    def cessation_sweep_orphans(dry_run: bool) -> None:
        """Remove stored cessation documents that no database row references."""
        from app.beneficio.cessation import sweep_orphan_blobs

        orphans = sweep_orphan_blobs(dry_run=dry_run)
        for path in orphans:
            click.echo(path)
        click.echo(f"orphans={len(orphans)} removed={0 if dry_run else len(orphans)}")


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    return db.session.get(User, int(user_id))
