from __future__ import annotations

import os
from flask import Flask
from flask_wtf.csrf import CSRFError

from .extensions import db, login_manager, migrate, csrf
from .logging_setup import setup_logging
from .policies import json_error
from .views.auth import auth_bp
from .views.draws import draws_bp


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///giftdraw.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Participant insert retries during draw creation
    app.config["DRAW_CREATE_MAX_ATTEMPTS"] = int(os.environ.get("DRAW_CREATE_MAX_ATTEMPTS", 10))
    app.config["DRAW_CREATE_BACKOFF_BASE"] = float(os.environ.get("DRAW_CREATE_BACKOFF_BASE", 1.0))
    app.config["DRAW_CREATE_BACKOFF_MAX"] = float(os.environ.get("DRAW_CREATE_BACKOFF_MAX", 5.0))

    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    app.config["LOG_FILE"] = os.environ.get("LOG_FILE") or None

    if test_config:
        app.config.update(test_config)

    setup_logging(app.config["LOG_LEVEL"], app.config["LOG_FILE"])

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(draws_bp)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return json_error(400, "Bad Request", e.description)

    return app
