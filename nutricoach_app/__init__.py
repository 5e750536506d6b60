# nutricoach_app/__init__.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import os

from flask import Flask
from config import Config, TestingConfig, StagingConfig, ProductionConfig
from .blueprints.admin import admin_bp
from .extensions import db, scheduler, init_extensions, register_cli
from .blueprints.checkout import bp as checkout_bp
from .blueprints.webhooks import bp as webhooks_bp
from .services.jobs import register_jobs
from datetime import datetime

def create_app(test_config: dict | None = None) -> Flask:


    app = Flask(__name__, template_folder="../templates")
    app_env = os.getenv("APP_ENV", "").lower()

    if app_env == "testing":
        app.config.from_object(TestingConfig)
    elif app_env == "staging":
        app.config.from_object(StagingConfig)
    elif app_env == "production":
        app.config.from_object(ProductionConfig)
    else:
        app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Extensões (DB/Bcrypt/Migrate)
    init_extensions(app)
    app.config["STARTED_AT"] = datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S UTC")

    # Blueprints
    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(admin_bp, url_prefix="/admin")
    # CLI (ex.: flask init-db, flask repair-provisioning)
    register_cli(app)

    # Scheduler (varredura de pendentes + aviso de vencimento)
    if not app.config.get("TESTING") and os.getenv("DISABLE_SCHEDULER") != "1":
        register_jobs(app)
        if not scheduler.running:
            scheduler.start()

    return app
