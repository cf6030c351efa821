# app.py
import logging
from datetime import datetime, timedelta

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS

from admin_api import admin_bp
from auth import auth_bp, login_manager
from claude_api import AIServiceError
from config import Config
from graph_client import GraphAPIError
from guards import ParamError
from models import database_status, db
from routes.calendar import calendar_bp
from routes.emails import emails_bp
from routes.settings import settings_bp
from time_windows import TimeWindowError

# ─────────────────────────────────────────────────────────────────────────────
# Env & logging
# ─────────────────────────────────────────────────────────────────────────────
load_dotenv()
logging.basicConfig(level=logging.INFO)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(TimeWindowError)
    def _time_window_error(e):
        return jsonify({"error": "Invalid time window", "message": str(e)}), 400

    @app.errorhandler(ParamError)
    def _param_error(e):
        return jsonify({"error": "Invalid request", "message": str(e)}), 400

    @app.errorhandler(GraphAPIError)
    def _graph_error(e):
        if e.status == 401:
            return jsonify({"error": "Authentication expired", "message": "Please sign in again"}), 401
        app.logger.error("Graph call failed: %s", e)
        return jsonify({"error": "Microsoft Graph request failed", "message": str(e)}), 502

    @app.errorhandler(AIServiceError)
    def _ai_error(e):
        app.logger.error("AI call failed: %s", e)
        return jsonify({"error": "AI processing failed", "message": str(e)}), 502

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify({"error": "Not found", "message": "Endpoint not found"}), 404


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.permanent_session_lifetime = timedelta(minutes=int(app.config.get("ADMIN_SESSION_MINUTES", 30)))
    app.config["SESSION_COOKIE_SECURE"] = bool(app.config.get("COOKIE_SECURE"))
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"

    CORS(app, supports_credentials=True, origins=app.config.get("CORS_ORIGINS") or "*")

    # DB + Auth
    db.init_app(app)
    login_manager.init_app(app)
    with app.app_context():
        db.create_all()

    # Blueprints
    app.register_blueprint(auth_bp)       # /auth/*
    app.register_blueprint(emails_bp)     # /api/emails/*
    app.register_blueprint(calendar_bp)   # /api/calendar/*
    app.register_blueprint(settings_bp)   # /api/settings/*
    app.register_blueprint(admin_bp)      # /admin/*

    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "timeZone": app.config["APP_TZ"],
            "database": database_status(),
        })

    app.logger.info("App ready (default time zone %s)", app.config["APP_TZ"])
    return app


if __name__ == "__main__":
    create_app().run(debug=True)
