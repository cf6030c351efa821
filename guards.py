# guards.py
from functools import wraps
from typing import Optional

from flask import current_app, g, jsonify, request
from itsdangerous import BadSignature, URLSafeSerializer

from models import UserSettings
from time_windows import resolve_zone

ACCESS_TOKEN_COOKIE = "accessToken"
USER_DATA_COOKIE = "userData"


def user_serializer() -> URLSafeSerializer:
    # userData is readable by the server only if it was signed with our key
    return URLSafeSerializer(current_app.config["SECRET_KEY"], salt="user-data")


def load_user_cookie() -> Optional[dict]:
    raw = request.cookies.get(USER_DATA_COOKIE)
    if not raw:
        return None
    try:
        data = user_serializer().loads(raw)
    except BadSignature:
        return None
    return data if isinstance(data, dict) else None


def require_graph_auth(view):
    """
    Require the Microsoft access-token cookie plus a signed userData cookie
    carrying username + tenantId. Exposes g.ms_token and g.user.
    """
    @wraps(view)
    def wrapper(*args, **kwargs):
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            return jsonify({"error": "Authentication required"}), 401
        user = load_user_cookie()
        if not user or not user.get("tenantId") or not user.get("username"):
            return jsonify({"error": "Invalid authentication data"}), 401
        g.ms_token = token
        g.user = user
        return view(*args, **kwargs)
    return wrapper


def require_tenant(view):
    """Tenant-only check for routes that never call Graph."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = load_user_cookie()
        if not user:
            return jsonify({"error": "Authentication required"}), 401
        if not user.get("tenantId"):
            return jsonify({"error": "Tenant information missing"}), 401
        g.user = user
        return view(*args, **kwargs)
    return wrapper


class ParamError(ValueError):
    """Malformed request parameter (answered with 400)."""


def int_param(source, name: str, default: int) -> int:
    raw = source.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ParamError(f"{name} must be an integer") from None


def user_zone() -> str:
    """The caller's civil time zone: saved preference, else APP_TZ. Always resolvable."""
    zone = current_app.config["APP_TZ"]
    user = getattr(g, "user", None)
    if user:
        settings = UserSettings.find_by_user_email(user.get("username"), user.get("tenantId"))
        preferred = ((settings.preferences or {}) if settings else {}).get("timezone")
        if preferred:
            zone = preferred
    resolve_zone(zone)
    return zone
