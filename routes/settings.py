# routes/settings.py
from flask import Blueprint, current_app, g, jsonify, request

from guards import ParamError, require_tenant
from models import UserSettings
from time_windows import resolve_zone

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")

SIGNATURE_FIELDS = ("enabled", "name", "title", "company", "phone", "email", "website", "additional")
PREFERENCE_FIELDS = ("timezone", "tone")
TONES = ("professional", "friendly", "formal", "casual", "concise")


# ---- helpers ----

def _settings_row() -> UserSettings:
    return UserSettings.get_or_create(g.user["username"], g.user.get("name"), g.user["tenantId"])


def _clean_signature(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ParamError("signature must be an object")
    sig = {k: data[k] for k in SIGNATURE_FIELDS if k in data}
    for k, v in sig.items():
        if k == "enabled":
            sig[k] = bool(v)
        elif v is not None and not isinstance(v, str):
            raise ParamError(f"signature.{k} must be a string")
    return sig


def _clean_preferences(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ParamError("preferences must be an object")
    prefs = {k: data[k] for k in PREFERENCE_FIELDS if data.get(k)}
    if "timezone" in prefs:
        resolve_zone(prefs["timezone"])  # InvalidTimeZone -> 400
    if "tone" in prefs and prefs["tone"] not in TONES:
        raise ParamError(f"tone must be one of: {', '.join(TONES)}")
    return prefs


# ---- signature ----

@settings_bp.get("/signature")
@require_tenant
def get_signature():
    row = UserSettings.find_by_user_email(g.user["username"], g.user["tenantId"])
    return jsonify({"success": True, "signature": (row.signature if row else None) or {}})


@settings_bp.post("/signature")
@require_tenant
def save_signature():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid request", "message": "JSON body required"}), 400

    signature = _clean_signature(data.get("signature", data))
    row = _settings_row()
    row.update_signature(signature)
    current_app.logger.info("Signature saved for %s", g.user["username"])
    return jsonify({"success": True, "signature": row.signature})


@settings_bp.delete("/signature")
@require_tenant
def delete_signature():
    row = UserSettings.find_by_user_email(g.user["username"], g.user["tenantId"])
    if row:
        row.update_signature({})
    return jsonify({"success": True, "message": "Signature removed"})


# ---- preferences ----

@settings_bp.get("/preferences")
@require_tenant
def get_preferences():
    row = UserSettings.find_by_user_email(g.user["username"], g.user["tenantId"])
    prefs = dict((row.preferences if row else None) or {})
    prefs.setdefault("timezone", current_app.config["APP_TZ"])
    prefs.setdefault("tone", "professional")
    return jsonify({"success": True, "preferences": prefs})


@settings_bp.post("/preferences")
@require_tenant
def save_preferences():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid request", "message": "JSON body required"}), 400

    row = _settings_row()
    merged = dict(row.preferences or {})
    merged.update(_clean_preferences(data.get("preferences", data)))
    row.update_preferences(preferences=merged)
    return jsonify({"success": True, "preferences": merged})
