from __future__ import annotations
from datetime import datetime, timedelta
import csv
import hmac
import io

from flask import Blueprint, Response, current_app, jsonify, request, session
from flask_login import current_user, login_required, login_user, logout_user

from auth import AdminUser
from models import ClientOrganization, SUBSCRIPTION_TIERS, database_status, db, organization_stats

admin_bp = Blueprint("admin_api", __name__, url_prefix="/admin")

EXPORT_COLUMNS = (
    "id", "tenantId", "organizationName", "domain", "subscriptionTier",
    "isActive", "userCount", "lastActiveAt", "createdAt", "updatedAt",
)

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _credentials_ok(username: str, password: str) -> bool:
    cfg = current_app.config
    expected_pw = cfg.get("ADMIN_PASSWORD") or ""
    if not expected_pw:
        # no password configured: dashboard stays locked
        return False
    user_ok = hmac.compare_digest((username or "").encode(), (cfg.get("ADMIN_USERNAME") or "").encode())
    pw_ok = hmac.compare_digest((password or "").encode(), expected_pw.encode())
    return user_ok and pw_ok


def _usage_by_day(days: int):
    """Organizations active per UTC day over the last `days` days (from last_active_at)."""
    since = datetime.utcnow() - timedelta(days=days)
    rows = ClientOrganization.query.filter(ClientOrganization.last_active_at >= since).all()
    buckets = {}
    for org in rows:
        key = org.last_active_at.date().isoformat()
        buckets[key] = buckets.get(key, 0) + 1
    return [{"date": d, "activeOrganizations": buckets[d]} for d in sorted(buckets)]


# ─────────────────────────────────────────────────────────────────────────────
# Session
# ─────────────────────────────────────────────────────────────────────────────
@admin_bp.post("/login")
def admin_login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    if not _credentials_ok(username, data.get("password") or ""):
        current_app.logger.warning("Admin login failed for %r", username)
        return jsonify({"error": "Invalid credentials"}), 401

    session.permanent = True  # expires after ADMIN_SESSION_MINUTES
    login_user(AdminUser(username))
    current_app.logger.info("Admin %s logged in", username)
    return jsonify({
        "success": True,
        "username": username,
        "expiresInMinutes": int(current_app.config.get("ADMIN_SESSION_MINUTES", 30)),
    })


@admin_bp.post("/logout")
def admin_logout():
    logout_user()
    return jsonify({"success": True, "message": "Logged out"})


# ─────────────────────────────────────────────────────────────────────────────
# Dashboard
# ─────────────────────────────────────────────────────────────────────────────
@admin_bp.get("")
@admin_bp.get("/")
@login_required
def dashboard():
    tier = (request.args.get("tier") or "").strip().lower()
    q = ClientOrganization.query
    if tier:
        if tier not in SUBSCRIPTION_TIERS:
            return jsonify({"error": "Invalid tier", "message": f"tier must be one of {', '.join(SUBSCRIPTION_TIERS)}"}), 400
        q = q.filter_by(subscription_tier=tier)

    orgs = q.order_by(ClientOrganization.last_active_at.desc().nullslast(), ClientOrganization.id.desc()).all()
    return jsonify({
        "success": True,
        "admin": current_user.id,
        "organizations": [o.as_dict() for o in orgs],
        "stats": organization_stats(),
    })


@admin_bp.get("/usage")
@login_required
def usage():
    try:
        days = max(1, min(365, int(request.args.get("days") or 30)))
    except ValueError:
        return jsonify({"error": "Invalid request", "message": "days must be an integer"}), 400
    return jsonify({"success": True, "days": days, "usage": _usage_by_day(days), "stats": organization_stats()})


@admin_bp.get("/export")
@login_required
def export_csv():
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for org in ClientOrganization.query.order_by(ClientOrganization.id).all():
        writer.writerow(org.as_dict())

    filename = f"organizations-{datetime.utcnow():%Y%m%d}.csv"
    current_app.logger.info("Admin %s exported organizations", current_user.id)
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@admin_bp.get("/status")
@login_required
def status():
    return jsonify({
        "success": True,
        "database": database_status(),
        "organizations": ClientOrganization.query.count(),
        "sessionMinutes": int(current_app.config.get("ADMIN_SESSION_MINUTES", 30)),
        "timestamp": datetime.utcnow().isoformat() + "Z",
    })


@admin_bp.get("/org/<int:org_id>")
@login_required
def organization_detail(org_id: int):
    org = db.session.get(ClientOrganization, org_id)
    if not org:
        return jsonify({"error": "Not found", "message": "Organization not found"}), 404
    return jsonify({"success": True, "organization": org.as_dict()})
