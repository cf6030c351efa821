# auth.py
import secrets

from flask import Blueprint, current_app, jsonify, redirect, request, session
from flask_login import LoginManager, UserMixin
from msal import ConfidentialClientApplication

import graph_client
from guards import ACCESS_TOKEN_COOKIE, USER_DATA_COOKIE, load_user_cookie, user_serializer
from models import ClientOrganization

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")
login_manager = LoginManager()

# API: return JSON instead of redirecting to a login view
login_manager.login_view = None

MS_OAUTH_STATE = "ms_oauth_state"


# ------------------------- admin identity -------------------------

class AdminUser(UserMixin):
    """The single configured dashboard operator (ADMIN_USERNAME)."""

    def __init__(self, username: str):
        self.id = username


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify({"error": "Admin authentication required"}), 401


@login_manager.user_loader
def load_admin(user_id: str):
    if user_id and user_id == current_app.config.get("ADMIN_USERNAME"):
        return AdminUser(user_id)
    return None


# ------------------------- helpers -------------------------

def _ms_app() -> ConfidentialClientApplication:
    cfg = current_app.config
    if not cfg.get("MS_CLIENT_ID") or not cfg.get("MS_CLIENT_SECRET"):
        raise RuntimeError("MS_CLIENT_ID / MS_CLIENT_SECRET not configured")
    return ConfidentialClientApplication(
        client_id=cfg["MS_CLIENT_ID"],
        client_credential=cfg["MS_CLIENT_SECRET"],
        authority=f"https://login.microsoftonline.com/{cfg.get('MS_TENANT_ID') or 'common'}",
    )


def _cookie_kwargs() -> dict:
    return {
        "httponly": True,
        "secure": bool(current_app.config.get("COOKIE_SECURE")),
        "samesite": "Lax",
        "max_age": int(current_app.config.get("AUTH_COOKIE_MAX_AGE", 86400)),
    }


def _domain_of(email: str):
    return email.split("@", 1)[1].lower() if email and "@" in email else None


def _resolve_organization(ms_token: str, tenant_id: str, username: str) -> dict:
    """Tenant name/domain from Graph; the sign-in domain stands in if Graph refuses."""
    domain = _domain_of(username)
    try:
        org = graph_client.get_organization(ms_token)
    except graph_client.GraphAPIError as e:
        current_app.logger.warning("Organization lookup failed for tenant %s: %s", tenant_id, e)
        org = {}
    return {
        "name": org.get("displayName") or domain or tenant_id,
        "domain": org.get("domain") or domain,
    }


# ------------------------- routes -------------------------

@auth_bp.get("/login")
def login():
    try:
        app = _ms_app()
    except RuntimeError as e:
        current_app.logger.error("Auth misconfigured: %s", e)
        return jsonify({"error": "Authentication failed", "message": str(e)}), 500

    state = secrets.token_urlsafe(16)
    session[MS_OAUTH_STATE] = state
    url = app.get_authorization_request_url(
        scopes=current_app.config["MS_SCOPES"],
        redirect_uri=current_app.config["MS_REDIRECT_URI"],
        state=state,
    )
    return redirect(url)


@auth_bp.get("/callback")
def callback():
    code = request.args.get("code")
    if not code:
        return jsonify({"error": "Authorization code not provided"}), 400

    expected = session.pop(MS_OAUTH_STATE, None)
    if not expected or request.args.get("state") != expected:
        return jsonify({"error": "State mismatch or expired"}), 400

    result = _ms_app().acquire_token_by_authorization_code(
        code,
        scopes=current_app.config["MS_SCOPES"],
        redirect_uri=current_app.config["MS_REDIRECT_URI"],
    )
    if "access_token" not in result:
        current_app.logger.warning("Token exchange failed: %s", result.get("error"))
        return jsonify({
            "error": "Token exchange failed",
            "message": result.get("error_description", "Microsoft auth failed"),
        }), 400

    claims = result.get("id_token_claims") or {}
    username = claims.get("preferred_username") or claims.get("upn") or claims.get("email")
    tenant_id = claims.get("tid")
    if not username or not tenant_id:
        return jsonify({"error": "Token exchange failed", "message": "ID token lacks user or tenant"}), 400

    access_token = result["access_token"]
    org_info = _resolve_organization(access_token, tenant_id, username)
    org = ClientOrganization.record_login(tenant_id, org_info["name"], org_info["domain"])

    user = {
        "id": claims.get("oid"),
        "username": username,
        "name": claims.get("name"),
        "tenantId": tenant_id,
        "organizationId": org.id,
        "organizationName": org.organization_name,
    }
    current_app.logger.info("User authenticated: %s (tenant %s)", username, tenant_id)

    resp = redirect("/dashboard")
    resp.set_cookie(ACCESS_TOKEN_COOKIE, access_token, **_cookie_kwargs())
    resp.set_cookie(USER_DATA_COOKIE, user_serializer().dumps(user), **_cookie_kwargs())
    return resp


@auth_bp.get("/user")
def current_ms_user():
    user = load_user_cookie()
    if not user or not request.cookies.get(ACCESS_TOKEN_COOKIE):
        return jsonify({"error": "Not authenticated"}), 401
    return jsonify({"user": user, "authenticated": True})


@auth_bp.post("/logout")
def logout():
    resp = jsonify({"success": True, "message": "Logged out"})
    resp.delete_cookie(ACCESS_TOKEN_COOKIE)
    resp.delete_cookie(USER_DATA_COOKIE)
    return resp
