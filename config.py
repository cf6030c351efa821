import os


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")

    # Database (organizations + per-user settings)
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///email_agent.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Microsoft identity / Graph (delegated)
    MS_CLIENT_ID = os.getenv("MS_CLIENT_ID", "")
    MS_CLIENT_SECRET = os.getenv("MS_CLIENT_SECRET", "")
    MS_TENANT_ID = os.getenv("MS_TENANT_ID", "common")
    MS_REDIRECT_URI = os.getenv("MS_REDIRECT_URI", "http://localhost:5000/auth/callback")
    # Do NOT add openid/profile/offline_access here; MSAL adds them itself.
    MS_SCOPES = os.getenv(
        "MS_SCOPES",
        "User.Read Mail.ReadWrite Mail.Send Calendars.ReadWrite",
    ).split()
    GRAPH_TIMEOUT = int(os.getenv("GRAPH_TIMEOUT", "20"))

    # Claude
    ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-20250514")

    # Default civil time zone; users may override it in their preferences
    APP_TZ = os.getenv("APP_TZ", "America/New_York")

    # Cookies
    COOKIE_SECURE = _flag("COOKIE_SECURE")
    AUTH_COOKIE_MAX_AGE = int(os.getenv("AUTH_COOKIE_MAX_AGE", str(24 * 60 * 60)))
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    # Admin dashboard
    ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")
    ADMIN_SESSION_MINUTES = int(os.getenv("ADMIN_SESSION_MINUTES", "30"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MS_CLIENT_ID = "test-client-id"
    MS_CLIENT_SECRET = "test-client-secret"
    MS_TENANT_ID = "common"
    MS_REDIRECT_URI = "http://localhost/auth/callback"
    ANTHROPIC_API_KEY = "test-anthropic-key"
    APP_TZ = "America/New_York"
    COOKIE_SECURE = False
    ADMIN_USERNAME = "admin"
    ADMIN_PASSWORD = "test-admin-password"
