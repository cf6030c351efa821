# models.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func, text

db = SQLAlchemy()

SUBSCRIPTION_TIERS = ("free", "basic", "premium")


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


# -------------------------
# Client organizations (one row per Azure AD tenant)
# -------------------------
class ClientOrganization(db.Model):
    __tablename__ = "client_organizations"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.String(64), unique=True, index=True, nullable=False)
    organization_name = db.Column(db.String(255), nullable=False)
    domain = db.Column(db.String(255), nullable=True)

    # "free" | "basic" | "premium"
    subscription_tier = db.Column(db.String(16), default="free", nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    settings = db.Column(db.JSON, default=dict, nullable=False)

    # Counts logins, not distinct users (what the dashboard reports)
    user_count = db.Column(db.Integer, default=0, nullable=False)
    last_active_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def record_login(cls, tenant_id: str, organization_name: str, domain: Optional[str] = None) -> "ClientOrganization":
        """Create the tenant's row on first login, then bump its login counter."""
        org = cls.query.filter_by(tenant_id=tenant_id).first()
        now = datetime.utcnow()
        if not org:
            org = cls(
                tenant_id=tenant_id,
                organization_name=organization_name or domain or tenant_id,
                domain=domain,
                subscription_tier="free",
                is_active=True,
                settings={},
                user_count=0,
            )
            db.session.add(org)
        elif organization_name and org.organization_name != organization_name:
            org.organization_name = organization_name
        if domain and not org.domain:
            org.domain = domain
        org.user_count = (org.user_count or 0) + 1
        org.last_active_at = now
        db.session.commit()
        return org

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "organizationName": self.organization_name,
            "domain": self.domain,
            "subscriptionTier": self.subscription_tier,
            "isActive": bool(self.is_active),
            "settings": self.settings or {},
            "userCount": self.user_count or 0,
            "lastActiveAt": _iso(self.last_active_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


# -------------------------
# Per-user settings (signature + preferences), scoped by tenant
# -------------------------
class UserSettings(db.Model):
    __tablename__ = "user_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_email = db.Column(db.String(255), index=True, nullable=False)
    tenant_id = db.Column(db.String(64), index=True, nullable=False)
    user_name = db.Column(db.String(255), nullable=True)

    signature = db.Column(db.JSON, default=dict, nullable=False)
    # e.g. {"timezone": "America/Chicago", "tone": "friendly"}
    preferences = db.Column(db.JSON, default=dict, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    last_active_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_email", "tenant_id", name="unique_user_per_tenant"),
    )

    @classmethod
    def find_by_user_email(cls, user_email: str, tenant_id: Optional[str] = None) -> Optional["UserSettings"]:
        q = cls.query.filter_by(user_email=user_email, is_active=True)
        if tenant_id:
            q = q.filter_by(tenant_id=tenant_id)
        return q.first()

    @classmethod
    def get_or_create(cls, email: str, name: Optional[str], tenant_id: str) -> "UserSettings":
        row = cls.query.filter_by(user_email=email, tenant_id=tenant_id).first()
        now = datetime.utcnow()
        if not row:
            row = cls(
                user_email=email,
                user_name=name,
                tenant_id=tenant_id,
                signature={},
                preferences={},
                is_active=True,
                last_active_at=now,
            )
            db.session.add(row)
            db.session.commit()
        elif name and row.user_name != name:
            row.user_name = name
            row.last_active_at = now
            db.session.commit()
        return row

    def update_signature(self, signature: Dict[str, Any]) -> None:
        self.signature = signature or {}
        self.last_active_at = datetime.utcnow()
        db.session.commit()

    def update_preferences(self, signature: Optional[Dict[str, Any]] = None,
                           preferences: Optional[Dict[str, Any]] = None) -> None:
        if signature is not None:
            self.signature = signature
        if preferences is not None:
            self.preferences = preferences
        self.last_active_at = datetime.utcnow()
        db.session.commit()


# -------------------------
# Status / statistics (health + admin)
# -------------------------
def database_status() -> Dict[str, Any]:
    dialect = db.engine.dialect.name
    try:
        db.session.execute(text("SELECT 1"))
        connected = True
        error = None
    except Exception as e:  # reported, not raised: /health must answer
        db.session.rollback()
        connected = False
        error = str(e)
    mode = "production" if dialect == "postgresql" else "development" if dialect == "sqlite" else dialect
    return {"available": connected, "dialect": dialect, "mode": mode, "error": error}


def organization_stats(now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    last_month = now - timedelta(days=30)
    last_week = now - timedelta(days=7)
    q = ClientOrganization.query

    by_tier = {tier: 0 for tier in SUBSCRIPTION_TIERS}
    for tier, count in db.session.query(ClientOrganization.subscription_tier, func.count()).group_by(
        ClientOrganization.subscription_tier
    ):
        by_tier[tier] = count

    total = q.count()
    active = q.filter(ClientOrganization.is_active.is_(True)).count()
    return {
        "totalOrganizations": total,
        "activeThisMonth": q.filter(ClientOrganization.updated_at > last_month).count(),
        "newThisWeek": q.filter(ClientOrganization.created_at > last_week).count(),
        "recentActivity": q.filter(ClientOrganization.updated_at > last_week).count(),
        "totalLogins": db.session.query(func.coalesce(func.sum(ClientOrganization.user_count), 0)).scalar(),
        "byTier": by_tier,
        "activeStatus": {"active": active, "inactive": total - active},
    }
