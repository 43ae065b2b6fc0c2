from __future__ import annotations

from ..extensions import db
from dukapos.time_utils import to_utc_z


class Business(db.Model):
    """
    Multi-tenant root: every tenant is a Business.

    All products, sales, credit accounts and users belong to exactly one
    business. No data may cross business boundaries.

    DESIGN:
    - business_id is carried on every tenant-owned table (no joins needed to scope)
    - timezone defines the business's calendar day for dashboards
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # IANA zone name, e.g. "Africa/Nairobi"
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
