from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z


class User(db.Model):
    """
    Staff account used for attribution and capability checks.

    Credentials live with the authenticating gateway; this table only knows
    who the actor is, which branch they belong to and which role they hold.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    # Home branch (nullable for head-office users)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    # super_admin, branch_admin, cashier (see permissions.DEFAULT_ROLE_PERMISSIONS)
    role = db.Column(db.String(32), nullable=False, default="cashier")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    branch = db.relationship("Branch", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "email": self.email,
            "branch_id": self.branch_id,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
