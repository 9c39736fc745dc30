from __future__ import annotations

from ..extensions import db
from barpos.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_BARTENDER = "bartender"

VALID_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_BARTENDER)

# Roles whose PIN can authorize privileged voids
AUTHORIZING_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER})


class User(db.Model):
    """
    Terminal user identified by a 4-digit PIN.

    pin_hash is either an unsalted SHA-256 hex digest (legacy terminals)
    or a bcrypt hash; see services/auth_service.py.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_BARTENDER)

    pin_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        # pin_hash never leaves the server
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
