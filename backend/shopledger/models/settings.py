from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

DEFAULT_SETTINGS_ID = "default"


class SystemSettings(db.Model):
    """
    Singleton row (id='default') of shop-wide switches.

    Ledger services never read this table themselves; routes load it once per
    request and pass the values into the operation.
    """
    __tablename__ = "system_settings"

    id = db.Column(db.String(32), primary_key=True, default=DEFAULT_SETTINGS_ID)
    allow_negative_stock = db.Column(db.Boolean, nullable=False, default=False)

    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "allow_negative_stock": self.allow_negative_stock,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }
