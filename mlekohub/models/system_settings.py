"""
System Settings Model - globalna key/value podesavanja engine-a.

Vrednosti se citaju jednom po operaciji kroz settings_service.load_settings()
i prosledjuju eksplicitno, nikad kao globalno stanje.
"""

from datetime import datetime
from ..extensions import db


class SystemSetting(db.Model):
    """Jedno podesavanje (npr. 'tax_percentage' -> {"gst": 5})."""
    __tablename__ = 'system_setting'

    id = db.Column(db.Integer, primary_key=True)

    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.JSON, nullable=True)
    category = db.Column(db.String(50))  # 'adhoc', 'billing', 'subscription'

    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    def __repr__(self):
        return f'<SystemSetting {self.key}={self.value}>'
