"""
Subscription modeli - pretplate na redovnu dostavu.

Subscription - pretplata (proizvod, kolicina, ucestalost, period)
SubscriptionHistory - log svake promene pretplate (IMMUTABLE)
Vacation - odmor kupca (dani bez dostave za jednu pretplatu)
Holiday - globalni neradni dan (admin)
"""

import enum
from datetime import datetime
from ..extensions import db


class SubscriptionFrequency(enum.Enum):
    """Ucestalost dostave."""
    DAILY = 'DAILY'
    ALTERNATE = 'ALTERNATE'   # Svaki drugi dan, racunato od start_date
    WEEKDAYS = 'WEEKDAYS'     # Pon-Pet
    WEEKENDS = 'WEEKENDS'     # Sub-Ned
    CUSTOM = 'CUSTOM'         # Izabrani dani u nedelji (custom_days)


class SubscriptionStatus(enum.Enum):
    """Status pretplate."""
    ACTIVE = 'ACTIVE'
    PAUSED = 'PAUSED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'


class SubscriptionChangeType(enum.Enum):
    """Tip promene u istoriji pretplate."""
    CREATED = 'CREATED'
    MODIFIED = 'MODIFIED'
    PAUSED = 'PAUSED'
    RESUMED = 'RESUMED'
    CANCELLED = 'CANCELLED'
    EXPIRED = 'EXPIRED'


class Subscription(db.Model):
    """
    Pretplata kupca na redovnu dostavu proizvoda.

    Invarijante:
    - pause_start_date i pause_end_date su oba postavljena ili oba NULL
    - postavljen period pauze => status PAUSED
    - end_date (ako postoji) >= start_date
    Pretplata se nikad fizicki ne brise.
    """
    __tablename__ = 'subscription'

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    address_id = db.Column(db.Integer, db.ForeignKey('address.id'), nullable=False)

    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    frequency = db.Column(db.Enum(SubscriptionFrequency), nullable=False)
    custom_days = db.Column(db.JSON, nullable=True)  # ['monday', 'thursday'] samo za CUSTOM

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)  # NULL = bez kraja

    # Pauza
    pause_start_date = db.Column(db.Date, nullable=True)
    pause_end_date = db.Column(db.Date, nullable=True)

    status = db.Column(
        db.Enum(SubscriptionStatus),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
        index=True
    )

    # Otkazivanje
    cancellation_reason = db.Column(db.String(500))
    cancelled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    # Relacije
    product = db.relationship('Product')
    address = db.relationship('Address')
    vacations = db.relationship(
        'Vacation',
        backref='subscription',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    history = db.relationship(
        'SubscriptionHistory',
        backref='subscription',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='SubscriptionHistory.changed_at.desc()'
    )

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_subscription_quantity_positive'),
        db.CheckConstraint(
            'end_date IS NULL OR end_date >= start_date',
            name='check_subscription_end_after_start'
        ),
        db.CheckConstraint(
            '(pause_start_date IS NULL) = (pause_end_date IS NULL)',
            name='check_subscription_pause_pair'
        ),
    )

    @property
    def pause_range(self):
        """(pause_start_date, pause_end_date) ili None."""
        if self.pause_start_date and self.pause_end_date:
            return self.pause_start_date, self.pause_end_date
        return None

    def to_dict(self):
        """Konvertuje u dictionary za API response."""
        return {
            'id': self.id,
            'customer_id': self.customer_id,
            'product_id': self.product_id,
            'address_id': self.address_id,
            'quantity': float(self.quantity),
            'frequency': self.frequency.value,
            'custom_days': self.custom_days,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'pause_start_date': self.pause_start_date.isoformat() if self.pause_start_date else None,
            'pause_end_date': self.pause_end_date.isoformat() if self.pause_end_date else None,
            'status': self.status.value,
        }

    def __repr__(self):
        return f'<Subscription {self.id}: {self.frequency.value} x{self.quantity} ({self.status.value})>'


class SubscriptionHistory(db.Model):
    """
    Log promene pretplate - IMMUTABLE.

    Svaka promena (kreiranje, izmena, pauza, nastavak, otkaz) ima zapis.
    """
    __tablename__ = 'subscription_history'

    id = db.Column(db.Integer, primary_key=True)

    subscription_id = db.Column(
        db.Integer,
        db.ForeignKey('subscription.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    change_type = db.Column(db.Enum(SubscriptionChangeType), nullable=False)
    previous_values = db.Column(db.JSON)
    new_values = db.Column(db.JSON)
    changed_by = db.Column(db.Integer)  # customer_id ili admin id, NULL = sistem

    changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<SubscriptionHistory {self.subscription_id}: {self.change_type.value}>'


class Vacation(db.Model):
    """
    Odmor - inkluzivni opseg datuma bez dostave za jednu pretplatu.

    Engine ga samo cita (CRUD je van servisa).
    """
    __tablename__ = 'vacation'

    id = db.Column(db.Integer, primary_key=True)

    subscription_id = db.Column(
        db.Integer,
        db.ForeignKey('subscription.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.String(300))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('end_date >= start_date', name='check_vacation_range'),
    )

    def __repr__(self):
        return f'<Vacation {self.subscription_id}: {self.start_date}..{self.end_date}>'


class Holiday(db.Model):
    """Globalni neradni dan - nema redovne dostave."""
    __tablename__ = 'holiday'

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Holiday {self.date}: {self.name}>'
