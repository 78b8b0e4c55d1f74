"""
Customer modeli - kupci i njihove adrese za dostavu.

CustomerProfile - kupac (vlasnik pretplata, adhoc zahteva, racuna i novcanika)
Address - adresa dostave kupca
"""

from datetime import datetime
from ..extensions import db


class CustomerProfile(db.Model):
    """
    Kupac - vlasnik pretplata i racuna.

    Autentifikacija i korisnicki nalozi su van ovog servisa,
    ovde se cuva samo profil koji engine referencira.
    """
    __tablename__ = 'customer_profile'

    id = db.Column(db.Integer, primary_key=True)

    # Osnovni podaci
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(100), unique=True, index=True)
    phone = db.Column(db.String(30))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Timestampovi
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    # Relacije
    addresses = db.relationship(
        'Address',
        backref='customer',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    subscriptions = db.relationship('Subscription', backref='customer', lazy='dynamic')
    adhoc_requests = db.relationship('AdhocRequest', backref='customer', lazy='dynamic')

    def __repr__(self):
        return f'<CustomerProfile {self.id}: {self.name}>'


class Address(db.Model):
    """Adresa dostave. Pretplate i adhoc zahtevi se vezuju za aktivnu adresu kupca."""
    __tablename__ = 'address'

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    line1 = db.Column(db.String(300), nullable=False)
    city = db.Column(db.String(100))
    postal_code = db.Column(db.String(20))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Address {self.id}: {self.line1}>'
