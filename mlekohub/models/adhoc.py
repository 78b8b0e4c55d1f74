"""
Adhoc modeli - jednokratni zahtevi za dostavu i dnevni kapacitet.

AdhocRequest - zahtev kupca (jedna ili vise stavki)
AdhocRequestItem - stavka: proizvod, datum, kolicina, cena u trenutku slanja
AdhocCapacity - dnevni brojac odobrenih stavki + blokada datuma
"""

import enum
from datetime import datetime
from ..extensions import db


class AdhocRequestStatus(enum.Enum):
    """Status adhoc zahteva."""
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    PARTIALLY_APPROVED = 'PARTIALLY_APPROVED'
    REJECTED = 'REJECTED'
    CANCELLED = 'CANCELLED'


class AdhocItemStatus(enum.Enum):
    """Status stavke adhoc zahteva."""
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class AdhocRequest(db.Model):
    """
    Adhoc zahtev kupca.

    Status zahteva je deterministicka funkcija statusa stavki
    (vidi adhoc_service.derive_request_status). Stavke se menjaju
    samo dok je zahtev PENDING (brisu se i kreiraju ponovo).
    """
    __tablename__ = 'adhoc_request'

    id = db.Column(db.Integer, primary_key=True)

    request_number = db.Column(db.String(30), unique=True, nullable=False, index=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    address_id = db.Column(db.Integer, db.ForeignKey('address.id'), nullable=False)

    status = db.Column(
        db.Enum(AdhocRequestStatus),
        default=AdhocRequestStatus.PENDING,
        nullable=False,
        index=True
    )
    total_estimated_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    notes = db.Column(db.String(500))

    # Pregled (admin)
    admin_notes = db.Column(db.String(500))
    reviewed_by = db.Column(db.Integer)
    reviewed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    items = db.relationship(
        'AdhocRequestItem',
        backref='request',
        lazy='select',
        cascade='all, delete-orphan',
        order_by='AdhocRequestItem.id'
    )
    address = db.relationship('Address')

    def to_dict(self):
        return {
            'id': self.id,
            'request_number': self.request_number,
            'customer_id': self.customer_id,
            'address_id': self.address_id,
            'status': self.status.value,
            'total_estimated_cost': float(self.total_estimated_cost),
            'notes': self.notes,
            'admin_notes': self.admin_notes,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f'<AdhocRequest {self.request_number} ({self.status.value})>'


class AdhocRequestItem(db.Model):
    """Stavka adhoc zahteva. unit_price je snimak cene u trenutku slanja."""
    __tablename__ = 'adhoc_request_item'

    id = db.Column(db.Integer, primary_key=True)

    adhoc_request_id = db.Column(
        db.Integer,
        db.ForeignKey('adhoc_request.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)

    requested_date = db.Column(db.Date, nullable=False, index=True)
    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    estimated_cost = db.Column(db.Numeric(10, 2), nullable=False)

    status = db.Column(
        db.Enum(AdhocItemStatus),
        default=AdhocItemStatus.PENDING,
        nullable=False
    )
    rejection_reason = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    product = db.relationship('Product')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_adhoc_item_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'requested_date': self.requested_date.isoformat(),
            'quantity': float(self.quantity),
            'unit_price': float(self.unit_price),
            'estimated_cost': float(self.estimated_cost),
            'status': self.status.value,
            'rejection_reason': self.rejection_reason,
        }

    def __repr__(self):
        return f'<AdhocRequestItem {self.id}: {self.requested_date} x{self.quantity} ({self.status.value})>'


class AdhocCapacity(db.Model):
    """
    Dnevni kapacitet za adhoc stavke.

    Red se kreira lenjo (prvo odobrenje ili admin izmena).
    current_approved se menja ISKLJUCIVO atomskim upsert-om
    (capacity_service.increment_capacity), nikad read-modify-write.
    max_adhoc_requests NULL = globalni default iz podesavanja.
    """
    __tablename__ = 'adhoc_capacity'

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, unique=True, nullable=False, index=True)
    max_adhoc_requests = db.Column(db.Integer, nullable=True)
    current_approved = db.Column(db.Integer, nullable=False, default=0)

    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    block_reason = db.Column(db.String(300))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        db.CheckConstraint('current_approved >= 0', name='check_capacity_non_negative'),
    )

    def __repr__(self):
        return f'<AdhocCapacity {self.date}: {self.current_approved}/{self.max_adhoc_requests}>'
