"""
Delivery model - pojedinacna isporuka (redovna ili adhoc).

REGULAR isporuke nastaju iz pretplate (jedna po pretplati i datumu),
ADHOC isporuke nastaju iz odobrene stavke adhoc zahteva.
"""

import enum
from datetime import datetime
from ..extensions import db


class DeliveryType(enum.Enum):
    """Poreklo isporuke."""
    REGULAR = 'REGULAR'
    ADHOC = 'ADHOC'


class DeliveryStatus(enum.Enum):
    """Status isporuke."""
    SCHEDULED = 'SCHEDULED'
    DELIVERED = 'DELIVERED'
    PARTIAL = 'PARTIAL'
    MISSED = 'MISSED'
    CANCELLED = 'CANCELLED'


# Statusi posle kojih se isporuka vise ne menja
TERMINAL_DELIVERY_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED)

# Statusi koji se naplacuju
BILLABLE_DELIVERY_STATUSES = (DeliveryStatus.DELIVERED, DeliveryStatus.PARTIAL)


class Delivery(db.Model):
    """
    Isporuka.

    Tacno jedno od subscription_id / adhoc_item_id je postavljeno.
    Najvise jedna REGULAR isporuka po (subscription_id, delivery_date) -
    na tom UNIQUE constraint-u se zasniva idempotentno generisanje rasporeda.
    """
    __tablename__ = 'delivery'

    id = db.Column(db.Integer, primary_key=True)

    delivery_type = db.Column(db.Enum(DeliveryType), nullable=False, index=True)

    # Poreklo (XOR)
    subscription_id = db.Column(
        db.Integer,
        db.ForeignKey('subscription.id', ondelete='CASCADE'),
        nullable=True,
        index=True
    )
    adhoc_item_id = db.Column(
        db.Integer,
        db.ForeignKey('adhoc_request_item.id', ondelete='CASCADE'),
        nullable=True
    )
    # Denormalizovano za upite po kupcu
    adhoc_request_id = db.Column(
        db.Integer,
        db.ForeignKey('adhoc_request.id', ondelete='CASCADE'),
        nullable=True,
        index=True
    )

    # Proizvod u trenutku materijalizacije
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)

    delivery_date = db.Column(db.Date, nullable=False, index=True)
    scheduled_quantity = db.Column(db.Numeric(10, 2), nullable=False)
    delivered_quantity = db.Column(db.Numeric(10, 2), nullable=True)  # NULL dok se ne isporuci

    status = db.Column(
        db.Enum(DeliveryStatus),
        default=DeliveryStatus.SCHEDULED,
        nullable=False,
        index=True
    )
    delivered_at = db.Column(db.DateTime)
    notes = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    # Relacije
    product = db.relationship('Product')
    subscription = db.relationship('Subscription', backref=db.backref('deliveries', lazy='dynamic'))
    adhoc_item = db.relationship('AdhocRequestItem', backref=db.backref('delivery', uselist=False))
    adhoc_request = db.relationship('AdhocRequest', backref=db.backref('deliveries', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('subscription_id', 'delivery_date', name='uq_delivery_subscription_date'),
        db.UniqueConstraint('adhoc_item_id', name='uq_delivery_adhoc_item'),
        db.CheckConstraint(
            '(subscription_id IS NOT NULL AND adhoc_item_id IS NULL) OR '
            '(subscription_id IS NULL AND adhoc_item_id IS NOT NULL)',
            name='check_delivery_single_origin'
        ),
        db.CheckConstraint('scheduled_quantity > 0', name='check_delivery_quantity_positive'),
    )

    @property
    def is_terminal(self):
        return self.status in TERMINAL_DELIVERY_STATUSES

    @property
    def billable_quantity(self):
        """Isporucena kolicina ako je upisana, inace planirana."""
        if self.delivered_quantity is not None:
            return self.delivered_quantity
        return self.scheduled_quantity

    def to_dict(self):
        return {
            'id': self.id,
            'delivery_type': self.delivery_type.value,
            'subscription_id': self.subscription_id,
            'adhoc_item_id': self.adhoc_item_id,
            'product_id': self.product_id,
            'delivery_date': self.delivery_date.isoformat(),
            'scheduled_quantity': float(self.scheduled_quantity),
            'delivered_quantity': float(self.delivered_quantity) if self.delivered_quantity is not None else None,
            'status': self.status.value,
        }

    def __repr__(self):
        return f'<Delivery {self.id}: {self.delivery_type.value} {self.delivery_date} ({self.status.value})>'
