"""
Billing modeli - mesecni racuni kupaca i uplate.

Bill - racun za kupca i period (jedan po kupcu i periodu)
BillItem - stavka racuna, grupisano po (poreklo, proizvod)
Payment - uplata po racunu (samo knjizenje, bez payment gateway-a)
"""

import enum
from datetime import datetime
from decimal import Decimal
from ..extensions import db


class BillStatus(enum.Enum):
    """Status racuna."""
    GENERATED = 'GENERATED'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'
    OVERDUE = 'OVERDUE'
    CANCELLED = 'CANCELLED'


class PaymentStatus(enum.Enum):
    """Status uplate."""
    PENDING = 'PENDING'
    SUCCESS = 'SUCCESS'
    FAILED = 'FAILED'
    REFUNDED = 'REFUNDED'


class PaymentMethod(enum.Enum):
    """Nacin placanja."""
    CASH = 'CASH'
    UPI = 'UPI'
    CARD = 'CARD'
    BANK_TRANSFER = 'BANK_TRANSFER'
    WALLET = 'WALLET'


class BillItemType(enum.Enum):
    """Poreklo stavke racuna (isto kao DeliveryType)."""
    REGULAR = 'REGULAR'
    ADHOC = 'ADHOC'


class Bill(db.Model):
    """
    Racun kupca za period.

    UNIQUE (customer_id, billing_period_start, billing_period_end) -
    racun se generise tacno jednom po kupcu i periodu.
    """
    __tablename__ = 'bill'

    id = db.Column(db.Integer, primary_key=True)

    bill_number = db.Column(db.String(40), unique=True, nullable=False, index=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    billing_period_start = db.Column(db.Date, nullable=False)
    billing_period_end = db.Column(db.Date, nullable=False)

    # Statistika isporuka
    total_scheduled_deliveries = db.Column(db.Integer, nullable=False, default=0)
    actual_deliveries = db.Column(db.Integer, nullable=False, default=0)
    missed_deliveries = db.Column(db.Integer, nullable=False, default=0)
    adhoc_deliveries = db.Column(db.Integer, nullable=False, default=0)
    vacation_days = db.Column(db.Integer, nullable=False, default=0)
    holiday_days = db.Column(db.Integer, nullable=False, default=0)

    # Iznosi
    regular_subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    adhoc_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    credits_applied = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    status = db.Column(
        db.Enum(BillStatus),
        default=BillStatus.GENERATED,
        nullable=False,
        index=True
    )
    due_date = db.Column(db.Date, nullable=False)
    generated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    items = db.relationship(
        'BillItem',
        backref='bill',
        lazy='select',
        cascade='all, delete-orphan',
        order_by='BillItem.id'
    )
    payments = db.relationship(
        'Payment',
        backref='bill',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )
    customer = db.relationship('CustomerProfile')

    __table_args__ = (
        db.UniqueConstraint(
            'customer_id', 'billing_period_start', 'billing_period_end',
            name='uq_bill_customer_period'
        ),
        db.CheckConstraint('total_amount >= 0', name='check_bill_total_non_negative'),
    )

    @property
    def amount_paid(self):
        """Zbir uspesnih uplata."""
        total = db.session.query(
            db.func.coalesce(db.func.sum(Payment.amount), 0)
        ).filter(
            Payment.bill_id == self.id,
            Payment.status == PaymentStatus.SUCCESS
        ).scalar()
        return Decimal(str(total))

    def to_dict(self):
        return {
            'id': self.id,
            'bill_number': self.bill_number,
            'customer_id': self.customer_id,
            'billing_period_start': self.billing_period_start.isoformat(),
            'billing_period_end': self.billing_period_end.isoformat(),
            'total_scheduled_deliveries': self.total_scheduled_deliveries,
            'actual_deliveries': self.actual_deliveries,
            'missed_deliveries': self.missed_deliveries,
            'adhoc_deliveries': self.adhoc_deliveries,
            'vacation_days': self.vacation_days,
            'holiday_days': self.holiday_days,
            'regular_subtotal': float(self.regular_subtotal),
            'adhoc_amount': float(self.adhoc_amount),
            'subtotal': float(self.subtotal),
            'tax_amount': float(self.tax_amount),
            'credits_applied': float(self.credits_applied),
            'total_amount': float(self.total_amount),
            'status': self.status.value,
            'due_date': self.due_date.isoformat(),
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f'<Bill {self.bill_number}: {self.total_amount} ({self.status.value})>'


class BillItem(db.Model):
    """Stavka racuna - zbir kolicina za (poreklo, proizvod)."""
    __tablename__ = 'bill_item'

    id = db.Column(db.Integer, primary_key=True)

    bill_id = db.Column(
        db.Integer,
        db.ForeignKey('bill.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    item_type = db.Column(db.Enum(BillItemType), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    subscription_id = db.Column(db.Integer, db.ForeignKey('subscription.id'), nullable=True)

    description = db.Column(db.String(300))
    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'item_type': self.item_type.value,
            'product_id': self.product_id,
            'subscription_id': self.subscription_id,
            'description': self.description,
            'quantity': float(self.quantity),
            'unit_price': float(self.unit_price),
            'total_price': float(self.total_price),
        }

    def __repr__(self):
        return f'<BillItem {self.item_type.value} product={self.product_id} x{self.quantity}>'


class Payment(db.Model):
    """Uplata po racunu."""
    __tablename__ = 'payment'

    id = db.Column(db.Integer, primary_key=True)

    bill_id = db.Column(
        db.Integer,
        db.ForeignKey('bill.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.Enum(PaymentMethod), nullable=False)
    transaction_id = db.Column(db.String(255))
    status = db.Column(
        db.Enum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True
    )
    payment_date = db.Column(db.DateTime, default=datetime.utcnow)
    notes = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('amount > 0', name='check_payment_amount_positive'),
    )

    def __repr__(self):
        return f'<Payment {self.id}: {self.amount} ({self.status.value})>'
