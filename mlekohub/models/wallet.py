"""
Wallet modeli - novcanik kupca (krediti koji se automatski primenjuju na racun).

CustomerWallet - stanje (jedan po kupcu, nikad negativno)
WalletTransaction - log svake promene stanja (IMMUTABLE)
"""

import enum
from datetime import datetime
from ..extensions import db


class WalletTransactionType(enum.Enum):
    """Smer transakcije."""
    CREDIT = 'CREDIT'
    DEBIT = 'DEBIT'


class WalletReferenceType(enum.Enum):
    """Na sta se transakcija odnosi."""
    TOPUP = 'TOPUP'
    REFUND = 'REFUND'
    BILL_PAYMENT = 'BILL_PAYMENT'
    ADJUSTMENT = 'ADJUSTMENT'


class CustomerWallet(db.Model):
    """
    Novcanik kupca.

    Balance ne moze biti negativan (CHECK constraint).
    """
    __tablename__ = 'customer_wallet'

    id = db.Column(db.Integer, primary_key=True)

    customer_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_profile.id', ondelete='CASCADE'),
        unique=True,
        nullable=False
    )
    balance = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    transactions = db.relationship(
        'WalletTransaction',
        backref='wallet',
        lazy='dynamic',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.CheckConstraint('balance >= 0', name='check_wallet_balance_non_negative'),
    )

    def __repr__(self):
        return f'<CustomerWallet {self.customer_id}: balance={self.balance}>'


class WalletTransaction(db.Model):
    """
    Log transakcije novcanika - IMMUTABLE.

    Svaka promena balance-a mora imati odgovarajuci zapis.
    """
    __tablename__ = 'wallet_transaction'

    id = db.Column(db.Integer, primary_key=True)

    wallet_id = db.Column(
        db.Integer,
        db.ForeignKey('customer_wallet.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    transaction_type = db.Column(db.Enum(WalletTransactionType), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)  # Uvek pozitivan, smer je u transaction_type
    balance_before = db.Column(db.Numeric(10, 2), nullable=False)
    balance_after = db.Column(db.Numeric(10, 2), nullable=False)

    reference_type = db.Column(db.Enum(WalletReferenceType), nullable=False)
    reference_id = db.Column(db.Integer)
    description = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<WalletTransaction {self.id}: {self.transaction_type.value} {self.amount}>'
