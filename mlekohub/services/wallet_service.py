"""
Wallet Service - novcanik kupca.

Krediti u novcaniku se automatski primenjuju na racun pri generisanju
(billing_service). Svaka promena stanja ima WalletTransaction zapis.
"""

import logging
from decimal import Decimal

from ..extensions import db
from ..errors import BadRequestError
from ..models import (
    CustomerWallet, WalletTransaction,
    WalletTransactionType, WalletReferenceType
)

logger = logging.getLogger(__name__)


def get_or_create_wallet(customer_id, for_update=False):
    """
    Dohvati ili kreiraj novcanik kupca.

    Args:
        customer_id: ID kupca
        for_update: Zakljucaj red (SELECT ... FOR UPDATE) do kraja transakcije

    Returns:
        CustomerWallet instanca
    """
    query = CustomerWallet.query.filter_by(customer_id=customer_id)
    if for_update:
        query = query.with_for_update()
    wallet = query.first()
    if wallet:
        return wallet

    wallet = CustomerWallet(customer_id=customer_id, balance=Decimal('0'))
    db.session.add(wallet)
    db.session.flush()
    return wallet


def get_wallet_balance(customer_id):
    """
    Vraca trenutno stanje kao Decimal.

    Returns:
        Decimal (0 ako novcanik ne postoji)
    """
    wallet = CustomerWallet.query.filter_by(customer_id=customer_id).first()
    if not wallet:
        return Decimal('0')
    return Decimal(str(wallet.balance))


def add_wallet_credit(customer_id, amount, reference_type=WalletReferenceType.TOPUP,
                      description=None, reference_id=None):
    """
    Dodaj kredit u novcanik i commit-uj.

    Returns:
        WalletTransaction

    Raises:
        BadRequestError: Iznos nije pozitivan
    """
    amount = Decimal(str(amount)).quantize(Decimal('0.01'))
    if amount <= 0:
        raise BadRequestError('Amount must be positive')

    wallet = get_or_create_wallet(customer_id, for_update=True)
    balance_before = Decimal(str(wallet.balance))
    wallet.balance = balance_before + amount

    txn = WalletTransaction(
        wallet_id=wallet.id,
        transaction_type=WalletTransactionType.CREDIT,
        amount=amount,
        balance_before=balance_before,
        balance_after=wallet.balance,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
    )
    db.session.add(txn)
    db.session.commit()

    logger.info(f"Wallet credit for customer {customer_id}: +{amount} (balance {wallet.balance})")
    return txn


def debit_wallet(wallet, amount, reference_type=WalletReferenceType.BILL_PAYMENT,
                 reference_id=None, description=None):
    """
    Skini iznos sa novcanika. NE radi commit - poziva se unutar transakcije racuna.

    Returns:
        WalletTransaction

    Raises:
        BadRequestError: Iznos nije pozitivan ili je veci od stanja
    """
    amount = Decimal(str(amount)).quantize(Decimal('0.01'))
    if amount <= 0:
        raise BadRequestError('Amount must be positive')

    balance_before = Decimal(str(wallet.balance))
    # Provera pre pokusaja (ne oslanjamo se samo na DB constraint)
    if balance_before < amount:
        raise BadRequestError('Insufficient wallet balance')

    wallet.balance = balance_before - amount

    txn = WalletTransaction(
        wallet_id=wallet.id,
        transaction_type=WalletTransactionType.DEBIT,
        amount=amount,
        balance_before=balance_before,
        balance_after=wallet.balance,
        reference_type=reference_type,
        reference_id=reference_id,
        description=description,
    )
    db.session.add(txn)
    db.session.flush()
    return txn
