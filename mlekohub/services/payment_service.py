"""
Payment Service - knjizenje uplata po racunu.

Uplata i novi status racuna se upisuju u istom commit-u.
Zbir uspesnih uplata nikad ne prelazi iznos racuna.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from ..extensions import db
from ..errors import BadRequestError, ForbiddenError, NotFoundError
from ..models import Bill, BillStatus, Payment, PaymentMethod, PaymentStatus

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def get_amount_paid(bill):
    """Zbir SUCCESS uplata za racun (Decimal)."""
    return bill.amount_paid.quantize(CENT)


def record_payment(bill_id, amount, payment_method, customer_id=None,
                   transaction_id=None, notes=None):
    """
    Knjizi uplatu i preracunava status racuna.

    - cela preostala suma placena -> PAID
    - delimicno -> PARTIAL (i za OVERDUE racun; mark_overdue_bills ga ponovo oznacava)

    Args:
        bill_id: ID racuna
        amount: Iznos (> 0)
        payment_method: PaymentMethod ili string
        customer_id: Ako je dat, racun mora pripadati kupcu

    Returns:
        Payment

    Raises:
        NotFoundError: Racun ne postoji
        ForbiddenError: Racun pripada drugom kupcu
        BadRequestError: Neispravan iznos, racun otkazan/placen, iznos veci od duga
    """
    try:
        amount = Decimal(str(amount)).quantize(CENT)
    except InvalidOperation:
        raise BadRequestError(f'Invalid amount: {amount}')
    if amount <= 0:
        raise BadRequestError('Payment amount must be positive')

    try:
        method = PaymentMethod(payment_method) if not isinstance(payment_method, PaymentMethod) else payment_method
    except ValueError:
        raise BadRequestError(f'Invalid payment method: {payment_method}')

    bill = Bill.query.filter_by(id=bill_id).with_for_update().first()
    if bill is None:
        raise NotFoundError('Bill not found')
    if customer_id is not None and bill.customer_id != customer_id:
        raise ForbiddenError('Access denied')
    if bill.status == BillStatus.CANCELLED:
        raise BadRequestError('Cannot pay a cancelled bill')
    if bill.status == BillStatus.PAID:
        raise BadRequestError('Bill is already paid')

    total = Decimal(str(bill.total_amount)).quantize(CENT)
    paid = get_amount_paid(bill)
    outstanding = total - paid
    if amount > outstanding:
        raise BadRequestError(f'Payment amount exceeds outstanding balance ({outstanding})')

    payment = Payment(
        bill_id=bill.id,
        customer_id=bill.customer_id,
        amount=amount,
        payment_method=method,
        transaction_id=transaction_id,
        status=PaymentStatus.SUCCESS,
        payment_date=datetime.utcnow(),
        notes=notes,
    )
    db.session.add(payment)

    paid_after = paid + amount
    if paid_after >= total:
        bill.status = BillStatus.PAID
    elif paid_after > 0:
        bill.status = BillStatus.PARTIAL

    db.session.commit()

    logger.info(
        f"Payment {payment.id} of {amount} ({method.value}) recorded for bill {bill.bill_number}, "
        f"status {bill.status.value}"
    )
    return payment
