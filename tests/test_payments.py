"""
Payment testovi - uplate po racunu i prelazi statusa.
"""
import pytest
from datetime import date
from decimal import Decimal

from mlekohub.errors import BadRequestError, ForbiddenError, NotFoundError
from mlekohub.models import Bill, BillStatus, Payment, PaymentMethod, PaymentStatus
from mlekohub.services.billing_service import mark_overdue_bills
from mlekohub.services.payment_service import get_amount_paid, record_payment


@pytest.fixture
def make_bill(db, customer):
    """Fabrika racuna (direktno u bazu)."""
    def _make(total='250.00', status=BillStatus.GENERATED, customer_id=None):
        bill = Bill(
            bill_number=f'BILL-TEST-{Bill.query.count() + 1:03d}',
            customer_id=customer_id or customer.id,
            billing_period_start=date(2025, 1, 1),
            billing_period_end=date(2025, 1, 31),
            subtotal=Decimal(total),
            total_amount=Decimal(total),
            status=status,
            due_date=date(2025, 2, 10),
        )
        db.session.add(bill)
        db.session.commit()
        return bill
    return _make


class TestRecordPayment:

    def test_partial_then_full(self, db, make_bill):
        bill = make_bill()

        payment = record_payment(bill.id, '100', 'UPI', transaction_id='UPI-1')
        assert payment.status == PaymentStatus.SUCCESS
        assert payment.payment_method == PaymentMethod.UPI
        assert payment.customer_id == bill.customer_id
        assert bill.status == BillStatus.PARTIAL
        assert get_amount_paid(bill) == Decimal('100.00')

        record_payment(bill.id, Decimal('150'), PaymentMethod.CASH)
        assert bill.status == BillStatus.PAID
        assert get_amount_paid(bill) == Decimal('250.00')
        assert Payment.query.filter_by(bill_id=bill.id).count() == 2

    def test_overpayment_rejected(self, db, make_bill):
        bill = make_bill()
        record_payment(bill.id, 200, 'CASH')

        with pytest.raises(BadRequestError):
            record_payment(bill.id, 60, 'CASH')
        assert get_amount_paid(bill) == Decimal('200.00')

    @pytest.mark.parametrize('amount', [0, -5, 'abc'])
    def test_invalid_amount(self, db, make_bill, amount):
        bill = make_bill()
        with pytest.raises(BadRequestError):
            record_payment(bill.id, amount, 'CASH')

    def test_invalid_method(self, db, make_bill):
        bill = make_bill()
        with pytest.raises(BadRequestError):
            record_payment(bill.id, 10, 'CHEQUE')

    @pytest.mark.parametrize('status', [BillStatus.PAID, BillStatus.CANCELLED])
    def test_closed_bill(self, db, make_bill, status):
        bill = make_bill(status=status)
        with pytest.raises(BadRequestError):
            record_payment(bill.id, 10, 'CASH')

    def test_partial_payment_on_overdue_bill(self, db, make_bill):
        bill = make_bill(status=BillStatus.OVERDUE)

        record_payment(bill.id, 100, 'CARD')
        assert bill.status == BillStatus.PARTIAL

        # Rok je i dalje prosao
        assert mark_overdue_bills(today=date(2025, 2, 11)) == 1
        assert bill.status == BillStatus.OVERDUE

        record_payment(bill.id, 150, 'CARD')
        assert bill.status == BillStatus.PAID

    def test_foreign_bill(self, db, make_bill, other_customer):
        bill = make_bill()
        with pytest.raises(ForbiddenError):
            record_payment(bill.id, 10, 'CASH', customer_id=other_customer.id)

    def test_unknown_bill(self, db):
        with pytest.raises(NotFoundError):
            record_payment(999, 10, 'CASH')
