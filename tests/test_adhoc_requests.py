"""
Adhoc testovi - kreiranje, izmena, pregled (approve/reject/partial), otkaz, analitika.
"""
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from mlekohub.errors import BadRequestError, ForbiddenError, NotFoundError
from mlekohub.models import (
    AdhocItemStatus, AdhocRequestStatus, Delivery, DeliveryStatus, DeliveryType,
    Product
)
from mlekohub.services import adhoc_service
from mlekohub.services.adhoc_service import (
    cancel_request, create_request, derive_request_status, get_analytics,
    review_request, update_request
)
from mlekohub.services.capacity_service import get_capacity, update_capacity_settings


TODAY = date(2025, 3, 1)


def _day(offset):
    return TODAY + timedelta(days=offset)


def _capacity_for(day):
    return get_capacity(day, day)[0]


@pytest.fixture
def request_data(address, product):
    """Dve stavke za isti proizvod, razliciti dani."""
    return {
        'address_id': address.id,
        'notes': 'Rodjendan',
        'items': [
            {'product_id': product.id, 'requested_date': _day(2), 'quantity': 2},
            {'product_id': product.id, 'requested_date': _day(3), 'quantity': 1},
        ],
    }


@pytest.fixture
def pending_request(db, customer, request_data):
    return create_request(customer.id, request_data, today=TODAY)


class TestCreateRequest:
    """Validacija datuma, proizvoda i cene pri kreiranju."""

    def test_creates_pending_request_with_price_snapshot(self, db, customer, request_data):
        request = create_request(customer.id, request_data, today=TODAY)

        assert request.status == AdhocRequestStatus.PENDING
        assert request.request_number.startswith('ADH-')
        assert len(request.items) == 2
        assert request.items[0].unit_price == Decimal('50.00')
        assert request.items[0].estimated_cost == Decimal('100.00')
        assert request.total_estimated_cost == Decimal('150.00')
        assert all(i.status == AdhocItemStatus.PENDING for i in request.items)

    def test_date_too_early(self, db, customer, address, product):
        data = {'address_id': address.id,
                'items': [{'product_id': product.id, 'requested_date': TODAY, 'quantity': 1}]}
        with pytest.raises(BadRequestError):
            create_request(customer.id, data, today=TODAY)

    def test_date_too_late(self, db, customer, address, product):
        data = {'address_id': address.id,
                'items': [{'product_id': product.id, 'requested_date': _day(31), 'quantity': 1}]}
        with pytest.raises(BadRequestError):
            create_request(customer.id, data, today=TODAY)

    def test_window_edges_are_inclusive(self, db, customer, address, product):
        data = {'address_id': address.id, 'items': [
            {'product_id': product.id, 'requested_date': _day(1), 'quantity': 1},
            {'product_id': product.id, 'requested_date': _day(30), 'quantity': 1},
        ]}
        request = create_request(customer.id, data, today=TODAY)
        assert len(request.items) == 2

    def test_blocked_date(self, db, customer, request_data):
        update_capacity_settings(_day(2), is_blocked=True, block_reason='Inventar')
        with pytest.raises(BadRequestError) as exc:
            create_request(customer.id, request_data, today=TODAY)
        assert 'Inventar' in exc.value.message

    def test_foreign_address(self, db, customer, other_address, product):
        data = {'address_id': other_address.id,
                'items': [{'product_id': product.id, 'requested_date': _day(2), 'quantity': 1}]}
        with pytest.raises(NotFoundError):
            create_request(customer.id, data, today=TODAY)

    def test_inactive_product(self, db, customer, address, product):
        product.is_active = False
        db.session.flush()
        data = {'address_id': address.id,
                'items': [{'product_id': product.id, 'requested_date': _day(2), 'quantity': 1}]}
        with pytest.raises(NotFoundError):
            create_request(customer.id, data, today=TODAY)

    def test_product_without_price(self, db, customer, address):
        unpriced = Product(name='Kajmak')
        db.session.add(unpriced)
        db.session.flush()
        data = {'address_id': address.id,
                'items': [{'product_id': unpriced.id, 'requested_date': _day(2), 'quantity': 1}]}
        with pytest.raises(BadRequestError):
            create_request(customer.id, data, today=TODAY)

    def test_empty_items_rejected(self, db, customer, address):
        with pytest.raises(BadRequestError):
            create_request(customer.id, {'address_id': address.id, 'items': []}, today=TODAY)


class TestUpdateRequest:

    def test_items_replaced(self, db, customer, address, second_product, pending_request):
        data = {'address_id': address.id, 'items': [
            {'product_id': second_product.id, 'requested_date': _day(5), 'quantity': 3},
        ]}
        request = update_request(pending_request.id, customer.id, data, today=TODAY)

        assert len(request.items) == 1
        assert request.items[0].product_id == second_product.id
        assert request.total_estimated_cost == Decimal('240.00')

    def test_only_pending(self, db, customer, request_data, pending_request):
        review_request(pending_request.id, 'reject')
        with pytest.raises(BadRequestError):
            update_request(pending_request.id, customer.id, request_data, today=TODAY)

    def test_foreign_request(self, db, other_customer, request_data, pending_request):
        with pytest.raises(ForbiddenError):
            update_request(pending_request.id, other_customer.id, request_data, today=TODAY)


class TestReview:
    """approve / reject / partial i zauzimanje kapaciteta."""

    def test_approve_three_items_same_day(self, db, customer, address, product):
        data = {'address_id': address.id, 'items': [
            {'product_id': product.id, 'requested_date': _day(4), 'quantity': 1}
            for _ in range(3)
        ]}
        request = create_request(customer.id, data, today=TODAY)

        review_request(request.id, 'approve', admin_user_id=7)

        assert request.status == AdhocRequestStatus.APPROVED
        assert request.reviewed_by == 7
        entry = _capacity_for(_day(4))
        assert entry['current_approved'] == 3
        assert entry['available'] == 47

        deliveries = Delivery.query.filter_by(adhoc_request_id=request.id).all()
        assert len(deliveries) == 3
        assert all(d.delivery_type == DeliveryType.ADHOC for d in deliveries)
        assert all(d.status == DeliveryStatus.SCHEDULED for d in deliveries)

    def test_reject_uses_admin_notes(self, db, pending_request):
        review_request(pending_request.id, 'reject', admin_notes='Nema vozila')

        assert pending_request.status == AdhocRequestStatus.REJECTED
        assert all(i.status == AdhocItemStatus.REJECTED for i in pending_request.items)
        assert all(i.rejection_reason == 'Nema vozila' for i in pending_request.items)
        assert _capacity_for(_day(2))['current_approved'] == 0
        assert Delivery.query.count() == 0

    def test_partial_mixed(self, db, pending_request):
        first, second = pending_request.items
        review_request(pending_request.id, 'partial', item_decisions=[
            {'item_id': first.id, 'approved': True},
            {'item_id': second.id, 'approved': False, 'rejection_reason': 'Pun dan'},
        ])

        assert pending_request.status == AdhocRequestStatus.PARTIALLY_APPROVED
        assert first.status == AdhocItemStatus.APPROVED
        assert second.status == AdhocItemStatus.REJECTED
        assert second.rejection_reason == 'Pun dan'
        assert _capacity_for(first.requested_date)['current_approved'] == 1
        assert _capacity_for(second.requested_date)['current_approved'] == 0
        assert Delivery.query.one().adhoc_item_id == first.id

    def test_partial_all_approved_is_approved(self, db, pending_request):
        review_request(pending_request.id, 'partial', item_decisions=[
            {'item_id': item.id, 'approved': True} for item in pending_request.items
        ])
        assert pending_request.status == AdhocRequestStatus.APPROVED

    def test_partial_must_cover_all_items(self, db, pending_request):
        first = pending_request.items[0]
        with pytest.raises(BadRequestError):
            review_request(pending_request.id, 'partial', item_decisions=[
                {'item_id': first.id, 'approved': True},
            ])
        assert pending_request.status == AdhocRequestStatus.PENDING

    def test_partial_unknown_item(self, db, pending_request):
        decisions = [{'item_id': item.id, 'approved': True} for item in pending_request.items]
        decisions.append({'item_id': 9999, 'approved': True})
        with pytest.raises(BadRequestError):
            review_request(pending_request.id, 'partial', item_decisions=decisions)

    def test_capacity_full_rolls_back_review(self, db, customer, address, product):
        update_capacity_settings(_day(4), max_capacity=1)
        data = {'address_id': address.id, 'items': [
            {'product_id': product.id, 'requested_date': _day(4), 'quantity': 1},
            {'product_id': product.id, 'requested_date': _day(4), 'quantity': 1},
        ]}
        request = create_request(customer.id, data, today=TODAY)

        with pytest.raises(BadRequestError):
            review_request(request.id, 'approve')

        assert request.status == AdhocRequestStatus.PENDING
        assert all(i.status == AdhocItemStatus.PENDING for i in request.items)
        assert _capacity_for(_day(4))['current_approved'] == 0
        assert Delivery.query.count() == 0

    def test_override_capacity(self, db, customer, address, product):
        update_capacity_settings(_day(4), max_capacity=1)
        data = {'address_id': address.id, 'items': [
            {'product_id': product.id, 'requested_date': _day(4), 'quantity': 1},
            {'product_id': product.id, 'requested_date': _day(4), 'quantity': 1},
        ]}
        request = create_request(customer.id, data, today=TODAY)

        review_request(request.id, 'approve', override_capacity=True)

        assert request.status == AdhocRequestStatus.APPROVED
        assert _capacity_for(_day(4))['current_approved'] == 2

    def test_only_pending_can_be_reviewed(self, db, pending_request):
        review_request(pending_request.id, 'approve')
        with pytest.raises(BadRequestError):
            review_request(pending_request.id, 'reject')

    def test_invalid_action(self, db, pending_request):
        with pytest.raises(BadRequestError):
            review_request(pending_request.id, 'maybe')

    def test_unknown_request(self, db):
        with pytest.raises(NotFoundError):
            review_request(999, 'approve')


class TestDeriveStatus:

    def test_status_function(self):
        A, R, P = AdhocItemStatus.APPROVED, AdhocItemStatus.REJECTED, AdhocItemStatus.PENDING
        assert derive_request_status([A, A]) == AdhocRequestStatus.APPROVED
        assert derive_request_status([R, R]) == AdhocRequestStatus.REJECTED
        assert derive_request_status([A, R]) == AdhocRequestStatus.PARTIALLY_APPROVED
        assert derive_request_status([A, P]) == AdhocRequestStatus.PENDING
        assert derive_request_status([]) == AdhocRequestStatus.PENDING


class TestCancelRequest:
    """PENDING uvek, APPROVED samo do roka."""

    def test_cancel_pending(self, db, customer, pending_request):
        cancel_request(pending_request.id, customer.id)
        assert pending_request.status == AdhocRequestStatus.CANCELLED
        assert pending_request.cancelled_at is not None

    def test_cancel_approved_before_deadline(self, db, customer, pending_request):
        review_request(pending_request.id, 'approve')
        # Prva isporuka _day(2) 00:00, rok 12h ranije
        now = datetime.combine(_day(1), datetime.min.time()) + timedelta(hours=11)

        cancel_request(pending_request.id, customer.id, now=now)

        assert pending_request.status == AdhocRequestStatus.CANCELLED
        assert _capacity_for(_day(2))['current_approved'] == 0
        assert _capacity_for(_day(3))['current_approved'] == 0
        deliveries = Delivery.query.filter_by(adhoc_request_id=pending_request.id).all()
        assert len(deliveries) == 2
        assert all(d.status == DeliveryStatus.CANCELLED for d in deliveries)

    def test_cancel_approved_after_deadline(self, db, customer, pending_request):
        review_request(pending_request.id, 'approve')
        now = datetime.combine(_day(1), datetime.min.time()) + timedelta(hours=13)

        with pytest.raises(BadRequestError):
            cancel_request(pending_request.id, customer.id, now=now)
        assert pending_request.status == AdhocRequestStatus.APPROVED
        assert _capacity_for(_day(2))['current_approved'] == 1

    def test_default_now_is_utc(self, db, customer, pending_request, monkeypatch):
        review_request(pending_request.id, 'approve')
        midnight = datetime.combine(_day(1), datetime.min.time())

        class _Clock(datetime):
            @classmethod
            def utcnow(cls):
                return midnight + timedelta(hours=13)

            @classmethod
            def now(cls, tz=None):
                return midnight + timedelta(hours=1)

        monkeypatch.setattr(adhoc_service, 'datetime', _Clock)

        with pytest.raises(BadRequestError):
            cancel_request(pending_request.id, customer.id)
        assert pending_request.status == AdhocRequestStatus.APPROVED

    def test_cancel_rejected_not_allowed(self, db, customer, pending_request):
        review_request(pending_request.id, 'reject')
        with pytest.raises(BadRequestError):
            cancel_request(pending_request.id, customer.id)

    def test_cancel_foreign_request(self, db, other_customer, pending_request):
        with pytest.raises(ForbiddenError):
            cancel_request(pending_request.id, other_customer.id)


class TestAnalytics:

    def test_counts_and_revenue(self, db, customer, request_data):
        approved = create_request(customer.id, request_data, today=TODAY)
        rejected = create_request(customer.id, request_data, today=TODAY)
        review_request(approved.id, 'approve')
        review_request(rejected.id, 'reject')

        stats = get_analytics(date(2000, 1, 1), date(2100, 1, 1))

        assert stats['total_requests'] == 2
        assert stats['status_counts']['APPROVED'] == 1
        assert stats['status_counts']['REJECTED'] == 1
        assert stats['approval_rate'] == 50.0
        assert stats['approved_items'] == 2
        assert stats['total_revenue'] == Decimal('150.00')
        assert stats['top_products'][0]['name'] == 'Mleko 1L'
        assert stats['top_products'][0]['count'] == 2
