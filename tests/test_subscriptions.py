"""
Subscription testovi - kreiranje, izmena, pauza, nastavak, otkaz, dnevno osvezavanje.
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal

from mlekohub.errors import BadRequestError, ForbiddenError, NotFoundError
from mlekohub.models import (
    Delivery, DeliveryStatus, SubscriptionChangeType, SubscriptionFrequency,
    SubscriptionHistory, SubscriptionStatus
)
from mlekohub.services.delivery_service import generate_schedule
from mlekohub.services.subscription_service import (
    cancel_subscription, create_subscription, pause_subscription,
    refresh_subscription_statuses, resume_subscription, update_subscription
)


TODAY = date(2025, 1, 1)


def _day(offset):
    return TODAY + timedelta(days=offset)


@pytest.fixture
def subscription_data(address, product):
    return {
        'product_id': product.id,
        'address_id': address.id,
        'quantity': '1.5',
        'frequency': 'DAILY',
        'start_date': _day(1),
    }


@pytest.fixture
def active_subscription(db, customer, subscription_data):
    return create_subscription(customer.id, subscription_data, today=TODAY)


def _history(subscription):
    return SubscriptionHistory.query.filter_by(subscription_id=subscription.id).order_by(SubscriptionHistory.id).all()


class TestCreateSubscription:

    def test_create_active_with_history(self, db, customer, subscription_data):
        subscription = create_subscription(customer.id, subscription_data, today=TODAY)

        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.quantity == Decimal('1.5')
        assert subscription.custom_days is None
        history = _history(subscription)
        assert [h.change_type for h in history] == [SubscriptionChangeType.CREATED]

    def test_start_must_be_at_least_tomorrow(self, db, customer, subscription_data):
        subscription_data['start_date'] = TODAY
        with pytest.raises(BadRequestError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_end_before_start(self, db, customer, subscription_data):
        subscription_data['end_date'] = TODAY
        with pytest.raises(BadRequestError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_custom_requires_days(self, db, customer, subscription_data):
        subscription_data['frequency'] = 'CUSTOM'
        with pytest.raises(BadRequestError):
            create_subscription(customer.id, subscription_data, today=TODAY)

        subscription_data['custom_days'] = ['Monday', 'someday']
        with pytest.raises(BadRequestError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_custom_days_normalized(self, db, customer, subscription_data):
        subscription_data['frequency'] = 'CUSTOM'
        subscription_data['custom_days'] = ['Monday', ' Friday ']
        subscription = create_subscription(customer.id, subscription_data, today=TODAY)
        assert subscription.custom_days == ['monday', 'friday']

    def test_invalid_quantity(self, db, customer, subscription_data):
        subscription_data['quantity'] = 0
        with pytest.raises(BadRequestError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_foreign_address(self, db, customer, other_address, subscription_data):
        subscription_data['address_id'] = other_address.id
        with pytest.raises(NotFoundError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_inactive_product(self, db, customer, product, subscription_data):
        product.is_active = False
        db.session.flush()
        with pytest.raises(NotFoundError):
            create_subscription(customer.id, subscription_data, today=TODAY)

    def test_unknown_customer(self, db, subscription_data):
        with pytest.raises(NotFoundError):
            create_subscription(999, subscription_data, today=TODAY)


class TestUpdateSubscription:

    def test_update_quantity_records_previous_values(self, db, customer, active_subscription):
        update_subscription(active_subscription.id, customer.id, {'quantity': 3})

        assert active_subscription.quantity == Decimal('3')
        modified = _history(active_subscription)[-1]
        assert modified.change_type == SubscriptionChangeType.MODIFIED
        assert Decimal(modified.previous_values['quantity']) == Decimal('1.5')
        assert Decimal(modified.new_values['quantity']) == Decimal('3')

    def test_switching_from_custom_clears_days(self, db, customer, active_subscription):
        update_subscription(active_subscription.id, customer.id,
                            {'frequency': 'CUSTOM', 'custom_days': ['saturday']})
        assert active_subscription.custom_days == ['saturday']

        update_subscription(active_subscription.id, customer.id, {'frequency': 'WEEKDAYS'})
        assert active_subscription.frequency == SubscriptionFrequency.WEEKDAYS
        assert active_subscription.custom_days is None

    def test_switch_to_product(self, db, customer, second_product, active_subscription):
        update_subscription(active_subscription.id, customer.id, {'product_id': second_product.id})
        assert active_subscription.product_id == second_product.id

    def test_switch_updates_only_future_scheduled_deliveries(self, db, customer, product, second_product,
                                                             active_subscription):
        generate_schedule(_day(1), _day(5))

        update_subscription(active_subscription.id, customer.id,
                            {'product_id': second_product.id, 'quantity': 2}, today=_day(2))

        rows = {d.delivery_date: d for d in Delivery.query.all()}
        assert rows[_day(1)].product_id == product.id
        assert rows[_day(2)].product_id == product.id
        assert rows[_day(2)].scheduled_quantity == Decimal('1.5')
        assert rows[_day(3)].product_id == second_product.id
        assert rows[_day(5)].scheduled_quantity == Decimal('2')

    def test_cannot_modify_cancelled(self, db, customer, active_subscription):
        cancel_subscription(active_subscription.id, customer.id, today=TODAY)
        with pytest.raises(BadRequestError):
            update_subscription(active_subscription.id, customer.id, {'quantity': 2})

    def test_foreign_subscription(self, db, other_customer, active_subscription):
        with pytest.raises(ForbiddenError):
            update_subscription(active_subscription.id, other_customer.id, {'quantity': 2})

    def test_failed_validation_changes_nothing(self, db, customer, active_subscription):
        with pytest.raises(BadRequestError):
            update_subscription(active_subscription.id, customer.id,
                                {'quantity': 5, 'frequency': 'CUSTOM', 'custom_days': []})
        db.session.refresh(active_subscription)
        assert active_subscription.quantity == Decimal('1.5')


class TestPauseResume:
    """Pauza je inkluzivna, najvise max_pause_days dana."""

    def test_pause_removes_scheduled_deliveries_in_window(self, db, customer, active_subscription):
        generate_schedule(_day(1), _day(10))
        assert Delivery.query.count() == 10

        pause_subscription(active_subscription.id, customer.id, _day(3), _day(5), today=TODAY)

        assert active_subscription.status == SubscriptionStatus.PAUSED
        assert active_subscription.pause_range == (_day(3), _day(5))
        dates = {d.delivery_date for d in Delivery.query.all()}
        assert len(dates) == 7
        assert not dates & {_day(3), _day(4), _day(5)}
        assert _history(active_subscription)[-1].change_type == SubscriptionChangeType.PAUSED

    def test_regenerating_keeps_pause_window_free(self, db, customer, active_subscription):
        pause_subscription(active_subscription.id, customer.id, _day(3), _day(5), today=TODAY)
        generate_schedule(_day(1), _day(7))
        dates = {d.delivery_date for d in Delivery.query.all()}
        assert dates == {_day(1), _day(2), _day(6), _day(7)}

    def test_pause_length_limit_inclusive(self, db, customer, active_subscription):
        with pytest.raises(BadRequestError):
            pause_subscription(active_subscription.id, customer.id, _day(2), _day(32), today=TODAY)

        pause_subscription(active_subscription.id, customer.id, _day(2), _day(31), today=TODAY)
        assert active_subscription.status == SubscriptionStatus.PAUSED

    def test_pause_in_past(self, db, customer, active_subscription):
        with pytest.raises(BadRequestError):
            pause_subscription(active_subscription.id, customer.id, _day(-1), _day(2), today=TODAY)

    def test_pause_end_before_start(self, db, customer, active_subscription):
        with pytest.raises(BadRequestError):
            pause_subscription(active_subscription.id, customer.id, _day(5), _day(4), today=TODAY)

    def test_only_active_can_be_paused(self, db, customer, active_subscription):
        pause_subscription(active_subscription.id, customer.id, _day(3), _day(5), today=TODAY)
        with pytest.raises(BadRequestError):
            pause_subscription(active_subscription.id, customer.id, _day(6), _day(7), today=TODAY)

    def test_resume(self, db, customer, active_subscription):
        pause_subscription(active_subscription.id, customer.id, _day(3), _day(5), today=TODAY)
        resume_subscription(active_subscription.id, customer.id)

        assert active_subscription.status == SubscriptionStatus.ACTIVE
        assert active_subscription.pause_range is None
        assert _history(active_subscription)[-1].change_type == SubscriptionChangeType.RESUMED

    def test_resume_requires_paused(self, db, customer, active_subscription):
        with pytest.raises(BadRequestError):
            resume_subscription(active_subscription.id, customer.id)


class TestCancelSubscription:

    def test_future_deliveries_cancelled(self, db, customer, active_subscription):
        generate_schedule(_day(1), _day(5))

        cancel_subscription(active_subscription.id, customer.id, reason='Selim se', today=_day(2))

        assert active_subscription.status == SubscriptionStatus.CANCELLED
        assert active_subscription.cancellation_reason == 'Selim se'
        statuses = {d.delivery_date: d.status for d in Delivery.query.all()}
        assert statuses[_day(1)] == DeliveryStatus.SCHEDULED
        assert statuses[_day(2)] == DeliveryStatus.SCHEDULED
        assert statuses[_day(3)] == DeliveryStatus.CANCELLED
        assert statuses[_day(5)] == DeliveryStatus.CANCELLED

    def test_cancel_twice(self, db, customer, active_subscription):
        cancel_subscription(active_subscription.id, customer.id, today=TODAY)
        with pytest.raises(BadRequestError):
            cancel_subscription(active_subscription.id, customer.id, today=TODAY)

    def test_cancelled_not_scheduled_again(self, db, customer, active_subscription):
        cancel_subscription(active_subscription.id, customer.id, today=TODAY)
        stats = generate_schedule(_day(1), _day(5))
        assert stats['created'] == 0


class TestRefreshStatuses:

    def test_finished_pause_resumes(self, db, make_subscription):
        subscription = make_subscription(
            status=SubscriptionStatus.PAUSED,
            pause_start_date=_day(1),
            pause_end_date=_day(3)
        )
        db.session.commit()

        stats = refresh_subscription_statuses(today=_day(4))

        assert stats['resumed'] == 1
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.pause_start_date is None

    def test_running_pause_kept(self, db, make_subscription):
        subscription = make_subscription(
            status=SubscriptionStatus.PAUSED,
            pause_start_date=_day(1),
            pause_end_date=_day(3)
        )
        db.session.commit()

        refresh_subscription_statuses(today=_day(3))
        assert subscription.status == SubscriptionStatus.PAUSED

    def test_ended_subscription_expires(self, db, make_subscription):
        ended = make_subscription(start_date=date(2024, 12, 1), end_date=date(2024, 12, 31))
        running = make_subscription(start_date=date(2024, 12, 1), end_date=_day(10))
        db.session.commit()

        stats = refresh_subscription_statuses(today=TODAY)

        assert stats['expired'] == 1
        assert ended.status == SubscriptionStatus.EXPIRED
        assert running.status == SubscriptionStatus.ACTIVE
        assert _history(ended)[-1].change_type == SubscriptionChangeType.EXPIRED
