"""
Subscription Service - zivotni ciklus pretplate.

create / update / pause / resume / cancel + dnevno osvezavanje statusa.
Svaka izmena upisuje SubscriptionHistory zapis u istom commit-u.
"""

import logging
from datetime import date, datetime, timedelta

from ..extensions import db
from ..errors import BadRequestError, ForbiddenError, NotFoundError
from ..models import (
    Address, CustomerProfile, Delivery, DeliveryStatus, DeliveryType, Product,
    Subscription, SubscriptionChangeType, SubscriptionFrequency,
    SubscriptionHistory, SubscriptionStatus
)
from ..schemas import parse_input
from ..schemas.subscription import SubscriptionCreate, SubscriptionUpdate
from .delivery_dates import parse_custom_days
from .settings_service import load_settings

logger = logging.getLogger(__name__)


def _snapshot(subscription):
    """JSON-serijalizabilan snimak polja koja se menjaju."""
    return {
        'product_id': subscription.product_id,
        'address_id': subscription.address_id,
        'quantity': str(subscription.quantity),
        'frequency': subscription.frequency.value,
        'custom_days': subscription.custom_days,
        'end_date': subscription.end_date.isoformat() if subscription.end_date else None,
    }


def _add_history(subscription, change_type, previous_values=None, new_values=None, changed_by=None):
    db.session.add(SubscriptionHistory(
        subscription_id=subscription.id,
        change_type=change_type,
        previous_values=previous_values,
        new_values=new_values,
        changed_by=changed_by,
    ))


def get_subscription(subscription_id, customer_id=None):
    """
    Dohvata pretplatu, uz proveru vlasnistva ako je customer_id dat.

    Raises:
        NotFoundError: Pretplata ne postoji
        ForbiddenError: Pretplata pripada drugom kupcu
    """
    subscription = db.session.get(Subscription, subscription_id)
    if subscription is None:
        raise NotFoundError('Subscription not found')
    if customer_id is not None and subscription.customer_id != customer_id:
        raise ForbiddenError('Access denied')
    return subscription


def _get_active_product(product_id):
    product = db.session.get(Product, product_id)
    if product is None or not product.is_active:
        raise NotFoundError('Product not found or inactive')
    return product


def _get_owned_address(address_id, customer_id):
    address = Address.query.filter_by(id=address_id, customer_id=customer_id, is_active=True).first()
    if address is None:
        raise NotFoundError('Address not found')
    return address


def create_subscription(customer_id, data, today=None):
    """
    Kreira novu ACTIVE pretplatu.

    Args:
        customer_id: ID kupca
        data: dict ili SubscriptionCreate
        today: Danasnji datum (default: date.today())

    Raises:
        NotFoundError: Kupac, proizvod ili adresa ne postoje
        BadRequestError: Pocetak pre sutra, kraj pre pocetka, neispravni CUSTOM dani
    """
    data = parse_input(SubscriptionCreate, data)
    today = today or date.today()

    customer = db.session.get(CustomerProfile, customer_id)
    if customer is None:
        raise NotFoundError('Customer not found')
    _get_active_product(data.product_id)
    _get_owned_address(data.address_id, customer_id)

    if data.start_date < today + timedelta(days=1):
        raise BadRequestError('Start date must be at least tomorrow')
    if data.end_date and data.end_date < data.start_date:
        raise BadRequestError('End date must not be before start date')

    custom_days = None
    if data.frequency == SubscriptionFrequency.CUSTOM:
        parse_custom_days(data.custom_days)
        custom_days = data.custom_days

    subscription = Subscription(
        customer_id=customer_id,
        product_id=data.product_id,
        address_id=data.address_id,
        quantity=data.quantity,
        frequency=data.frequency,
        custom_days=custom_days,
        start_date=data.start_date,
        end_date=data.end_date,
        status=SubscriptionStatus.ACTIVE,
    )
    db.session.add(subscription)
    db.session.flush()

    new_values = _snapshot(subscription)
    new_values['start_date'] = subscription.start_date.isoformat()
    _add_history(subscription, SubscriptionChangeType.CREATED, new_values=new_values, changed_by=customer_id)
    db.session.commit()

    logger.info(f"Subscription {subscription.id} created for customer {customer_id}")
    return subscription


def update_subscription(subscription_id, customer_id, data, today=None):
    """
    Menja proizvod, adresu, kolicinu, ucestalost ili kraj pretplate.

    Prelaz sa CUSTOM na drugu ucestalost brise custom_days.
    Nova kolicina i proizvod se prepisuju na SCHEDULED isporuke posle danas;
    ranije isporuke zadrzavaju proizvod sa kojim su kreirane.
    """
    data = parse_input(SubscriptionUpdate, data)
    today = today or date.today()
    subscription = get_subscription(subscription_id, customer_id)

    if subscription.status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
        raise BadRequestError('Cannot modify cancelled or expired subscription')

    previous_values = _snapshot(subscription)

    if data.product_id is not None:
        _get_active_product(data.product_id)
    if data.address_id is not None:
        _get_owned_address(data.address_id, subscription.customer_id)
    if data.end_date is not None and data.end_date < subscription.start_date:
        raise BadRequestError('End date must not be before start date')

    frequency = data.frequency or subscription.frequency
    custom_days = None
    if frequency == SubscriptionFrequency.CUSTOM:
        custom_days = data.custom_days if data.custom_days is not None else subscription.custom_days
        parse_custom_days(custom_days)

    if data.product_id is not None:
        subscription.product_id = data.product_id
    if data.address_id is not None:
        subscription.address_id = data.address_id
    if data.quantity is not None:
        subscription.quantity = data.quantity
    if data.end_date is not None:
        subscription.end_date = data.end_date
    subscription.frequency = frequency
    subscription.custom_days = custom_days

    if data.product_id is not None or data.quantity is not None:
        Delivery.query.filter(
            Delivery.subscription_id == subscription.id,
            Delivery.status == DeliveryStatus.SCHEDULED,
            Delivery.delivery_date > today
        ).update({
            Delivery.product_id: subscription.product_id,
            Delivery.scheduled_quantity: subscription.quantity,
        }, synchronize_session=False)

    _add_history(
        subscription, SubscriptionChangeType.MODIFIED,
        previous_values=previous_values,
        new_values=_snapshot(subscription),
        changed_by=customer_id
    )
    db.session.commit()

    logger.info(f"Subscription {subscription.id} modified")
    return subscription


def pause_subscription(subscription_id, customer_id, start, end, today=None, settings=None):
    """
    Pauzira ACTIVE pretplatu za inkluzivni period [start, end].

    Planirane (SCHEDULED) isporuke u periodu se brisu.

    Raises:
        BadRequestError: Nije ACTIVE, pocetak u proslosti, kraj pre pocetka,
            period duzi od max_pause_days
    """
    today = today or date.today()
    settings = settings or load_settings()
    subscription = get_subscription(subscription_id, customer_id)

    if subscription.status != SubscriptionStatus.ACTIVE:
        raise BadRequestError('Only active subscriptions can be paused')
    if start < today:
        raise BadRequestError('Pause start date cannot be in the past')
    if end < start:
        raise BadRequestError('Pause end date must not be before start date')
    if (end - start).days + 1 > settings.max_pause_days:
        raise BadRequestError(f'Maximum pause duration is {settings.max_pause_days} days')

    subscription.status = SubscriptionStatus.PAUSED
    subscription.pause_start_date = start
    subscription.pause_end_date = end

    removed = Delivery.query.filter(
        Delivery.subscription_id == subscription.id,
        Delivery.delivery_type == DeliveryType.REGULAR,
        Delivery.status == DeliveryStatus.SCHEDULED,
        Delivery.delivery_date >= start,
        Delivery.delivery_date <= end
    ).delete(synchronize_session=False)

    _add_history(
        subscription, SubscriptionChangeType.PAUSED,
        new_values={'pause_start_date': start.isoformat(), 'pause_end_date': end.isoformat()},
        changed_by=customer_id
    )
    db.session.commit()

    logger.info(f"Subscription {subscription.id} paused {start}..{end}, {removed} deliveries removed")
    return subscription


def resume_subscription(subscription_id, customer_id):
    """Nastavlja PAUSED pretplatu (brise period pauze)."""
    subscription = get_subscription(subscription_id, customer_id)

    if subscription.status != SubscriptionStatus.PAUSED:
        raise BadRequestError('Only paused subscriptions can be resumed')

    previous_values = {
        'pause_start_date': subscription.pause_start_date.isoformat() if subscription.pause_start_date else None,
        'pause_end_date': subscription.pause_end_date.isoformat() if subscription.pause_end_date else None,
    }
    subscription.status = SubscriptionStatus.ACTIVE
    subscription.pause_start_date = None
    subscription.pause_end_date = None

    _add_history(subscription, SubscriptionChangeType.RESUMED,
                 previous_values=previous_values, changed_by=customer_id)
    db.session.commit()

    logger.info(f"Subscription {subscription.id} resumed")
    return subscription


def cancel_subscription(subscription_id, customer_id, reason=None, today=None):
    """
    Otkazuje pretplatu. Buduce SCHEDULED isporuke postaju CANCELLED.

    Raises:
        BadRequestError: Pretplata je vec otkazana
    """
    today = today or date.today()
    subscription = get_subscription(subscription_id, customer_id)

    if subscription.status == SubscriptionStatus.CANCELLED:
        raise BadRequestError('Subscription is already cancelled')

    previous_status = subscription.status.value
    subscription.status = SubscriptionStatus.CANCELLED
    subscription.cancellation_reason = reason
    subscription.cancelled_at = datetime.utcnow()
    subscription.pause_start_date = None
    subscription.pause_end_date = None

    cancelled = Delivery.query.filter(
        Delivery.subscription_id == subscription.id,
        Delivery.status == DeliveryStatus.SCHEDULED,
        Delivery.delivery_date > today
    ).update({Delivery.status: DeliveryStatus.CANCELLED}, synchronize_session=False)

    _add_history(
        subscription, SubscriptionChangeType.CANCELLED,
        previous_values={'status': previous_status},
        new_values={'status': SubscriptionStatus.CANCELLED.value, 'reason': reason},
        changed_by=customer_id
    )
    db.session.commit()

    logger.info(f"Subscription {subscription.id} cancelled, {cancelled} future deliveries cancelled")
    return subscription


def refresh_subscription_statuses(today=None):
    """
    Dnevno osvezavanje statusa:
    1. PAUSED ciji je period pauze zavrsen pre danas -> ACTIVE
    2. ACTIVE/PAUSED ciji je end_date pre danas -> EXPIRED

    Returns:
        dict: {'resumed', 'expired', 'errors': [...]}
    """
    today = today or date.today()
    stats = {'resumed': 0, 'expired': 0, 'errors': []}

    to_resume = Subscription.query.filter(
        Subscription.status == SubscriptionStatus.PAUSED,
        Subscription.pause_end_date < today
    ).all()
    for subscription in to_resume:
        try:
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.pause_start_date = None
            subscription.pause_end_date = None
            _add_history(subscription, SubscriptionChangeType.RESUMED)
            db.session.commit()
            stats['resumed'] += 1
        except Exception as e:
            db.session.rollback()
            logger.error(f"Auto-resume failed for subscription {subscription.id}: {e}")
            stats['errors'].append(f'Subscription {subscription.id}: {str(e)}')

    to_expire = Subscription.query.filter(
        Subscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED]),
        Subscription.end_date.isnot(None),
        Subscription.end_date < today
    ).all()
    for subscription in to_expire:
        try:
            previous_status = subscription.status.value
            subscription.status = SubscriptionStatus.EXPIRED
            subscription.pause_start_date = None
            subscription.pause_end_date = None
            _add_history(
                subscription, SubscriptionChangeType.EXPIRED,
                previous_values={'status': previous_status},
                new_values={'status': SubscriptionStatus.EXPIRED.value}
            )
            db.session.commit()
            stats['expired'] += 1
        except Exception as e:
            db.session.rollback()
            logger.error(f"Expiry failed for subscription {subscription.id}: {e}")
            stats['errors'].append(f'Subscription {subscription.id}: {str(e)}')

    logger.info(f"Subscription refresh: {stats['resumed']} resumed, {stats['expired']} expired")
    return stats
