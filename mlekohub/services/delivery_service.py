"""
Delivery Service - materijalizacija rasporeda i evidencija isporuka.

- try_insert_delivery: insert-or-skip preko UNIQUE (subscription_id, delivery_date)
- materialize_subscription / generate_schedule: idempotentno generisanje
- create_adhoc_deliveries: isporuke za odobrene adhoc stavke
- record_delivery_status / bulk_update_status: evidencija isporuke
"""

import enum
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, NotFoundError
from ..models import (
    CustomerProfile, Delivery, DeliveryType, DeliveryStatus, Holiday,
    Subscription, SubscriptionStatus, Vacation, AdhocItemStatus,
    TERMINAL_DELIVERY_STATUSES
)
from .billing_service import load_deliveries_for_period
from .delivery_dates import calculate_scheduled_deliveries, month_bounds

logger = logging.getLogger(__name__)


class InsertResult(enum.Enum):
    """Ishod pokusaja upisa isporuke."""
    CREATED = 'CREATED'
    ALREADY_EXISTS = 'ALREADY_EXISTS'


def try_insert_delivery(delivery_type, delivery_date, scheduled_quantity, product_id,
                        subscription_id=None, adhoc_item_id=None, adhoc_request_id=None):
    """
    Upisuje SCHEDULED isporuku ako vec ne postoji.

    Insert ide u SAVEPOINT; krsenje UNIQUE constraint-a ponistava samo
    taj savepoint i vraca ALREADY_EXISTS, ostatak transakcije ostaje.

    Returns:
        InsertResult
    """
    try:
        with db.session.begin_nested():
            db.session.add(Delivery(
                delivery_type=delivery_type,
                subscription_id=subscription_id,
                adhoc_item_id=adhoc_item_id,
                adhoc_request_id=adhoc_request_id,
                product_id=product_id,
                delivery_date=delivery_date,
                scheduled_quantity=scheduled_quantity,
                status=DeliveryStatus.SCHEDULED,
            ))
    except IntegrityError:
        logger.debug(
            f"Delivery already exists: subscription={subscription_id}, "
            f"adhoc_item={adhoc_item_id}, date={delivery_date}"
        )
        return InsertResult.ALREADY_EXISTS
    return InsertResult.CREATED


def get_holidays(start: date, end: date):
    """Datumi praznika u [start, end]."""
    return [
        h.date for h in Holiday.query.filter(
            Holiday.date >= start,
            Holiday.date <= end
        ).all()
    ]


def materialize_subscription(subscription, gen_start: date, gen_end: date, holidays=None):
    """
    Kreira REGULAR isporuke pretplate za prozor [gen_start, gen_end].

    Postojece isporuke se preskacu. Ne radi commit.

    Returns:
        dict: {'created': int, 'skipped': int}
    """
    stats = {'created': 0, 'skipped': 0}

    if holidays is None:
        holidays = get_holidays(gen_start, gen_end)

    schedule = calculate_scheduled_deliveries(
        subscription, gen_start, gen_end,
        vacations=subscription.vacations.all(),
        holidays=holidays,
        pause=subscription.pause_range
    )

    for delivery_date in schedule.scheduled_dates:
        result = try_insert_delivery(
            DeliveryType.REGULAR,
            delivery_date,
            subscription.quantity,
            subscription.product_id,
            subscription_id=subscription.id
        )
        if result == InsertResult.CREATED:
            stats['created'] += 1
        else:
            stats['skipped'] += 1

    return stats


def generate_schedule(start: date, end: date):
    """
    Generise isporuke za sve ACTIVE i PAUSED pretplate koje se seku sa prozorom.

    PAUSED pretplate su ukljucene - iskljucuje se samo period pauze.
    Greska jedne pretplate se loguje, rollback-uje i ne prekida batch.

    Returns:
        dict: {'created', 'skipped', 'subscriptions', 'errors': [{'subscription_id', 'error'}]}
    """
    stats = {'created': 0, 'skipped': 0, 'subscriptions': 0, 'errors': []}

    if end < start:
        raise BadRequestError('End date must not be before start date')

    holidays = get_holidays(start, end)
    subscription_ids = [
        s.id for s in Subscription.query.filter(
            Subscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED]),
            Subscription.start_date <= end,
            db.or_(Subscription.end_date.is_(None), Subscription.end_date >= start)
        ).order_by(Subscription.id).all()
    ]

    for subscription_id in subscription_ids:
        try:
            subscription = db.session.get(Subscription, subscription_id)
            result = materialize_subscription(subscription, start, end, holidays=holidays)
            db.session.commit()
            stats['created'] += result['created']
            stats['skipped'] += result['skipped']
            stats['subscriptions'] += 1
        except Exception as e:
            db.session.rollback()
            logger.error(f"Schedule generation failed for subscription {subscription_id}: {e}")
            stats['errors'].append({'subscription_id': subscription_id, 'error': str(e)})

    logger.info(
        f"Schedule {start}..{end}: {stats['created']} created, {stats['skipped']} skipped, "
        f"{stats['subscriptions']} subscriptions, {len(stats['errors'])} errors"
    )
    return stats


def create_adhoc_deliveries(request):
    """
    Kreira ADHOC isporuku za svaku APPROVED stavku zahteva. Ne radi commit.

    Returns:
        Broj kreiranih isporuka
    """
    created = 0
    for item in request.items:
        if item.status != AdhocItemStatus.APPROVED:
            continue
        result = try_insert_delivery(
            DeliveryType.ADHOC,
            item.requested_date,
            item.quantity,
            item.product_id,
            adhoc_item_id=item.id,
            adhoc_request_id=request.id
        )
        if result == InsertResult.CREATED:
            created += 1
    return created


def _apply_status(delivery, status, delivered_quantity=None, notes=None, now=None):
    """Primenjuje prelaz statusa na jednu isporuku (bez commit-a)."""
    if delivery.is_terminal:
        raise BadRequestError(
            f'Delivery {delivery.id} is already {delivery.status.value} and cannot be changed'
        )
    if status == DeliveryStatus.SCHEDULED:
        raise BadRequestError('Delivery cannot be moved back to SCHEDULED')

    if status == DeliveryStatus.DELIVERED:
        quantity = delivery.scheduled_quantity if delivered_quantity is None else Decimal(str(delivered_quantity))
        if quantity <= 0:
            raise BadRequestError('Delivered quantity must be positive')
        delivery.delivered_quantity = quantity
        delivery.delivered_at = now or datetime.utcnow()
    elif status == DeliveryStatus.PARTIAL:
        if delivered_quantity is None:
            raise BadRequestError('Delivered quantity is required for PARTIAL delivery')
        quantity = Decimal(str(delivered_quantity))
        if not (0 < quantity < delivery.scheduled_quantity):
            raise BadRequestError('Partial quantity must be between 0 and the scheduled quantity')
        delivery.delivered_quantity = quantity
        delivery.delivered_at = now or datetime.utcnow()
    else:
        # MISSED / CANCELLED - nista isporuceno
        delivery.delivered_quantity = None
        delivery.delivered_at = None

    delivery.status = status
    if notes is not None:
        delivery.notes = notes


def record_delivery_status(delivery_id, status, delivered_quantity=None, notes=None, now=None):
    """
    Evidentira ishod isporuke.

    DELIVERED bez kolicine upisuje planiranu kolicinu.
    PARTIAL zahteva 0 < delivered_quantity < scheduled_quantity.
    DELIVERED i CANCELLED su konacni.

    Raises:
        NotFoundError: Isporuka ne postoji
        BadRequestError: Nedozvoljen prelaz ili kolicina
    """
    status = DeliveryStatus(status) if not isinstance(status, DeliveryStatus) else status

    delivery = db.session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFoundError('Delivery not found')

    _apply_status(delivery, status, delivered_quantity, notes, now)
    db.session.commit()

    logger.info(f"Delivery {delivery.id} marked {status.value}")
    return delivery


def bulk_update_status(delivery_ids, status, now=None):
    """
    Isti status za vise isporuka. Konacne isporuke se preskacu.

    PARTIAL nije dozvoljen (zahteva kolicinu po isporuci).

    Returns:
        dict: {'updated': int, 'skipped': int}
    """
    status = DeliveryStatus(status) if not isinstance(status, DeliveryStatus) else status
    if status in (DeliveryStatus.PARTIAL, DeliveryStatus.SCHEDULED):
        raise BadRequestError(f'Bulk update to {status.value} is not supported')

    stats = {'updated': 0, 'skipped': 0}
    deliveries = Delivery.query.filter(Delivery.id.in_(list(delivery_ids))).all()
    stats['skipped'] += len(set(delivery_ids)) - len(deliveries)

    for delivery in deliveries:
        if delivery.status in TERMINAL_DELIVERY_STATUSES:
            stats['skipped'] += 1
            continue
        _apply_status(delivery, status, now=now)
        stats['updated'] += 1

    db.session.commit()
    logger.info(f"Bulk delivery update to {status.value}: {stats['updated']} updated, {stats['skipped']} skipped")
    return stats


def get_delivery_summary(day: date):
    """
    Brojevi isporuka za dan po statusu i tipu.

    Returns:
        dict: {'date', 'total', 'by_status': {...}, 'by_type': {...}}
    """
    rows = db.session.query(
        Delivery.status, Delivery.delivery_type, db.func.count(Delivery.id)
    ).filter(
        Delivery.delivery_date == day
    ).group_by(Delivery.status, Delivery.delivery_type).all()

    by_status = {s.value: 0 for s in DeliveryStatus}
    by_type = {t.value: 0 for t in DeliveryType}
    total = 0
    for status, delivery_type, count in rows:
        by_status[status.value] += count
        by_type[delivery_type.value] += count
        total += count

    return {
        'date': day.isoformat(),
        'total': total,
        'by_status': by_status,
        'by_type': by_type,
    }


def get_customer_calendar(customer_id, year, month):
    """
    Kalendar kupca za mesec: za svaki dan odmor, praznik, planirane
    pretplate i isporuke koje vec postoje.

    Planirani dani se racunaju za ACTIVE i PAUSED pretplate, pa dan
    u pauzi ili na odmoru nema planiranu pretplatu.

    Returns:
        dict: {'customer_id', 'year', 'month', 'days': [...]}

    Raises:
        BadRequestError: Neispravan mesec
        NotFoundError: Kupac ne postoji
    """
    start, end = month_bounds(year, month)
    if db.session.get(CustomerProfile, customer_id) is None:
        raise NotFoundError('Customer not found')

    holidays = {
        h.date: h.name for h in Holiday.query.filter(
            Holiday.date >= start,
            Holiday.date <= end
        ).all()
    }

    vacation_dates = set()
    vacations = Vacation.query.join(Subscription).filter(
        Subscription.customer_id == customer_id,
        Vacation.start_date <= end,
        Vacation.end_date >= start
    ).all()
    for vacation in vacations:
        day = max(vacation.start_date, start)
        while day <= min(vacation.end_date, end):
            vacation_dates.add(day)
            day += timedelta(days=1)

    planned = {}
    subscriptions = Subscription.query.filter(
        Subscription.customer_id == customer_id,
        Subscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED])
    ).order_by(Subscription.id).all()
    for subscription in subscriptions:
        schedule = calculate_scheduled_deliveries(
            subscription, start, end,
            vacations=subscription.vacations.all(),
            holidays=holidays.keys(),
            pause=subscription.pause_range
        )
        for delivery_date in schedule.scheduled_dates:
            planned.setdefault(delivery_date, []).append(subscription.id)

    deliveries = {}
    for delivery in load_deliveries_for_period(customer_id, start, end):
        deliveries.setdefault(delivery.delivery_date, []).append(delivery.to_dict())

    days = []
    day = start
    while day <= end:
        days.append({
            'date': day.isoformat(),
            'is_vacation': day in vacation_dates,
            'is_holiday': day in holidays,
            'holiday_name': holidays.get(day),
            'planned_subscription_ids': planned.get(day, []),
            'deliveries': deliveries.get(day, []),
        })
        day += timedelta(days=1)

    return {
        'customer_id': customer_id,
        'year': start.year,
        'month': start.month,
        'days': days,
    }
