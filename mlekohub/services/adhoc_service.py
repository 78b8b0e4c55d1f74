"""
Adhoc Service - jednokratni zahtevi za dostavu.

Tok: kupac salje zahtev (PENDING) -> admin odobrava / odbija / delimicno
odobrava -> za odobrene stavke se zauzima kapacitet dana i kreiraju
ADHOC isporuke. Kupac moze otkazati PENDING zahtev uvek, a APPROVED
samo do roka (adhoc_cancel_before_hours pre prve isporuke).
"""

import logging
import secrets
from collections import Counter
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from ..extensions import db
from ..errors import BadRequestError, ForbiddenError, NotFoundError
from ..models import (
    Address, AdhocItemStatus, AdhocRequest, AdhocRequestItem, AdhocRequestStatus,
    CustomerProfile, Delivery, DeliveryStatus, Product
)
from ..schemas import parse_input
from ..schemas.adhoc import AdhocRequestCreate, ItemDecision
from .capacity_service import get_blocked_dates, increment_capacity
from .delivery_service import create_adhoc_deliveries
from .settings_service import load_settings

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = ('approve', 'reject', 'partial')

DEFAULT_REJECTION_REASON = 'Rejected by admin'


def generate_request_number(now=None):
    """Jedinstveni broj zahteva: ADH-20260115-3FA9C1"""
    now = now or datetime.utcnow()
    return f'ADH-{now:%Y%m%d}-{secrets.token_hex(3).upper()}'


def derive_request_status(item_statuses):
    """
    Status zahteva na osnovu statusa stavki.

    - sve APPROVED -> APPROVED
    - sve REJECTED -> REJECTED
    - mesavina APPROVED/REJECTED -> PARTIALLY_APPROVED
    - bilo koja PENDING (ili nema stavki) -> PENDING
    """
    statuses = list(item_statuses)
    if not statuses or AdhocItemStatus.PENDING in statuses:
        return AdhocRequestStatus.PENDING
    if all(s == AdhocItemStatus.APPROVED for s in statuses):
        return AdhocRequestStatus.APPROVED
    if all(s == AdhocItemStatus.REJECTED for s in statuses):
        return AdhocRequestStatus.REJECTED
    return AdhocRequestStatus.PARTIALLY_APPROVED


def get_request(request_id, customer_id=None):
    """
    Dohvata zahtev, uz proveru vlasnistva ako je customer_id dat.

    Raises:
        NotFoundError / ForbiddenError
    """
    request = db.session.get(AdhocRequest, request_id)
    if request is None:
        raise NotFoundError('Adhoc request not found')
    if customer_id is not None and request.customer_id != customer_id:
        raise ForbiddenError('Access denied')
    return request


def _validate_items(customer_id, data, today, settings):
    """
    Validira adresu i stavke zahteva.

    Returns:
        (lista AdhocRequestItem, ukupna procena)
    """
    address = Address.query.filter_by(id=data.address_id, customer_id=customer_id, is_active=True).first()
    if address is None:
        raise NotFoundError('Address not found')

    min_date = today + timedelta(days=settings.adhoc_min_advance_days)
    max_date = today + timedelta(days=settings.adhoc_max_advance_days)
    blocked = get_blocked_dates([item.requested_date for item in data.items])

    items = []
    total = Decimal('0')
    for item in data.items:
        if item.requested_date < min_date:
            raise BadRequestError(
                f'Invalid date {item.requested_date.isoformat()}: must be at least '
                f'{settings.adhoc_min_advance_days} day(s) in advance'
            )
        if item.requested_date > max_date:
            raise BadRequestError(
                f'Invalid date {item.requested_date.isoformat()}: cannot be more than '
                f'{settings.adhoc_max_advance_days} days in advance'
            )
        if item.requested_date in blocked:
            raise BadRequestError(
                f'Date {item.requested_date.isoformat()} is blocked for adhoc requests: '
                f'{blocked[item.requested_date] or "No reason provided"}'
            )

        product = db.session.get(Product, item.product_id)
        if product is None or not product.is_active:
            raise NotFoundError(f'Product {item.product_id} not found or inactive')
        pricing = product.current_pricing()
        if pricing is None:
            raise BadRequestError(f'No pricing found for product {product.name}')

        unit_price = Decimal(str(pricing.price_per_unit))
        estimated_cost = (unit_price * item.quantity).quantize(Decimal('0.01'))
        total += estimated_cost

        items.append(AdhocRequestItem(
            product_id=product.id,
            requested_date=item.requested_date,
            quantity=item.quantity,
            unit_price=unit_price,
            estimated_cost=estimated_cost,
            status=AdhocItemStatus.PENDING,
        ))

    return items, total.quantize(Decimal('0.01'))


def create_request(customer_id, data, today=None, settings=None):
    """
    Kreira PENDING adhoc zahtev.

    Args:
        customer_id: ID kupca
        data: dict ili AdhocRequestCreate
        today: Danasnji datum (default: date.today())

    Raises:
        NotFoundError: Kupac, adresa ili proizvod ne postoje
        BadRequestError: Datum van dozvoljenog opsega, blokiran datum, proizvod bez cene
    """
    data = parse_input(AdhocRequestCreate, data)
    today = today or date.today()
    settings = settings or load_settings()

    if db.session.get(CustomerProfile, customer_id) is None:
        raise NotFoundError('Customer not found')

    items, total = _validate_items(customer_id, data, today, settings)

    request = AdhocRequest(
        request_number=generate_request_number(),
        customer_id=customer_id,
        address_id=data.address_id,
        status=AdhocRequestStatus.PENDING,
        total_estimated_cost=total,
        notes=data.notes,
        items=items,
    )
    db.session.add(request)
    db.session.commit()

    logger.info(f"Adhoc request {request.request_number} created ({len(items)} items, {total})")
    return request


def update_request(request_id, customer_id, data, today=None, settings=None):
    """
    Menja PENDING zahtev: stavke se brisu i kreiraju ponovo.

    Raises:
        BadRequestError: Zahtev nije PENDING (ili validacija stavki)
    """
    data = parse_input(AdhocRequestCreate, data)
    today = today or date.today()
    settings = settings or load_settings()

    request = get_request(request_id, customer_id)
    if request.status != AdhocRequestStatus.PENDING:
        raise BadRequestError('Only pending requests can be updated')

    items, total = _validate_items(customer_id, data, today, settings)

    request.items.clear()
    db.session.flush()

    request.items.extend(items)
    request.address_id = data.address_id
    request.total_estimated_cost = total
    request.notes = data.notes
    db.session.commit()

    logger.info(f"Adhoc request {request.request_number} updated ({len(items)} items)")
    return request


def cancel_request(request_id, customer_id=None, now=None, settings=None):
    """
    Otkazuje zahtev.

    PENDING - uvek. APPROVED - samo ako je do prve odobrene isporuke (00:00)
    ostalo vise od adhoc_cancel_before_hours; tada se oslobadja kapacitet
    i SCHEDULED isporuke zahteva postaju CANCELLED.

    Raises:
        BadRequestError: Rok prosao ili status ne dozvoljava otkaz
    """
    now = now or datetime.utcnow()
    settings = settings or load_settings()
    request = get_request(request_id, customer_id)

    if request.status == AdhocRequestStatus.APPROVED:
        approved_items = [i for i in request.items if i.status == AdhocItemStatus.APPROVED]
        if approved_items:
            earliest = min(i.requested_date for i in approved_items)
            deadline = datetime.combine(earliest, time.min) - timedelta(hours=settings.adhoc_cancel_before_hours)
            if now > deadline:
                raise BadRequestError(
                    f'Cannot cancel approved request less than '
                    f'{settings.adhoc_cancel_before_hours} hours before delivery'
                )
        try:
            for item in approved_items:
                increment_capacity(item.requested_date, -1, settings=settings)
            Delivery.query.filter(
                Delivery.adhoc_request_id == request.id,
                Delivery.status == DeliveryStatus.SCHEDULED
            ).update({Delivery.status: DeliveryStatus.CANCELLED}, synchronize_session=False)
        except Exception:
            db.session.rollback()
            raise
    elif request.status != AdhocRequestStatus.PENDING:
        raise BadRequestError('Only pending or approved requests can be cancelled')

    request.status = AdhocRequestStatus.CANCELLED
    request.cancelled_at = datetime.utcnow()
    db.session.commit()

    logger.info(f"Adhoc request {request.request_number} cancelled")
    return request


def _parse_decisions(request, item_decisions):
    """Odluke moraju pokriti tacno sve stavke zahteva."""
    if not item_decisions:
        raise BadRequestError('Item decisions are required for partial review')

    decisions = [parse_input(ItemDecision, d) for d in item_decisions]
    item_ids = {item.id for item in request.items}
    decided_ids = [d.item_id for d in decisions]

    unknown = set(decided_ids) - item_ids
    if unknown:
        raise BadRequestError(f'Unknown item ids: {sorted(unknown)}')
    if len(decided_ids) != len(set(decided_ids)):
        raise BadRequestError('Duplicate item decisions')
    missing = item_ids - set(decided_ids)
    if missing:
        raise BadRequestError(f'Missing decisions for items: {sorted(missing)}')

    return {d.item_id: d for d in decisions}


def review_request(request_id, action, admin_user_id=None, item_decisions=None,
                   admin_notes=None, override_capacity=False, settings=None):
    """
    Admin pregled PENDING zahteva.

    Args:
        action: 'approve', 'reject' ili 'partial'
        item_decisions: Za 'partial' - lista {item_id, approved, rejection_reason}
        override_capacity: Odobri i preko limita / blokade dana

    Svako odobrenje zauzima kapacitet atomskim upsert-om. Ako bilo koje
    zauzimanje ne uspe, ceo pregled se ponistava (rollback).

    Raises:
        BadRequestError: Nepoznata akcija, zahtev nije PENDING, pun kapacitet,
            neispravne odluke po stavkama
    """
    if action not in REVIEW_ACTIONS:
        raise BadRequestError(f'Invalid review action: {action}')

    settings = settings or load_settings()
    request = get_request(request_id)
    if request.status != AdhocRequestStatus.PENDING:
        raise BadRequestError('Only pending requests can be reviewed')

    if action == 'partial':
        decisions = _parse_decisions(request, item_decisions)

    try:
        for item in request.items:
            if action == 'approve':
                approved = True
                reason = None
            elif action == 'reject':
                approved = False
                reason = admin_notes or DEFAULT_REJECTION_REASON
            else:
                decision = decisions[item.id]
                approved = decision.approved
                reason = decision.rejection_reason or admin_notes or DEFAULT_REJECTION_REASON

            if approved:
                increment_capacity(
                    item.requested_date, 1,
                    enforce_limit=not override_capacity,
                    settings=settings
                )
                item.status = AdhocItemStatus.APPROVED
                item.rejection_reason = None
            else:
                item.status = AdhocItemStatus.REJECTED
                item.rejection_reason = reason

        request.status = derive_request_status(item.status for item in request.items)
        request.admin_notes = admin_notes
        request.reviewed_by = admin_user_id
        request.reviewed_at = datetime.utcnow()
        db.session.flush()

        deliveries = create_adhoc_deliveries(request)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Adhoc request {request.request_number} reviewed ({action}): "
        f"{request.status.value}, {deliveries} deliveries"
    )
    return request


def get_analytics(start: date, end: date):
    """
    Statistika zahteva kreiranih u [start, end].

    Returns:
        dict sa total_requests, status_counts, approval_rate (%),
        approved_items, total_revenue, top_products (top 5 po broju stavki)
    """
    requests = AdhocRequest.query.filter(
        AdhocRequest.created_at >= datetime.combine(start, time.min),
        AdhocRequest.created_at <= datetime.combine(end, time.max)
    ).all()

    status_counts = {s.value: 0 for s in AdhocRequestStatus}
    product_counts = Counter()
    product_names = {}
    approved_items = 0
    total_revenue = Decimal('0')

    for request in requests:
        status_counts[request.status.value] += 1
        if request.status not in (AdhocRequestStatus.APPROVED, AdhocRequestStatus.PARTIALLY_APPROVED):
            continue
        for item in request.items:
            if item.status != AdhocItemStatus.APPROVED:
                continue
            approved_items += 1
            total_revenue += Decimal(str(item.estimated_cost))
            product_counts[item.product_id] += 1
            product_names[item.product_id] = item.product.name

    total_requests = len(requests)
    approval_rate = 0.0
    if total_requests:
        approval_rate = status_counts[AdhocRequestStatus.APPROVED.value] / total_requests * 100

    return {
        'total_requests': total_requests,
        'status_counts': status_counts,
        'approval_rate': round(approval_rate, 2),
        'approved_items': approved_items,
        'total_revenue': total_revenue.quantize(Decimal('0.01')),
        'top_products': [
            {'product_id': product_id, 'name': product_names[product_id], 'count': count}
            for product_id, count in product_counts.most_common(5)
        ],
    }
