"""
Billing Service - mesecni racuni kupaca.

generate_bill skuplja isporuke kupca za period, racuna iznose po cenama
koje su vazile na dan isporuke, primenjuje kredit iz novcanika i upisuje
racun, stavke i zaduzenje novcanika u jednom commit-u.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import BadRequestError, DuplicateBillError, ForbiddenError, NotFoundError
from ..models import (
    AdhocRequest, Bill, BillItem, BillItemType, BillStatus, CustomerProfile,
    CustomerWallet, Delivery, DeliveryStatus, DeliveryType, Holiday,
    Subscription, SubscriptionStatus, Vacation, WalletReferenceType,
    BILLABLE_DELIVERY_STATUSES
)
from .delivery_dates import month_bounds, overlap_days
from .settings_service import load_settings
from .wallet_service import debit_wallet

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def generate_bill_number(customer_id, period_start: date, period_end: date) -> str:
    """Broj racuna: BILL-20250101-20250131-000042"""
    return f'BILL-{period_start:%Y%m%d}-{period_end:%Y%m%d}-{customer_id:06d}'


def get_bill(bill_id, customer_id=None):
    """
    Dohvata racun, uz proveru vlasnistva ako je customer_id dat.

    Raises:
        NotFoundError / ForbiddenError
    """
    bill = db.session.get(Bill, bill_id)
    if bill is None:
        raise NotFoundError('Bill not found')
    if customer_id is not None and bill.customer_id != customer_id:
        raise ForbiddenError('Access denied')
    return bill


def load_deliveries_for_period(customer_id, start: date, end: date):
    """
    Sve isporuke kupca (redovne i adhoc) sa datumom u [start, end].

    Returns:
        list[Delivery] sortirano po datumu
    """
    return Delivery.query.outerjoin(
        Subscription, Delivery.subscription_id == Subscription.id
    ).outerjoin(
        AdhocRequest, Delivery.adhoc_request_id == AdhocRequest.id
    ).filter(
        db.or_(
            Subscription.customer_id == customer_id,
            AdhocRequest.customer_id == customer_id
        ),
        Delivery.delivery_date >= start,
        Delivery.delivery_date <= end
    ).order_by(Delivery.delivery_date, Delivery.id).all()


def _count_vacation_days(customer_id, start: date, end: date) -> int:
    vacations = Vacation.query.join(Subscription).filter(
        Subscription.customer_id == customer_id,
        Vacation.start_date <= end,
        Vacation.end_date >= start
    ).all()
    return sum(overlap_days(v.start_date, v.end_date, start, end) for v in vacations)


def _count_holidays(start: date, end: date) -> int:
    return Holiday.query.filter(Holiday.date >= start, Holiday.date <= end).count()


def _regular_unit_price(delivery, prices):
    """Cena proizvoda isporuke na dan isporuke; `prices` je kes po (proizvod, dan)."""
    key = (delivery.product_id, delivery.delivery_date)
    if key not in prices:
        pricing = delivery.product.pricing_on(delivery.delivery_date)
        prices[key] = Decimal(str(pricing.price_per_unit)) if pricing else Decimal('0')
    return prices[key]


class _LineAccumulator:
    """Zbir za jednu stavku racuna (poreklo, proizvod)."""

    def __init__(self, item_type, product, subscription_id):
        self.item_type = item_type
        self.product = product
        self.subscription_id = subscription_id
        self.quantity = Decimal('0')
        self.amount = Decimal('0')
        self.prices = set()

    def add(self, quantity, unit_price, subscription_id=None):
        self.quantity += quantity
        self.amount += quantity * unit_price
        self.prices.add(unit_price)
        if subscription_id != self.subscription_id:
            # Vise pretplata za isti proizvod - stavka nije vezana za jednu
            self.subscription_id = None

    def to_bill_item(self):
        if len(self.prices) == 1:
            unit_price = next(iter(self.prices))
        else:
            unit_price = self.amount / self.quantity
        label = 'Regular Delivery' if self.item_type == BillItemType.REGULAR else 'Ad-hoc Delivery'
        return BillItem(
            item_type=self.item_type,
            product_id=self.product.id,
            subscription_id=self.subscription_id,
            description=f'{self.product.name} - {label}',
            quantity=self.quantity,
            unit_price=Decimal(unit_price).quantize(CENT),
            total_price=self.amount.quantize(CENT),
        )


def generate_bill(customer_id, period_start: date, period_end: date, settings=None):
    """
    Generise racun za kupca i period.

    Naplacuju se samo DELIVERED i PARTIAL isporuke (isporucena kolicina,
    a ako nije upisana - planirana). REGULAR po ceni na dan isporuke,
    ADHOC po ceni snimljenoj u stavci zahteva.

    subtotal = regular + adhoc
    tax = subtotal * tax_percentage / 100
    credits_applied = min(stanje novcanika, subtotal + tax)
    total = subtotal + tax - credits_applied

    Returns:
        Bill

    Raises:
        BadRequestError: Neispravan period
        NotFoundError: Kupac ne postoji
        DuplicateBillError: Racun za period vec postoji
    """
    if period_end < period_start:
        raise BadRequestError('Billing period end must not be before start')
    settings = settings or load_settings()

    existing = Bill.query.filter_by(
        customer_id=customer_id,
        billing_period_start=period_start,
        billing_period_end=period_end
    ).first()
    if existing:
        raise DuplicateBillError()

    if db.session.get(CustomerProfile, customer_id) is None:
        raise NotFoundError('Customer not found')

    deliveries = load_deliveries_for_period(customer_id, period_start, period_end)

    stats = {'scheduled': 0, 'actual': 0, 'missed': 0, 'adhoc': 0}
    regular_subtotal = Decimal('0')
    adhoc_amount = Decimal('0')
    lines = OrderedDict()
    prices = {}

    for delivery in deliveries:
        stats['scheduled'] += 1

        if delivery.delivery_type == DeliveryType.REGULAR:
            if delivery.status == DeliveryStatus.MISSED:
                stats['missed'] += 1
                continue
            if delivery.status not in BILLABLE_DELIVERY_STATUSES:
                continue
            stats['actual'] += 1
            product = delivery.product
            unit_price = _regular_unit_price(delivery, prices)
            item_type = BillItemType.REGULAR
            subscription_id = delivery.subscription_id
        else:
            if delivery.status not in BILLABLE_DELIVERY_STATUSES:
                continue
            stats['adhoc'] += 1
            product = delivery.product
            unit_price = Decimal(str(delivery.adhoc_item.unit_price))
            item_type = BillItemType.ADHOC
            subscription_id = None

        quantity = Decimal(str(delivery.billable_quantity))
        if item_type == BillItemType.REGULAR:
            regular_subtotal += quantity * unit_price
        else:
            adhoc_amount += quantity * unit_price

        key = (item_type, product.id)
        if key not in lines:
            lines[key] = _LineAccumulator(item_type, product, subscription_id)
        lines[key].add(quantity, unit_price, subscription_id)

    regular_subtotal = regular_subtotal.quantize(CENT)
    adhoc_amount = adhoc_amount.quantize(CENT)
    subtotal = regular_subtotal + adhoc_amount
    tax_amount = (subtotal * settings.tax_percentage / 100).quantize(CENT)
    gross = subtotal + tax_amount

    wallet = CustomerWallet.query.filter_by(customer_id=customer_id).with_for_update().first()
    wallet_balance = Decimal(str(wallet.balance)) if wallet else Decimal('0')
    credits_applied = min(wallet_balance, gross)
    total_amount = gross - credits_applied

    bill = Bill(
        bill_number=generate_bill_number(customer_id, period_start, period_end),
        customer_id=customer_id,
        billing_period_start=period_start,
        billing_period_end=period_end,
        total_scheduled_deliveries=stats['scheduled'],
        actual_deliveries=stats['actual'],
        missed_deliveries=stats['missed'],
        adhoc_deliveries=stats['adhoc'],
        vacation_days=_count_vacation_days(customer_id, period_start, period_end),
        holiday_days=_count_holidays(period_start, period_end),
        regular_subtotal=regular_subtotal,
        adhoc_amount=adhoc_amount,
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=Decimal('0'),
        credits_applied=credits_applied,
        total_amount=total_amount,
        status=BillStatus.PAID if total_amount == 0 else BillStatus.GENERATED,
        due_date=period_end + timedelta(days=settings.bill_due_days),
        generated_at=datetime.utcnow(),
        items=[line.to_bill_item() for line in lines.values()],
    )

    try:
        db.session.add(bill)
        db.session.flush()

        if credits_applied > 0:
            debit_wallet(
                wallet, credits_applied,
                reference_type=WalletReferenceType.BILL_PAYMENT,
                reference_id=bill.id,
                description=f'Applied to bill {bill.bill_number}'
            )
        db.session.commit()
    except IntegrityError:
        # Paralelno generisanje za isti period
        db.session.rollback()
        raise DuplicateBillError()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Bill {bill.bill_number} generated: subtotal={subtotal}, tax={tax_amount}, "
        f"credits={credits_applied}, total={total_amount}"
    )
    return bill


def _customers_to_bill(start: date, end: date):
    """
    Kupci sa ACTIVE ili PAUSED pretplatom, plus svi kupci koji imaju
    isporucenu (DELIVERED/PARTIAL) isporuku u [start, end].
    """
    with_subscription = db.session.query(Subscription.customer_id).filter(
        Subscription.status.in_([SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED])
    )
    with_regular = db.session.query(Subscription.customer_id).join(
        Delivery, Delivery.subscription_id == Subscription.id
    ).filter(
        Delivery.status.in_(BILLABLE_DELIVERY_STATUSES),
        Delivery.delivery_date >= start,
        Delivery.delivery_date <= end
    )
    with_adhoc = db.session.query(AdhocRequest.customer_id).join(
        Delivery, Delivery.adhoc_request_id == AdhocRequest.id
    ).filter(
        Delivery.status.in_(BILLABLE_DELIVERY_STATUSES),
        Delivery.delivery_date >= start,
        Delivery.delivery_date <= end
    )

    customer_ids = set()
    for query in (with_subscription, with_regular, with_adhoc):
        customer_ids.update(row[0] for row in query.distinct().all())
    return sorted(customer_ids)


def generate_bills_for_period(start: date, end: date, settings=None):
    """
    Generise racune za kupce iz _customers_to_bill (aktivni, pauzirani
    i svi sa isporukom u periodu).

    Postojeci racun se broji kao 'skipped', ostale greske idu u 'errors'
    i ne prekidaju batch.

    Returns:
        dict: {'generated', 'skipped', 'errors': [{'customer_id', 'error'}]}
    """
    settings = settings or load_settings()
    stats = {'generated': 0, 'skipped': 0, 'errors': []}

    for customer_id in _customers_to_bill(start, end):
        try:
            generate_bill(customer_id, start, end, settings=settings)
            stats['generated'] += 1
        except DuplicateBillError:
            logger.debug(f"Bill for customer {customer_id} ({start}..{end}) already exists")
            stats['skipped'] += 1
        except Exception as e:
            db.session.rollback()
            logger.error(f"Bill generation failed for customer {customer_id}: {e}")
            stats['errors'].append({'customer_id': customer_id, 'error': str(e)})

    logger.info(
        f"Bills {start}..{end}: {stats['generated']} generated, {stats['skipped']} skipped, "
        f"{len(stats['errors'])} errors"
    )
    return stats


def mark_overdue_bills(today=None):
    """
    GENERATED/PARTIAL racuni kojima je prosao rok placanja -> OVERDUE.

    Returns:
        Broj oznacenih racuna
    """
    today = today or date.today()
    bills = Bill.query.filter(
        Bill.status.in_([BillStatus.GENERATED, BillStatus.PARTIAL]),
        Bill.due_date < today
    ).all()

    for bill in bills:
        bill.status = BillStatus.OVERDUE
    db.session.commit()

    logger.info(f"{len(bills)} bills marked overdue")
    return len(bills)


def update_bill_status(bill_id, status):
    """
    Admin izmena statusa racuna (npr. CANCELLED).

    Raises:
        NotFoundError: Racun ne postoji
        BadRequestError: Nepoznat status ili racun vec otkazan
    """
    try:
        status = BillStatus(status) if not isinstance(status, BillStatus) else status
    except ValueError:
        raise BadRequestError(f'Invalid bill status: {status}')

    bill = get_bill(bill_id)
    if bill.status == BillStatus.CANCELLED:
        raise BadRequestError('Cancelled bill cannot be changed')

    previous = bill.status
    bill.status = status
    db.session.commit()

    logger.info(f"Bill {bill.bill_number} status {previous.value} -> {status.value}")
    return bill


def get_consolidated_dashboard(customer_id, year, month, settings=None):
    """
    Mesecni pregled kupca: isporuke, iznosi, procena kredita i stanje racuna.

    Iznosi se racunaju istim cenama kao generate_bill. Procene kredita
    (propustene isporuke i dani odmora po prosecnoj dnevnoj ceni) su
    informativne i ne umanjuju net_payable. Ako racun za mesec postoji,
    net_payable = total_amount - uplaceno, inace subtotal + porez.

    Raises:
        BadRequestError: Neispravan mesec
        NotFoundError: Kupac ne postoji
    """
    start, end = month_bounds(year, month)
    if db.session.get(CustomerProfile, customer_id) is None:
        raise NotFoundError('Customer not found')
    settings = settings or load_settings()

    regular_deliveries = 0
    adhoc_deliveries = 0
    missed_deliveries = 0
    delivered_quantity = Decimal('0')
    regular_amount = Decimal('0')
    adhoc_amount = Decimal('0')
    daily = OrderedDict()
    products = OrderedDict()
    details = []
    prices = {}

    for delivery in load_deliveries_for_period(customer_id, start, end):
        product = delivery.product
        amount = Decimal('0')
        unit_price = None

        if delivery.delivery_type == DeliveryType.REGULAR and delivery.status == DeliveryStatus.MISSED:
            missed_deliveries += 1
        elif delivery.status in BILLABLE_DELIVERY_STATUSES:
            quantity = Decimal(str(delivery.billable_quantity))
            if delivery.delivery_type == DeliveryType.REGULAR:
                regular_deliveries += 1
                unit_price = _regular_unit_price(delivery, prices)
                amount = quantity * unit_price
                regular_amount += amount
            else:
                adhoc_deliveries += 1
                unit_price = Decimal(str(delivery.adhoc_item.unit_price))
                amount = quantity * unit_price
                adhoc_amount += amount
            delivered_quantity += quantity

            day = delivery.delivery_date.isoformat()
            daily[day] = daily.get(day, Decimal('0')) + quantity
            line = products.setdefault(product.id, {
                'product_id': product.id,
                'name': product.name,
                'quantity': Decimal('0'),
                'amount': Decimal('0'),
            })
            line['quantity'] += quantity
            line['amount'] += amount

        details.append({
            'id': delivery.id,
            'date': delivery.delivery_date.isoformat(),
            'type': delivery.delivery_type.value,
            'status': delivery.status.value,
            'product_id': product.id,
            'product_name': product.name,
            'quantity': Decimal(str(delivery.billable_quantity)),
            'unit_price': unit_price.quantize(CENT) if unit_price is not None else None,
            'amount': amount.quantize(CENT),
        })

    regular_amount = regular_amount.quantize(CENT)
    adhoc_amount = adhoc_amount.quantize(CENT)
    subtotal = regular_amount + adhoc_amount
    tax_amount = (subtotal * settings.tax_percentage / 100).quantize(CENT)

    avg_daily_rate = Decimal('0')
    if regular_deliveries:
        avg_daily_rate = (regular_amount / regular_deliveries).quantize(CENT)
    vacation_days = _count_vacation_days(customer_id, start, end)

    bill = Bill.query.filter_by(
        customer_id=customer_id,
        billing_period_start=start,
        billing_period_end=end
    ).first()
    if bill is not None:
        total_paid = bill.amount_paid
        net_payable = max(Decimal(str(bill.total_amount)) - total_paid, Decimal('0'))
        payment_status = bill.status.value
    else:
        total_paid = Decimal('0')
        net_payable = subtotal + tax_amount
        payment_status = 'PENDING'

    for line in products.values():
        line['amount'] = line['amount'].quantize(CENT)

    return {
        'customer_id': customer_id,
        'period': {'start': start.isoformat(), 'end': end.isoformat()},
        'summary': {
            'total_deliveries': regular_deliveries + adhoc_deliveries,
            'regular_deliveries': regular_deliveries,
            'adhoc_deliveries': adhoc_deliveries,
            'missed_deliveries': missed_deliveries,
            'vacation_days': vacation_days,
            'delivered_quantity': delivered_quantity,
            'regular_amount': regular_amount,
            'adhoc_amount': adhoc_amount,
            'subtotal': subtotal,
            'tax_amount': tax_amount,
            'avg_daily_rate': avg_daily_rate,
            'missed_credit_estimate': (avg_daily_rate * missed_deliveries).quantize(CENT),
            'vacation_credit_estimate': (avg_daily_rate * vacation_days).quantize(CENT),
            'bill_id': bill.id if bill is not None else None,
            'payment_status': payment_status,
            'total_paid': total_paid.quantize(CENT),
            'net_payable': net_payable.quantize(CENT),
        },
        'deliveries': details,
        'analytics': {
            'daily_consumption': [{'date': day, 'quantity': qty} for day, qty in daily.items()],
            'product_distribution': list(products.values()),
        },
    }
