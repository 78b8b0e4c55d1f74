"""
Test fixtures za engine.

Setup: kupac sa adresom, proizvod sa cenom, fabrika pretplata.
Baza je SQLite u memoriji, kreira se i brise za svaki test.
"""
import pytest
from datetime import date
from decimal import Decimal

from mlekohub import create_app
from mlekohub.config import TestingConfig
from mlekohub.extensions import db as _db
from mlekohub.models import (
    CustomerProfile, Address, Product, ProductPricing, ProductUnit,
    Subscription, SubscriptionFrequency, SubscriptionStatus
)


@pytest.fixture(scope='session')
def app():
    """Kreira Flask app za testove."""
    app = create_app(TestingConfig)
    yield app


@pytest.fixture(scope='function')
def db(app):
    """Kreira čistu bazu za svaki test."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def customer(db):
    """Kupac A."""
    c = CustomerProfile(name='Kupac A', email='a@test.com', phone='0601234567')
    db.session.add(c)
    db.session.flush()
    return c


@pytest.fixture
def other_customer(db):
    """Kupac B - za provere vlasnistva."""
    c = CustomerProfile(name='Kupac B', email='b@test.com')
    db.session.add(c)
    db.session.flush()
    return c


@pytest.fixture
def address(db, customer):
    """Aktivna adresa kupca A."""
    a = Address(customer_id=customer.id, line1='Bulevar 1', city='Beograd', postal_code='11000')
    db.session.add(a)
    db.session.flush()
    return a


@pytest.fixture
def other_address(db, other_customer):
    """Adresa kupca B."""
    a = Address(customer_id=other_customer.id, line1='Ulica 2', city='Novi Sad')
    db.session.add(a)
    db.session.flush()
    return a


@pytest.fixture
def product(db):
    """Mleko 1L, 50.00 od 2024-01-01."""
    p = Product(name='Mleko 1L', unit=ProductUnit.LITER)
    db.session.add(p)
    db.session.flush()
    db.session.add(ProductPricing(
        product_id=p.id,
        price_per_unit=Decimal('50.00'),
        effective_from=date(2024, 1, 1)
    ))
    db.session.flush()
    return p


@pytest.fixture
def second_product(db):
    """Jogurt, 80.00 od 2024-01-01."""
    p = Product(name='Jogurt', unit=ProductUnit.PIECE)
    db.session.add(p)
    db.session.flush()
    db.session.add(ProductPricing(
        product_id=p.id,
        price_per_unit=Decimal('80.00'),
        effective_from=date(2024, 1, 1)
    ))
    db.session.flush()
    return p


@pytest.fixture
def make_subscription(db, customer, address, product):
    """Fabrika pretplata (direktno u bazu, bez validacije servisa)."""
    def _make(**overrides):
        values = dict(
            customer_id=customer.id,
            product_id=product.id,
            address_id=address.id,
            quantity=Decimal('1'),
            frequency=SubscriptionFrequency.DAILY,
            start_date=date(2025, 1, 1),
            status=SubscriptionStatus.ACTIVE,
        )
        values.update(overrides)
        s = Subscription(**values)
        db.session.add(s)
        db.session.flush()
        return s
    return _make


@pytest.fixture
def subscription(make_subscription):
    """DAILY pretplata od 2025-01-01, 1 komad."""
    return make_subscription()
