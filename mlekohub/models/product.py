"""
Product modeli - proizvodi i istorija cena.

Cena se nikad ne menja u mestu: nova cena zatvara prethodnu
(effective_to) i otvara novi red. Tako racun moze da koristi
cenu koja je vazila na dan isporuke.
"""

import enum
from datetime import datetime
from ..extensions import db


class ProductUnit(enum.Enum):
    """Jedinica mere proizvoda."""
    LITER = 'LITER'
    ML = 'ML'
    KG = 'KG'
    GRAM = 'GRAM'
    PIECE = 'PIECE'
    PACKET = 'PACKET'


class Product(db.Model):
    """Proizvod koji se isporucuje (mleko, jogurt, ...)."""
    __tablename__ = 'product'

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    unit = db.Column(db.Enum(ProductUnit), default=ProductUnit.LITER, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    pricing = db.relationship(
        'ProductPricing',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='ProductPricing.effective_from.desc()'
    )

    def current_pricing(self):
        """Vraca aktivnu cenu (effective_to IS NULL, najnoviji effective_from) ili None."""
        return self.pricing.filter(ProductPricing.effective_to.is_(None)).first()

    def pricing_on(self, day):
        """
        Vraca cenu koja je vazila na dan `day`.

        Ako istorijska cena ne postoji (npr. cena uneta posle isporuke),
        vraca trenutnu cenu.
        """
        historical = self.pricing.filter(
            ProductPricing.effective_from <= day,
            db.or_(
                ProductPricing.effective_to.is_(None),
                ProductPricing.effective_to >= day
            )
        ).first()
        return historical or self.current_pricing()

    def __repr__(self):
        return f'<Product {self.id}: {self.name}>'


class ProductPricing(db.Model):
    """Cena proizvoda u periodu [effective_from, effective_to]."""
    __tablename__ = 'product_pricing'

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey('product.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date, nullable=True)  # NULL = trenutna cena

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint('price_per_unit >= 0', name='check_price_non_negative'),
    )

    def __repr__(self):
        return f'<ProductPricing {self.product_id}: {self.price_per_unit} od {self.effective_from}>'
