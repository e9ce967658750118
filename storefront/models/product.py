"""
Modèle Product - Catalogue partagé B2C/B2B
"""

from storefront import db
from datetime import datetime
import uuid


class Product(db.Model):
    """
    Produit du catalogue.
    `version` est incrémentée à chaque écriture du stock: la réservation
    de stock n'applique une décrémentation que si la version lue est
    toujours celle en base.
    """
    __tablename__ = 'products'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)
    category = db.Column(db.String(100))

    price_ht = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    image = db.Column(db.String(500))

    stock = db.Column(db.Integer, default=0, nullable=False)
    version = db.Column(db.Integer, default=0, nullable=False)

    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('stock >= 0', name='ck_products_stock_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'reference': self.reference,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'category': self.category,
            'price': float(self.price_ht),
            'image': self.image,
            'stock': self.stock,
            'is_active': self.is_active,
        }
