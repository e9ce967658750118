"""
Modèle Order - Commandes clients
Les données acheteur sont dénormalisées à la création: une commande
n'est jamais modifiée par la suite.
"""

from storefront import db
from datetime import datetime
import uuid


class Order(db.Model):
    """Commande confirmée (B2C ou B2B)"""
    __tablename__ = 'orders'

    id = db.Column(db.String(32), primary_key=True, default=lambda: uuid.uuid4().hex)

    # Acheteur (copie au moment de la commande)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)
    email = db.Column(db.String(120))
    first_name = db.Column(db.String(50))
    last_name = db.Column(db.String(50))
    company = db.Column(db.String(150))
    siret = db.Column(db.String(20))
    ruc = db.Column(db.String(20))
    remise = db.Column(db.Numeric(5, 2, asdecimal=True), default=0)

    storefront = db.Column(db.String(3), nullable=False, default='b2c')

    # Montants (HT / TVA / TTC)
    subtotal = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    tax = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    total = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    currency = db.Column(db.String(3), default='EUR')

    # Paiement
    payment_status = db.Column(db.String(20), default='payee')  # payee, en_attente, retard
    payment_provider = db.Column(db.String(20))  # paypal, card
    payment_id = db.Column(db.String(100))  # Identifiant de transaction du prestataire

    # Livraison (snapshot JSON)
    shipping = db.Column(db.JSON)

    # Région de facturation résolue à la création (fr, pe)
    region = db.Column(db.String(2))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relations
    lines = db.relationship('OrderLine', backref='order', lazy='select',
                            order_by='OrderLine.position', cascade='all, delete-orphan')
    payments = db.relationship('Payment', backref='order', lazy='dynamic')

    @property
    def buyer_name(self):
        return ' '.join(p for p in [self.first_name, self.last_name] if p).strip()

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'company': self.company,
            'storefront': self.storefront,
            'subtotal': float(self.subtotal),
            'tax': float(self.tax),
            'total': float(self.total),
            'currency': self.currency,
            'payment_status': self.payment_status,
            'payment_provider': self.payment_provider,
            'payment_id': self.payment_id,
            'shipping': self.shipping,
            'region': self.region,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]

        return data


class OrderLine(db.Model):
    """Ligne de commande (immuable)"""
    __tablename__ = 'order_lines'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    order_id = db.Column(db.String(32), db.ForeignKey('orders.id'), nullable=False, index=True)
    position = db.Column(db.Integer, default=0)

    reference = db.Column(db.String(50))
    name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_ht = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    total_ht = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)

    def to_dict(self):
        return {
            'reference': self.reference,
            'name': self.name,
            'quantity': self.quantity,
            'unit_price_ht': float(self.unit_price_ht),
            'total_ht': float(self.total_ht),
        }
