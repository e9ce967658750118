"""
Modèle Payment - Paiements des commandes
Duplique les montants de la commande pour l'historique de facturation
"""

from storefront import db
from datetime import datetime
import uuid


class Payment(db.Model):
    """
    Paiement rattaché à une commande.
    Écrit dans la même transaction que la commande.
    """
    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = db.Column(db.String(32), db.ForeignKey('orders.id'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True, index=True)

    # Montants
    subtotal = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    tax = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    total = db.Column(db.Numeric(12, 2, asdecimal=True), nullable=False)
    currency = db.Column(db.String(3), default='EUR')

    # Statut: payee, en_attente, retard
    status = db.Column(db.String(20), default='payee')

    # Prestataire: paypal, card
    provider = db.Column(db.String(20))
    payment_id = db.Column(db.String(100))

    due_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'user_id': self.user_id,
            'subtotal': float(self.subtotal),
            'tax': float(self.tax),
            'total': float(self.total),
            'currency': self.currency,
            'status': self.status,
            'provider': self.provider,
            'payment_id': self.payment_id,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
