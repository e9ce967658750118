from storefront import db
from datetime import datetime


class CartSlot(db.Model):
    """
    Emplacement de panier persistant, indexé par clé
    (cart:<vitrine>:user:<uid> ou cart:<vitrine>:guest[:<token>])
    """
    __tablename__ = 'cart_slots'

    key = db.Column(db.String(150), primary_key=True)
    items = db.Column(db.JSON, default=list, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
