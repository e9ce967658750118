from storefront import db
from datetime import datetime
import uuid


class NewsletterSubscription(db.Model):
    """Inscription à la newsletter"""
    __tablename__ = 'newsletters'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(120), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
