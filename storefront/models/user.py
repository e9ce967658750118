from storefront import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
import uuid


class User(db.Model):
    """Compte client (particulier B2C ou professionnel B2B)"""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)

    # Rôles: b2c (particulier), b2b (professionnel)
    role = db.Column(db.String(10), default='b2c', nullable=False)

    first_name = db.Column(db.String(50))
    last_name = db.Column(db.String(50))
    phone = db.Column(db.String(30))

    # Champs professionnels
    company = db.Column(db.String(150))
    siret = db.Column(db.String(20))
    ruc = db.Column(db.String(20))
    remise = db.Column(db.Numeric(5, 2, asdecimal=True), default=0)  # Remise en %
    validated = db.Column(db.Boolean, default=False)  # Compte pro validé par l'équipe

    # Adresse de livraison enregistrée
    address = db.Column(db.String(255))
    postal_code = db.Column(db.String(20))
    city = db.Column(db.String(100))
    country = db.Column(db.String(100))

    # Région de facturation préférée (fr, pe); None = détection automatique
    region = db.Column(db.String(2))

    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def full_name(self):
        return ' '.join(p for p in [self.first_name, self.last_name] if p).strip()

    @property
    def is_b2b(self):
        return self.role == 'b2b'

    def profile(self) -> dict:
        """Profil de livraison enregistré (utilisé par le checkout)"""
        return {
            'phone': self.phone,
            'address': self.address,
            'postal_code': self.postal_code,
            'city': self.city,
            'country': self.country,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'phone': self.phone,
            'company': self.company,
            'siret': self.siret,
            'ruc': self.ruc,
            'remise': float(self.remise or 0),
            'validated': self.validated,
            'address': self.address,
            'postal_code': self.postal_code,
            'city': self.city,
            'country': self.country,
            'region': self.region,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
