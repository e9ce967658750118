from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from storefront import create_app, db
from storefront.models import Product, User


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_product(app):
    def _make(reference='SER-01', name='Sérum éclat', price='12.50', stock=50, **kwargs):
        product = Product(
            reference=reference,
            name=name,
            slug=kwargs.pop('slug', reference.lower()),
            price_ht=Decimal(price),
            stock=stock,
            **kwargs
        )
        db.session.add(product)
        db.session.commit()
        return product
    return _make


@pytest.fixture
def make_user(app):
    def _make(email='client@example.com', role='b2c', validated=True, password='Secret123', **kwargs):
        user = User(email=email, role=role, validated=validated, **kwargs)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user, **extra):
        token = create_access_token(identity=user.id, additional_claims={'role': user.role})
        headers = {'Authorization': f'Bearer {token}'}
        headers.update(extra)
        return headers
    return _headers


DELIVERY_FORM = {
    'phone': '0600000000',
    'deliveryType': 'standard',
    'addressMode': 'new',
    'address': '5 Rue du Printemps',
    'city': 'Jeuxey',
    'postalCode': '88000',
}

CARD = {
    'cardName': 'Jeanne Martin',
    'cardNumber': '4111111111111111',
    'expMonth': '12',
    'expYear': '2030',
    'cvc': '123',
}


class RecordingNotifier:
    """Notifier de test: garde les envois en mémoire"""

    def __init__(self, result=True):
        self.sent = []
        self.result = result

    def notify(self, email, invoice):
        self.sent.append((email, invoice))
        return self.result
