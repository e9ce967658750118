from decimal import Decimal

import pytest

from storefront import db
from storefront.models import NewsletterSubscription, Order, Product
from storefront.services.invoice_service import build_invoice_data

from conftest import CARD, DELIVERY_FORM

GUEST = {'X-Guest-Token': 'guest-123'}


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_catalog_and_lookup(client, make_product):
    make_product('SER-01', stock=50)
    make_product('CRE-01', name='Crème', slug='creme', stock=0, is_active=False)

    products = client.get('/api/products').get_json()['products']
    assert [p['reference'] for p in products] == ['SER-01']

    assert client.get('/api/products/ser-01').status_code == 200
    assert client.get('/api/products/creme').status_code == 404

    data = client.get('/api/products/lookup?refs=ser-01,CRE-01').get_json()
    assert [p['reference'] for p in data['products']] == ['SER-01']
    assert data['missing'] == ['CRE-01']


def test_guest_cart_requires_token(client, make_product):
    product = make_product()

    response = client.post('/api/cart/b2c/items', json={'product_id': product.id, 'quantity': 1})
    assert response.status_code == 400

    assert client.get('/api/cart/b2x', headers=GUEST).status_code == 404


def test_guest_cart_uses_catalog_price(client, make_product):
    product = make_product(price='12.50')

    response = client.post('/api/cart/b2c/items', headers=GUEST,
                           json={'product_id': 'SER-01', 'quantity': 2, 'price': 0.01})
    assert response.status_code == 201
    data = response.get_json()
    assert data['item_count'] == 2
    assert data['subtotal'] == 25.0

    response = client.put(f'/api/cart/b2c/items/{product.id}', headers=GUEST, json={'quantity': 3})
    assert response.get_json()['item_count'] == 3

    response = client.delete(f'/api/cart/b2c/items/{product.id}', headers=GUEST)
    assert response.get_json()['items'] == []


def test_login_merges_guest_cart(client, make_product, make_user):
    product = make_product()
    make_user('jeanne@example.com')
    client.post('/api/cart/b2c/items', headers=GUEST, json={'product_id': product.id, 'quantity': 2})

    response = client.post('/api/auth/login', json={
        'email': 'jeanne@example.com', 'password': 'Secret123', 'guest_token': 'guest-123'
    })
    assert response.status_code == 200
    token = response.get_json()['access_token']

    cart = client.get('/api/cart/b2c', headers={'Authorization': f'Bearer {token}'}).get_json()
    assert cart['item_count'] == 2
    assert client.get('/api/cart/b2c', headers=GUEST).get_json()['items'] == []


def test_register_pro_account_is_not_validated(client):
    response = client.post('/api/auth/register', json={
        'email': 'pro@example.com', 'password': 'Secret123', 'role': 'b2b', 'company': 'Institut'
    })
    assert response.status_code == 201
    assert response.get_json()['user']['validated'] is False

    response = client.post('/api/auth/register', json={
        'email': 'pro@example.com', 'password': 'Secret123'
    })
    assert response.status_code == 409


def test_cart_checkout_creates_order_and_keeps_unselected_lines(client, make_product, make_user, auth_headers):
    serum = make_product('SER-01', price='12.50')
    creme = make_product('CRE-01', name='Crème', slug='creme', price='20.00')
    user = make_user(first_name='Jeanne', last_name='Martin')
    headers = auth_headers(user)

    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': serum.id, 'quantity': 2})
    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': creme.id, 'quantity': 1})

    response = client.post('/api/checkout/b2c', headers=headers, json={
        'itemIds': [serum.id],
        'form': DELIVERY_FORM,
        'paymentMethod': 'paypal',
        'paymentId': '5O190127TN364715T',
        'region': 'fr',
    })

    assert response.status_code == 201
    data = response.get_json()
    assert data['totals'] == {
        'subtotal': 25.0, 'tax': 5.0, 'total': 30.0, 'currency': 'EUR', 'tax_label': 'TVA 20%'
    }
    assert data['invoice']['invoiceNumber'] == f"INV-{data['order_id'][:8]}"

    cart = client.get('/api/cart/b2c', headers=headers).get_json()
    assert [item['id'] for item in cart['items']] == [creme.id]


def test_checkout_validation_error_returns_missing_fields(client, make_product, make_user, auth_headers):
    product = make_product()
    user = make_user()
    headers = auth_headers(user)
    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': product.id})

    response = client.post('/api/checkout/b2c', headers=headers, json={
        'form': {'deliveryType': 'standard'}, 'paymentMethod': 'card', 'card': CARD
    })

    assert response.status_code == 400
    data = response.get_json()
    assert data['code'] == 'VALIDATION_ERROR'
    assert 'phone' in data['missing_fields']
    assert Order.query.count() == 0


def test_b2b_checkout_requires_validated_account(client, make_user, auth_headers):
    user = make_user('pro@example.com', role='b2b', validated=False, company='Institut')

    response = client.post('/api/checkout/b2b', headers=auth_headers(user), json={})
    assert response.status_code == 403
    assert response.get_json()['code'] == 'ACCOUNT_NOT_VALIDATED'


def test_quick_order_reserves_stock(client, make_product, make_user, auth_headers):
    make_product('SER-01', price='10.00', stock=150)
    user = make_user('pro@example.com', role='b2b', company='Institut', remise=Decimal('0'))
    headers = auth_headers(user)

    draft = client.post('/api/checkout/quick-order/prepare', headers=headers, json={
        'entries': [{'reference': 'ser-01', 'quantity': 200}]
    }).get_json()
    assert draft['can_checkout'] is False
    assert draft['stock_messages'] == {'SER-01': 'Stock max: 150'}

    response = client.post('/api/checkout/quick-order', headers=headers, json={
        'entries': [{'reference': 'SER-01', 'quantity': 100}],
        'form': DELIVERY_FORM,
        'paymentMethod': 'card',
        'card': CARD,
    })
    assert response.status_code == 201

    db.session.expire_all()
    assert Product.query.filter_by(reference='SER-01').one().stock == 50


def test_invoice_pdf_download_is_owner_only(client, make_product, make_user, auth_headers):
    product = make_product()
    owner = make_user('owner@example.com')
    other = make_user('other@example.com')
    headers = auth_headers(owner)

    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': product.id})
    order_id = client.post('/api/checkout/b2c', headers=headers, json={
        'form': DELIVERY_FORM, 'paymentMethod': 'paypal', 'paymentId': 'PAY-1'
    }).get_json()['order_id']

    response = client.get(f'/api/invoices/{order_id}/pdf?template=pe', headers=headers)
    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')
    assert f'filename="INV-{order_id[:8]}.pdf"' in response.headers['Content-Disposition']

    assert client.get(f'/api/invoices/{order_id}/pdf', headers=auth_headers(other)).status_code == 404


def test_invoice_list_for_pro(client, make_product, make_user, auth_headers):
    make_product('SER-01', price='10.00', stock=500)
    user = make_user('pro@example.com', role='b2b', company='Institut')
    headers = auth_headers(user)

    client.post('/api/checkout/quick-order', headers=headers, json={
        'entries': [{'reference': 'SER-01', 'quantity': 100}],
        'form': DELIVERY_FORM,
        'paymentMethod': 'paypal',
        'paymentId': 'PAY-2',
    })

    data = client.get('/api/invoices', headers=headers).get_json()
    assert len(data['invoices']) == 1
    assert data['invoices'][0]['montantHT'] == 1000.0
    assert data['invoices'][0]['produits'] == 'Sérum éclat x100'
    assert len(data['months']) == 1


def test_invoice_email_requires_email_and_data(client):
    response = client.post('/api/invoice-email', json={'email': 'a@b.c'})
    assert response.status_code == 400
    assert response.get_json() == {'error': 'Missing email or invoiceData'}


def test_invoice_email_without_smtp(client):
    response = client.post('/api/invoice-email', json={'email': 'a@b.c', 'invoiceData': {'invoiceNumber': 'INV-1'}})
    assert response.status_code == 500
    assert response.get_json() == {'error': 'SMTP configuration is missing'}


def _configure_smtp(app):
    app.config.update(SMTP_HOST='smtp.example.com', SMTP_USER='user', SMTP_PASS='pass', SMTP_PORT=587)


def test_invoice_email_sends_with_attachment(app, client, monkeypatch):
    _configure_smtp(app)
    sent = []

    class FakeSMTP:
        def __init__(self, host, port):
            self.host = host

        def starttls(self):
            pass

        def login(self, username, password):
            pass

        def sendmail(self, from_email, to, message):
            sent.append((to, message))

        def quit(self):
            pass

    monkeypatch.setattr('storefront.services.email_service.smtplib.SMTP', FakeSMTP)

    order = Order(id='f' * 32, email='a@b.c', storefront='b2c', subtotal=Decimal('10.00'),
                  tax=Decimal('2.00'), total=Decimal('12.00'), currency='EUR', payment_provider='card')
    db.session.add(order)
    db.session.commit()
    invoice = build_invoice_data(order)

    response = client.post('/api/invoice-email', json={'email': 'a@b.c', 'invoiceData': invoice.to_dict()})

    assert response.status_code == 200
    assert response.get_json() == {'ok': True}
    assert sent[0][0] == ['a@b.c']
    assert 'INV-ffffffff.pdf' in sent[0][1]


def test_invoice_email_reports_send_failure(app, client, monkeypatch):
    _configure_smtp(app)

    class BrokenSMTP:
        def __init__(self, host, port):
            raise OSError('connection refused')

    monkeypatch.setattr('storefront.services.email_service.smtplib.SMTP', BrokenSMTP)

    response = client.post('/api/invoice-email', json={
        'email': 'a@b.c',
        'invoiceData': {'invoiceNumber': 'INV-1', 'buyer': {'name': 'Jeanne'}, 'totals': {'total': 12}},
    })

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Failed to send invoice email'}


def test_paypal_routes_fail_without_configuration(client):
    response = client.post('/api/paypal/orders', json={'amount': '30.00', 'currency': 'EUR'})
    assert response.status_code == 502
    assert response.get_json()['code'] == 'PAYMENT_ERROR'


def test_newsletter_subscription(client):
    assert client.post('/api/newsletter', json={'email': 'News@Example.com'}).status_code == 201
    assert client.post('/api/newsletter', json={'email': 'news@example.com'}).status_code == 200
    assert client.post('/api/newsletter', json={'email': 'nope'}).status_code == 400
    assert NewsletterSubscription.query.count() == 1


def test_paypal_checkout_without_payment_id_is_rejected(client, make_product, make_user, auth_headers):
    product = make_product()
    user = make_user()
    headers = auth_headers(user)
    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': product.id})

    response = client.post('/api/checkout/b2c', headers=headers, json={
        'form': DELIVERY_FORM, 'paymentMethod': 'paypal'
    })

    assert response.status_code == 400
    data = response.get_json()
    assert data['code'] == 'VALIDATION_ERROR'
    assert data['missing_fields'] == ['paymentId']
    assert Order.query.count() == 0
    assert len(client.get('/api/cart/b2c', headers=headers).get_json()['items']) == 1


def test_checkout_uses_current_catalog_price(client, make_product, make_user, auth_headers):
    product = make_product('SER-01', price='10.00')
    user = make_user()
    headers = auth_headers(user)
    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': product.id})

    product.price_ht = Decimal('99.00')
    db.session.commit()

    response = client.post('/api/checkout/b2c', headers=headers, json={
        'form': DELIVERY_FORM, 'paymentMethod': 'card', 'card': CARD, 'region': 'fr'
    })

    assert response.status_code == 201
    assert response.get_json()['totals']['subtotal'] == 99.0


def test_checkout_refuses_withdrawn_product(client, make_product, make_user, auth_headers):
    product = make_product('SER-01')
    user = make_user()
    headers = auth_headers(user)
    client.post('/api/cart/b2c/items', headers=headers, json={'product_id': product.id})

    product.is_active = False
    db.session.commit()

    response = client.post('/api/checkout/b2c', headers=headers, json={
        'form': DELIVERY_FORM, 'paymentMethod': 'card', 'card': CARD
    })

    assert response.status_code == 400
    assert response.get_json()['missing_fields'] == ['itemIds']
    assert Order.query.count() == 0


@pytest.mark.parametrize('entries,field', [
    (['SER-01'], 'entries'),
    ([{'reference': 'SER-01', 'quantity': 'abc'}], 'quantity'),
    ([{'reference': 'SER-01', 'quantity': -5}], 'quantity'),
])
def test_quick_order_rejects_malformed_entries(client, make_product, make_user, auth_headers, entries, field):
    make_product('SER-01', stock=500)
    user = make_user('pro@example.com', role='b2b', company='Institut')
    headers = auth_headers(user)

    for url in ('/api/checkout/quick-order/prepare', '/api/checkout/quick-order'):
        response = client.post(url, headers=headers, json={
            'entries': entries, 'form': DELIVERY_FORM, 'paymentMethod': 'card', 'card': CARD
        })
        assert response.status_code == 400
        data = response.get_json()
        assert data['code'] == 'VALIDATION_ERROR'
        assert data['missing_fields'] == [field]

    assert Order.query.count() == 0
