from datetime import date, datetime
from decimal import Decimal
from email import message_from_string

import pytest
import requests

from storefront.models import Order, OrderLine, Payment
from storefront.services.email_service import InvoiceMailer, InvoiceNotifier
from storefront.services.errors import EmailConfigurationError
from storefront.services.invoice_service import InvoiceData, build_invoice_data, locale_for_order
from storefront.services.pdf_invoice_service import InvoicePDFRenderer
from storefront.utils.helpers import format_money


def _order(region='fr', currency='EUR', status='payee', storefront='b2b'):
    order = Order(
        id='a1b2c3d4e5f60718293a4b5c6d7e8f90',
        email='pro@example.com',
        first_name='Jeanne',
        last_name='Martin',
        company='Institut Beauté',
        siret='12345678900011',
        storefront=storefront,
        subtotal=Decimal('250.00'),
        tax=Decimal('50.00'),
        total=Decimal('300.00'),
        currency=currency,
        payment_status=status,
        payment_provider='paypal',
        region=region,
        shipping={'address': '5 Rue du Printemps', 'city': 'Jeuxey', 'postalCode': '88000', 'phone': '0600000000'},
        created_at=datetime(2024, 3, 14, 10, 30),
    )
    order.lines.append(OrderLine(position=0, reference='SER-01', name='Sérum éclat', quantity=20,
                                 unit_price_ht=Decimal('12.50'), total_ht=Decimal('250.00')))
    return order


def test_invoice_data_fr(app):
    invoice = build_invoice_data(_order())

    assert invoice.locale == 'fr'
    assert invoice.invoice_number == 'INV-a1b2c3d4'
    assert invoice.issue_date == '14/03/2024'
    assert invoice.totals.tax_label == 'TVA 20%'
    assert invoice.payment.terms == 'Paiement en ligne (PayPal)'
    assert invoice.buyer.name == 'Jeanne Martin'
    assert invoice.buyer.siret == '12345678900011'
    assert invoice.buyer.address_lines == ['5 Rue du Printemps', 'Jeuxey', '88000']
    assert invoice.seller.name == 'MISHKI LAB'
    assert invoice.lines[0].total == Decimal('250.00')
    assert invoice.serie is None


def test_invoice_data_pe_with_installment(app):
    order = _order(region='pe', currency='PEN', status='en_attente')
    payment = Payment(due_date=date(2024, 4, 14))

    invoice = build_invoice_data(order, payment=payment)

    assert invoice.totals.tax_label == 'IGV 18%'
    assert invoice.currency_label == 'SOLES'
    assert invoice.serie == 'E001'
    assert invoice.due_date == '14/04/2024'
    assert invoice.payment.installments[0].amount == Decimal('300.00')


def test_paid_order_has_no_installment(app):
    invoice = build_invoice_data(_order(), payment=Payment(due_date=date(2024, 4, 14)))
    assert invoice.payment.installments == []


def test_locale_precedence():
    order = _order(region=None, currency='PEN')
    assert locale_for_order(order) == 'pe'
    assert locale_for_order(order, 'fr') == 'fr'
    assert locale_for_order(_order(region='fr', currency='PEN')) == 'fr'


def test_invoice_data_survives_json(app):
    invoice = build_invoice_data(_order())
    again = InvoiceData.from_dict(invoice.to_dict())

    assert again.to_dict() == invoice.to_dict()

    with pytest.raises(ValueError):
        InvoiceData.from_dict({'locale': 'fr'})


def test_format_money():
    assert format_money(Decimal('1234.5'), 'EUR', 'fr') == '1 234,50 €'
    assert format_money(Decimal('1234.5'), 'PEN', 'pe') == 'S/ 1,234.50'


@pytest.mark.parametrize('region,currency', [('fr', 'EUR'), ('pe', 'PEN')])
def test_pdf_is_deterministic(app, region, currency):
    invoice = build_invoice_data(_order(region=region, currency=currency))
    renderer = InvoicePDFRenderer()

    first = renderer.render(invoice)
    second = renderer.render(invoice)

    assert first.startswith(b'%PDF')
    assert first == second
    assert renderer.filename(invoice) == 'INV-a1b2c3d4.pdf'


def test_mailer_requires_smtp_configuration():
    with pytest.raises(EmailConfigurationError):
        InvoiceMailer.from_config({'SMTP_HOST': 'smtp.example.com'})


def test_mailer_builds_message_with_pdf_attachment(app):
    invoice = build_invoice_data(_order())
    mailer = InvoiceMailer('smtp.example.com', 'user', 'pass')

    msg = message_from_string(mailer.build_message('pro@example.com', invoice).as_string())

    assert msg['Subject'] == 'Votre facture INV-a1b2c3d4'
    parts = [part for part in msg.walk() if not part.is_multipart()]
    assert parts[0].get_content_type() == 'text/html'
    assert parts[1].get_content_type() == 'application/pdf'
    assert parts[1].get_filename() == 'INV-a1b2c3d4.pdf'


def test_notifier_swallows_endpoint_failures(app, monkeypatch):
    def boom(*args, **kwargs):
        raise requests.ConnectionError('unreachable')

    monkeypatch.setattr('storefront.services.email_service.requests.post', boom)
    invoice = build_invoice_data(_order())

    assert InvoiceNotifier(endpoint='https://mail.example.com/api/invoice-email').notify('a@b.c', invoice) is False


def test_notifier_without_transport_returns_false(app):
    invoice = build_invoice_data(_order())
    assert InvoiceNotifier().notify('a@b.c', invoice) is False


def test_notifier_posts_invoice_data(app, monkeypatch):
    calls = []

    class FakeResponse:
        status_code = 200
        text = '{"ok": true}'

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return FakeResponse()

    monkeypatch.setattr('storefront.services.email_service.requests.post', fake_post)
    invoice = build_invoice_data(_order())

    assert InvoiceNotifier(endpoint='https://mail.example.com/api/invoice-email').notify('a@b.c', invoice) is True
    assert calls[0][1]['email'] == 'a@b.c'
    assert calls[0][1]['invoiceData']['invoiceNumber'] == 'INV-a1b2c3d4'


def test_fr_totals_box_uses_invoice_money_format(app, monkeypatch):
    invoice = build_invoice_data(_order())
    renderer = InvoicePDFRenderer()
    recorded = []
    original = renderer._totals_table

    def record(rows, width):
        recorded.append(rows)
        return original(rows, width)

    monkeypatch.setattr(renderer, '_totals_table', record)
    renderer.render(invoice)

    amounts = [amount for _, amount in recorded[0]]
    assert amounts == [
        format_money(Decimal('250.00'), 'EUR', 'fr'),
        format_money(Decimal('50.00'), 'EUR', 'fr'),
        format_money(Decimal('300.00'), 'EUR', 'fr'),
    ]
    assert amounts[2].endswith('€')
