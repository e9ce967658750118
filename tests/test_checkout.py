from decimal import Decimal

import pytest

from storefront import db
from storefront.models import Order, Payment
from storefront.services.checkout_service import (
    CheckoutService, apply_remise, build_checkout_lines, compute_totals,
    resolve_region, validate_delivery, validate_payment
)
from storefront.services.errors import CheckoutValidationError

from conftest import CARD, DELIVERY_FORM, RecordingNotifier


def _line(price, quantity=1, reference='SER-01'):
    return {'reference': reference, 'name': 'Sérum', 'quantity': quantity, 'unit_price_ht': Decimal(price)}


def test_totals_fr_round_tax_before_adding():
    totals = compute_totals([_line('10.33')], 'fr')

    assert totals['subtotal'] == Decimal('10.33')
    assert totals['tax'] == Decimal('2.07')
    assert totals['total'] == Decimal('12.40')
    assert totals['currency'] == 'EUR'
    assert totals['tax_label'] == 'TVA 20%'


def test_totals_pe_use_igv_and_soles():
    totals = compute_totals([_line('10.33')], 'pe')

    assert totals['tax'] == Decimal('1.86')
    assert totals['total'] == Decimal('12.19')
    assert totals['currency'] == 'PEN'
    assert totals['tax_label'] == 'IGV 18%'


def test_totals_always_add_up():
    lines = [_line('0.05', 3), _line('19.99', 7, 'CRE-01'), _line('3.335', 1, 'HUI-01')]
    for region in ('fr', 'pe'):
        totals = compute_totals(lines, region)
        assert totals['subtotal'] + totals['tax'] == totals['total']


def test_remise_applies_to_unit_price():
    assert apply_remise('20.00', 15) == Decimal('17.00')
    lines = build_checkout_lines([{'id': 'p1', 'reference': 'SER-01', 'name': 'Sérum', 'price': 10, 'quantity': 3}], 10)
    assert lines[0]['unit_price_ht'] == Decimal('9.00')
    assert lines[0]['total_ht'] == Decimal('27.00')


@pytest.mark.parametrize('explicit,timezone,locale,expected', [
    ('pe', 'Europe/Paris', 'fr-FR', 'pe'),
    (None, 'America/Lima', 'fr-FR', 'pe'),
    (None, 'Europe/Paris', 'es-PE', 'fr'),
    (None, None, 'es-PE', 'pe'),
    (None, None, None, 'fr'),
    ('xx', None, None, 'fr'),
])
def test_resolve_region(explicit, timezone, locale, expected):
    assert resolve_region(explicit, timezone, locale) == expected


def test_delivery_saved_address_uses_profile():
    validate_delivery(
        {'deliveryType': 'standard', 'addressMode': 'saved'},
        {'phone': '0600000000', 'address': '5 Rue du Printemps'},
        storefront='b2b'
    )


def test_delivery_reports_missing_fields_with_storefront_message():
    with pytest.raises(CheckoutValidationError) as exc:
        validate_delivery({'addressMode': 'new', 'address': '1 rue'}, {}, storefront='b2b')

    assert exc.value.message == 'Merci de compléter les informations de livraison.'
    assert exc.value.missing_fields == ['phone', 'deliveryType', 'city', 'postalCode']

    with pytest.raises(CheckoutValidationError) as exc:
        validate_delivery({'phone': '06', 'deliveryType': 'standard', 'addressMode': 'saved'}, {}, storefront='b2c')
    assert exc.value.message == 'Merci de remplir les champs requis de livraison.'
    assert exc.value.missing_fields == ['savedAddress']


def test_payment_validation():
    validate_payment('paypal', payment_id='5O190127TN364715T')
    validate_payment('card', CARD)

    with pytest.raises(CheckoutValidationError) as exc:
        validate_payment('card', dict(CARD, cvc=''))
    assert exc.value.missing_fields == ['cvc']
    assert exc.value.message == 'Merci de remplir les champs requis de paiement.'

    with pytest.raises(CheckoutValidationError):
        validate_payment('cheque')


def test_submit_creates_order_payment_and_sends_invoice(make_user):
    user = make_user(first_name='Jeanne', last_name='Martin', region='fr')
    notifier = RecordingNotifier()

    result = CheckoutService(notifier=notifier).submit(
        user=user,
        lines=[_line('12.50', 2)],
        form=DELIVERY_FORM,
        payment_method='paypal',
        payment_id='5O190127TN364715T'
    )

    order = db.session.get(Order, result['order_id'])
    assert order.total == Decimal('30.00')
    assert order.payment_id == '5O190127TN364715T'
    assert order.shipping['city'] == 'Jeuxey'
    assert [line.reference for line in order.lines] == ['SER-01']

    payment = Payment.query.filter_by(order_id=order.id).one()
    assert payment.status == 'payee'
    assert payment.provider == 'paypal'

    assert notifier.sent[0][0] == 'client@example.com'
    assert result['invoice'].invoice_number == f"INV-{order.id[:8]}"


def test_submit_does_not_fail_when_invoice_email_fails(make_user):
    user = make_user()
    result = CheckoutService(notifier=RecordingNotifier(result=False)).submit(
        user=user,
        lines=[_line('10.00')],
        form=DELIVERY_FORM,
        payment_method='card',
        card=CARD
    )

    order = db.session.get(Order, result['order_id'])
    assert order.payment_id is None
    assert order.payment_provider == 'card'


def test_invalid_form_writes_nothing(make_user):
    user = make_user()

    with pytest.raises(CheckoutValidationError):
        CheckoutService(notifier=RecordingNotifier()).submit(
            user=user,
            lines=[_line('10.00')],
            form={'phone': '06'},
            payment_method='card',
            card=CARD
        )

    assert Order.query.count() == 0
    assert Payment.query.count() == 0


def test_empty_lines_are_rejected(make_user):
    user = make_user()

    with pytest.raises(CheckoutValidationError) as exc:
        CheckoutService(notifier=RecordingNotifier()).submit(
            user=user, lines=[], form=DELIVERY_FORM, payment_method='paypal', payment_id='PAY-1'
        )

    assert exc.value.message == 'Votre panier est vide.'


@pytest.mark.parametrize('payment_id', [None, '', '   '])
def test_paypal_requires_captured_order_id(payment_id):
    with pytest.raises(CheckoutValidationError) as exc:
        validate_payment('paypal', payment_id=payment_id)
    assert exc.value.missing_fields == ['paymentId']
    assert exc.value.message == 'Merci de remplir les champs requis de paiement.'


def test_paypal_submit_without_payment_id_writes_nothing(make_user):
    user = make_user()

    with pytest.raises(CheckoutValidationError):
        CheckoutService(notifier=RecordingNotifier()).submit(
            user=user, lines=[_line('10.00')], form=DELIVERY_FORM, payment_method='paypal'
        )

    assert Order.query.count() == 0
    assert Payment.query.count() == 0
