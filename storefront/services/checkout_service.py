"""
Service Checkout
================

Validation et soumission d'une commande B2C/B2B:

    validation livraison/paiement -> totaux -> commande + paiement
    -> données de facture -> envoi de la facture (best effort)

La région de facturation (fr/pe) fixe le taux de taxe, la devise et le
libellé de taxe. Elle vient du profil acheteur ou de la requête; la
détection fuseau horaire/locale n'est qu'un repli.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from storefront.services.errors import CheckoutValidationError
from storefront.utils.helpers import round2, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegionSettings:
    """Paramètres fiscaux d'une région"""
    code: str
    tax_rate: Decimal
    currency: str
    tax_label: str


REGIONS = {
    'fr': RegionSettings(code='fr', tax_rate=Decimal('0.20'), currency='EUR', tax_label='TVA 20%'),
    'pe': RegionSettings(code='pe', tax_rate=Decimal('0.18'), currency='PEN', tax_label='IGV 18%'),
}

DEFAULT_REGION = 'fr'

DELIVERY_ERROR_B2B = 'Merci de compléter les informations de livraison.'
DELIVERY_ERROR_B2C = 'Merci de remplir les champs requis de livraison.'
PAYMENT_ERROR = 'Merci de remplir les champs requis de paiement.'

CARD_FIELDS = ('cardName', 'cardNumber', 'expMonth', 'expYear', 'cvc')


def get_region(code: str) -> RegionSettings:
    return REGIONS.get((code or '').lower(), REGIONS[DEFAULT_REGION])


def resolve_region(explicit: str = None, timezone: str = None, locale: str = None) -> str:
    """
    Résout la région de facturation.

    Priorité: région explicite (profil ou requête), puis fuseau horaire
    (lima/peru -> pe, paris -> fr), puis locale contenant "pe", sinon fr.
    """
    if explicit and explicit.lower() in REGIONS:
        return explicit.lower()

    tz = (timezone or '').lower()
    if 'lima' in tz or 'peru' in tz:
        return 'pe'
    if 'paris' in tz:
        return 'fr'

    if 'pe' in (locale or '').lower():
        return 'pe'

    return DEFAULT_REGION


def apply_remise(price, remise) -> Decimal:
    """Prix unitaire HT après remise pro (pourcentage)"""
    price = to_decimal(price)
    remise = to_decimal(remise or 0)
    return round2(price - (price * remise) / Decimal('100'))


def compute_totals(lines: List[dict], region: str = DEFAULT_REGION) -> dict:
    """
    Totaux HT / taxe / TTC arrondis au centime.
    La taxe est arrondie puis ajoutée, donc subtotal + tax == total.
    """
    settings = get_region(region)
    subtotal = round2(sum(
        (to_decimal(line['unit_price_ht']) * int(line['quantity']) for line in lines),
        Decimal('0')
    ))
    tax = round2(subtotal * settings.tax_rate)
    return {
        'subtotal': subtotal,
        'tax': tax,
        'total': subtotal + tax,
        'currency': settings.currency,
        'tax_label': settings.tax_label,
    }


def build_checkout_lines(items: List[dict], remise=0) -> List[dict]:
    """Lignes de commande depuis les articles du panier (remise appliquée au HT)"""
    lines = []
    for item in items:
        unit_price = apply_remise(item['price'], remise)
        quantity = int(item['quantity'])
        lines.append({
            'reference': item.get('reference') or item.get('id'),
            'name': item.get('name') or '',
            'quantity': quantity,
            'unit_price_ht': unit_price,
            'total_ht': round2(unit_price * quantity),
        })
    return lines


def _text(data: dict, key: str) -> str:
    value = (data or {}).get(key)
    return str(value).strip() if value is not None else ''


def validate_delivery(form: dict, saved_profile: dict = None, storefront: str = 'b2c') -> None:
    """
    Vérifie les informations de livraison. Ne touche à rien en cas d'erreur.

    Raises:
        CheckoutValidationError: avec la liste des champs manquants
    """
    form = form or {}
    saved_profile = saved_profile or {}
    missing = []

    if not (_text(form, 'phone') or _text(saved_profile, 'phone')):
        missing.append('phone')
    if not _text(form, 'deliveryType'):
        missing.append('deliveryType')

    address_mode = _text(form, 'addressMode') or 'new'
    if address_mode == 'new':
        for field in ('address', 'city', 'postalCode'):
            if not _text(form, field):
                missing.append(field)
    elif not (_text(saved_profile, 'address') or _text(saved_profile, 'city')
              or _text(saved_profile, 'postal_code')):
        missing.append('savedAddress')

    if missing:
        message = DELIVERY_ERROR_B2B if storefront == 'b2b' else DELIVERY_ERROR_B2C
        raise CheckoutValidationError(message, missing_fields=missing)


def validate_payment(method: str, card: dict = None, payment_id: str = None) -> None:
    """PayPal exige l'id de la commande capturée; la carte exige nom, numéro, expiration et cvc"""
    if method == 'paypal':
        if not str(payment_id or '').strip():
            raise CheckoutValidationError(PAYMENT_ERROR, missing_fields=['paymentId'])
        return
    if method != 'card':
        raise CheckoutValidationError(PAYMENT_ERROR, missing_fields=['paymentMethod'])

    missing = [field for field in CARD_FIELDS if not _text(card, field)]
    if missing:
        raise CheckoutValidationError(PAYMENT_ERROR, missing_fields=missing)


def build_shipping(form: dict, saved_profile: dict = None, contact_name: str = None) -> dict:
    """Snapshot de livraison enregistré sur la commande"""
    form = form or {}
    saved_profile = saved_profile or {}
    contact = _text(form, 'contactName') or contact_name or None

    if (_text(form, 'addressMode') or 'new') == 'saved':
        return {
            'address': saved_profile.get('address') or None,
            'city': saved_profile.get('city') or None,
            'postalCode': saved_profile.get('postal_code') or None,
            'phone': _text(form, 'phone') or saved_profile.get('phone') or None,
            'contactName': contact,
            'deliveryType': _text(form, 'deliveryType') or None,
        }

    return {
        'address': _text(form, 'address') or None,
        'city': _text(form, 'city') or None,
        'postalCode': _text(form, 'postalCode') or None,
        'phone': _text(form, 'phone') or None,
        'contactName': contact,
        'deliveryType': _text(form, 'deliveryType') or None,
    }


class CheckoutService:
    """
    Soumission d'une commande

    Usage:
        result = CheckoutService().submit(
            user=user,
            lines=lines,
            form={'phone': '...', 'deliveryType': 'Point relais', 'addressMode': 'saved'},
            payment_method='paypal',
            payment_id='5O190127TN364715T',
            storefront='b2b'
        )
        result['order_id'], result['invoice']
    """

    def __init__(self, order_service=None, notifier=None):
        from storefront.services.order_service import OrderService
        from storefront.services.email_service import InvoiceNotifier

        self.order_service = order_service or OrderService()
        self.notifier = notifier if notifier is not None else InvoiceNotifier.from_app()

    def submit(
        self,
        user,
        lines: List[dict],
        form: dict,
        payment_method: str,
        payment_id: str = None,
        card: dict = None,
        storefront: str = 'b2c',
        region: str = None,
        timezone: str = None,
        locale: str = None,
        email: str = None,
        reserve_stock: bool = False
    ) -> dict:
        from storefront.services.order_service import buyer_from_user
        from storefront.services.invoice_service import build_invoice_data

        saved_profile = user.profile() if user else {}

        validate_delivery(form, saved_profile, storefront=storefront)
        validate_payment(payment_method, card, payment_id)

        if not lines:
            raise CheckoutValidationError('Votre panier est vide.', missing_fields=['lines'])

        resolved_region = resolve_region(region or (user.region if user else None), timezone, locale)
        totals = compute_totals(lines, resolved_region)

        contact_name = None
        if user:
            contact_name = user.full_name or user.company or None
        shipping = build_shipping(form, saved_profile, contact_name)

        buyer = buyer_from_user(user, email=email or _text(form, 'email') or None)

        order_id = self.order_service.create_order_and_payment(
            buyer=buyer,
            lines=lines,
            totals=totals,
            provider=payment_method,
            payment_id=payment_id if payment_method == 'paypal' else None,
            status='payee',
            shipping=shipping,
            region=resolved_region,
            storefront=storefront,
            reserve_stock=reserve_stock
        )

        order = self.order_service.get_order(order_id)
        invoice = build_invoice_data(order, buyer=user, shipping=shipping)

        recipient = buyer.get('email')
        if recipient and self.notifier:
            self.notifier.notify(recipient, invoice)

        return {'order_id': order_id, 'invoice': invoice, 'totals': totals, 'region': resolved_region}
