"""
Routes Checkout
===============

- Paiement du panier (vitrine b2c ou b2b)
- Commande rapide pro: préparation du brouillon puis commande avec
  réservation du stock
"""

from flask import Blueprint, request, jsonify, g
from storefront.models import Product, Storefront
from storefront.services.cart_service import get_cart
from storefront.services.checkout_service import CheckoutService, build_checkout_lines
from storefront.services.errors import CheckoutValidationError
from storefront.services.quick_order_service import QuickOrderService
from storefront.utils.decorators import auth_optional, b2b_required
from storefront.utils.helpers import get_guest_token
import logging

checkout_bp = Blueprint('checkout', __name__)
logger = logging.getLogger(__name__)


def _submit_kwargs(data: dict) -> dict:
    """Paramètres communs du formulaire de paiement"""
    return {
        'form': data.get('form') or {},
        'payment_method': (data.get('paymentMethod') or '').lower(),
        'payment_id': data.get('paymentId'),
        'card': data.get('card'),
        'region': data.get('region'),
        'timezone': data.get('timezone'),
        'locale': data.get('locale'),
        'email': data.get('email'),
    }


def _with_catalog_prices(items: list) -> list:
    """Articles du panier au prix catalogue courant (le prix stocké au panier n'est qu'indicatif)"""
    ids = [item['id'] for item in items]
    products = {p.id: p for p in Product.query.filter(Product.id.in_(ids), Product.is_active.is_(True)).all()}

    unavailable = [item.get('reference') or item['id'] for item in items if item['id'] not in products]
    if unavailable:
        raise CheckoutValidationError(
            f"Produit indisponible: {', '.join(unavailable)}", missing_fields=['itemIds']
        )

    return [dict(item, price=products[item['id']].price_ht) for item in items]


def _checkout_response(result: dict, status=201):
    totals = result['totals']
    return jsonify({
        'order_id': result['order_id'],
        'region': result['region'],
        'totals': {
            'subtotal': float(totals['subtotal']),
            'tax': float(totals['tax']),
            'total': float(totals['total']),
            'currency': totals['currency'],
            'tax_label': totals['tax_label'],
        },
        'invoice': result['invoice'].to_dict()
    }), status


# ==================== COMMANDE RAPIDE ====================

@checkout_bp.route('/quick-order/prepare', methods=['POST'])
@b2b_required
def prepare_quick_order():
    """
    Brouillon de commande rapide

    Body: {entries: [{reference, quantity}], region?}
    """
    data = request.get_json(silent=True) or {}
    entries = data.get('entries') or []
    if not isinstance(entries, list):
        return jsonify({'error': 'entries must be a list', 'code': 'VALIDATION_ERROR'}), 400

    draft = QuickOrderService().prepare(entries, g.user, data.get('region'))
    return jsonify(_serialize_draft(draft))


@checkout_bp.route('/quick-order', methods=['POST'])
@b2b_required
def submit_quick_order():
    """
    Commande rapide: le brouillon est recalculé côté serveur, puis la
    commande est créée avec décrément du stock dans la même transaction.

    Body: {entries, form, paymentMethod, paymentId?, card?, region?}
    """
    data = request.get_json(silent=True) or {}
    entries = data.get('entries') or []
    if not isinstance(entries, list):
        return jsonify({'error': 'entries must be a list', 'code': 'VALIDATION_ERROR'}), 400

    draft = QuickOrderService().prepare(entries, g.user, data.get('region'))
    if not draft['can_checkout']:
        return jsonify({
            'error': 'Commande impossible: vérifiez les références et le stock',
            'code': 'QUICK_ORDER_BLOCKED',
            'draft': _serialize_draft(draft)
        }), 409

    kwargs = _submit_kwargs(data)
    kwargs['region'] = draft['region']

    result = CheckoutService().submit(
        user=g.user,
        lines=draft['lines'],
        storefront='b2b',
        reserve_stock=True,
        **kwargs
    )
    return _checkout_response(result)


def _serialize_draft(draft: dict) -> dict:
    totals = draft['totals']
    return {
        'lines': [
            {
                **line,
                'unit_price_ht': float(line['unit_price_ht']),
                'total_ht': float(line['total_ht']),
            }
            for line in draft['lines']
        ],
        'totals': {
            'subtotal': float(totals['subtotal']),
            'tax': float(totals['tax']),
            'total': float(totals['total']),
            'currency': totals['currency'],
            'tax_label': totals['tax_label'],
        } if totals else None,
        'region': draft['region'],
        'stock_messages': draft['stock_messages'],
        'errors': draft['errors'],
        'has_stock_issues': draft['has_stock_issues'],
        'can_checkout': draft['can_checkout'],
    }


# ==================== PANIER ====================

@checkout_bp.route('/<storefront>', methods=['POST'])
@auth_optional
def checkout_cart(storefront):
    """
    Paiement des articles sélectionnés du panier

    Body: {itemIds?, form, paymentMethod, paymentId?, card?, email?, region?,
           timezone?, locale?}
    Seules les lignes payées sont retirées du panier.
    """
    if not Storefront.is_valid(storefront):
        return jsonify({'error': 'Vitrine inconnue', 'code': 'NOT_FOUND'}), 404

    user = g.user
    if storefront == 'b2b':
        if user is None:
            return jsonify({'error': 'Token invalide', 'code': 'UNAUTHORIZED'}), 401
        if not user.is_b2b:
            return jsonify({'error': 'Compte professionnel requis', 'code': 'INSUFFICIENT_ROLE'}), 403
        if not user.validated:
            return jsonify({'error': 'Compte professionnel en attente de validation', 'code': 'ACCOUNT_NOT_VALIDATED'}), 403

    guest_token = get_guest_token()
    if user is None and not guest_token:
        return jsonify({'error': 'X-Guest-Token header is required', 'code': 'BAD_REQUEST'}), 400

    data = request.get_json(silent=True) or {}
    kwargs = _submit_kwargs(data)
    if not isinstance(kwargs['form'], dict):
        return jsonify({'error': 'form must be an object', 'code': 'VALIDATION_ERROR'}), 400
    if user is None and not (kwargs['email'] or kwargs['form'].get('email')):
        raise CheckoutValidationError('Merci de renseigner votre email.', missing_fields=['email'])

    cart = get_cart(storefront, user=user, guest_token=guest_token)
    selected_ids = data.get('itemIds')
    items = cart.get_items()
    if selected_ids:
        wanted = {str(i) for i in selected_ids}
        items = [item for item in items if item['id'] in wanted]
    cart.prepare_checkout(items)

    remise = user.remise if (user and storefront == 'b2b') else 0
    lines = build_checkout_lines(_with_catalog_prices(items), remise)

    result = CheckoutService().submit(
        user=user,
        lines=lines,
        storefront=storefront,
        **kwargs
    )

    cart.paid([item['id'] for item in items])
    logger.info(f"Checkout {storefront} terminé: commande {result['order_id']}")
    return _checkout_response(result)
