"""
Routes Panier
Panier par vitrine (b2c, b2b) pour l'utilisateur connecté ou l'invité
(header X-Guest-Token)
"""

from flask import Blueprint, request, jsonify, g
from storefront.models import Product, Storefront
from storefront.services.cart_service import get_cart
from storefront.utils.decorators import auth_optional
from storefront.utils.helpers import get_guest_token
import logging

cart_bp = Blueprint('cart', __name__)
logger = logging.getLogger(__name__)


def _load_cart(storefront):
    """Retourne (panier, réponse d'erreur)"""
    if not Storefront.is_valid(storefront):
        return None, (jsonify({'error': 'Vitrine inconnue', 'code': 'NOT_FOUND'}), 404)

    guest_token = get_guest_token()
    if g.user is None and not guest_token:
        return None, (jsonify({'error': 'X-Guest-Token header is required', 'code': 'BAD_REQUEST'}), 400)

    return get_cart(storefront, user=g.user, guest_token=guest_token), None


def _cart_response(cart, status=200):
    return jsonify({
        'storefront': cart.storefront,
        'items': cart.get_items(),
        'item_count': cart.item_count,
        'subtotal': float(cart.subtotal),
        'min_quantity': cart.min_quantity
    }), status


def _find_product(product_id):
    return (
        Product.query.filter_by(id=product_id, is_active=True).first()
        or Product.query.filter_by(slug=product_id, is_active=True).first()
        or Product.query.filter_by(reference=product_id, is_active=True).first()
    )


@cart_bp.route('/<storefront>', methods=['GET'])
@auth_optional
def get_cart_items(storefront):
    cart, error = _load_cart(storefront)
    if error:
        return error
    return _cart_response(cart)


@cart_bp.route('/<storefront>', methods=['DELETE'])
@auth_optional
def clear_cart(storefront):
    cart, error = _load_cart(storefront)
    if error:
        return error
    cart.clear()
    return _cart_response(cart)


@cart_bp.route('/<storefront>/items', methods=['POST'])
@auth_optional
def add_item(storefront):
    """
    Ajoute un produit au panier

    Body: {product_id, quantity}
    Le prix vient du catalogue, jamais du client.
    """
    cart, error = _load_cart(storefront)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    product_id = data.get('product_id') or data.get('id')
    if not product_id:
        return jsonify({'error': 'product_id is required', 'code': 'VALIDATION_ERROR'}), 400

    try:
        quantity = int(data.get('quantity', 1))
    except (TypeError, ValueError):
        return jsonify({'error': 'quantity must be an integer', 'code': 'VALIDATION_ERROR'}), 400
    if quantity < 1:
        return jsonify({'error': 'quantity must be positive', 'code': 'VALIDATION_ERROR'}), 400

    product = _find_product(str(product_id))
    if not product:
        return jsonify({'error': 'Produit non trouvé', 'code': 'NOT_FOUND'}), 404

    cart.add_item({
        'id': product.id,
        'name': product.name,
        'price': product.price_ht,
        'image': product.image,
        'reference': product.reference,
    }, quantity)

    return _cart_response(cart, 201)


@cart_bp.route('/<storefront>/items/<item_id>', methods=['PUT'])
@auth_optional
def update_item(storefront, item_id):
    cart, error = _load_cart(storefront)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        quantity = int(data.get('quantity'))
    except (TypeError, ValueError):
        return jsonify({'error': 'quantity must be an integer', 'code': 'VALIDATION_ERROR'}), 400

    if cart.update_quantity(item_id, quantity) is None:
        return jsonify({'error': 'Article non trouvé', 'code': 'NOT_FOUND'}), 404

    return _cart_response(cart)


@cart_bp.route('/<storefront>/items/<item_id>', methods=['DELETE'])
@auth_optional
def remove_item(storefront, item_id):
    cart, error = _load_cart(storefront)
    if error:
        return error

    if not cart.remove_item(item_id):
        return jsonify({'error': 'Article non trouvé', 'code': 'NOT_FOUND'}), 404

    return _cart_response(cart)
