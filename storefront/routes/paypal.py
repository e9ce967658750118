"""
Routes PayPal
Création et capture des commandes PayPal (bouton côté client)
"""

from flask import Blueprint, request, jsonify, current_app
from storefront.services.errors import PaymentError
from storefront.services.paypal_service import PayPalProvider
from storefront.utils.helpers import to_decimal
from decimal import InvalidOperation
import logging

paypal_bp = Blueprint('paypal', __name__)
logger = logging.getLogger(__name__)


@paypal_bp.route('/orders', methods=['POST'])
def create_paypal_order():
    """
    Crée l'intention de paiement

    Body: {amount, currency, description?}
    """
    data = request.get_json(silent=True) or {}

    try:
        amount = to_decimal(data.get('amount'))
    except (InvalidOperation, TypeError, ValueError):
        return jsonify({'error': 'amount is invalid', 'code': 'VALIDATION_ERROR'}), 400
    if not amount.is_finite() or amount <= 0:
        return jsonify({'error': 'amount must be positive', 'code': 'VALIDATION_ERROR'}), 400

    provider = PayPalProvider.from_config(current_app.config)
    result = provider.create_order(amount, data.get('currency') or 'EUR', data.get('description'))

    if not result.get('success'):
        raise PaymentError(result.get('error'))

    return jsonify(result), 201


@paypal_bp.route('/orders/<paypal_order_id>/capture', methods=['POST'])
def capture_paypal_order(paypal_order_id):
    """Capture après approbation; l'id retourné sert de payment_id au checkout"""
    provider = PayPalProvider.from_config(current_app.config)
    result = provider.capture_order(paypal_order_id)

    if not result.get('success'):
        raise PaymentError(result.get('error'))

    logger.info(f"Paiement PayPal capturé: {result.get('payment_id')}")
    return jsonify(result)
