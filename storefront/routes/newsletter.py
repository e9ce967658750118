"""
Routes Newsletter
"""

from flask import Blueprint, request, jsonify
from storefront import db, limiter
from storefront.models import NewsletterSubscription
from storefront.routes.auth import validate_email
import logging

newsletter_bp = Blueprint('newsletter', __name__)
logger = logging.getLogger(__name__)


@newsletter_bp.route('', methods=['POST'])
@limiter.limit("10 per hour")
def subscribe():
    """Inscription à la newsletter. Body: {email}"""
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip().lower()

    if not email or not validate_email(email):
        return jsonify({'error': 'Email invalide', 'code': 'VALIDATION_ERROR'}), 400

    existing = NewsletterSubscription.query.filter_by(email=email).first()
    if existing:
        return jsonify({'message': 'Already subscribed', 'subscription': existing.to_dict()})

    try:
        subscription = NewsletterSubscription(email=email)
        db.session.add(subscription)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Newsletter error: {e}")
        return jsonify({'error': 'Erreur lors de l\'inscription', 'code': 'INTERNAL_ERROR'}), 500

    return jsonify({'message': 'Subscribed', 'subscription': subscription.to_dict()}), 201
