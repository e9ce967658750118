"""
Routes d'authentification
=========================

Inscription (particulier ou professionnel), connexion JWT et profil.
À la connexion, le panier invité du navigateur est fusionné dans le
panier du compte.
"""

from flask import Blueprint, request, jsonify, g
from flask_jwt_extended import create_access_token
from storefront import db, limiter
from storefront.models import User, UserRole, Region
from storefront.services.cart_service import get_cart
from storefront.utils.decorators import auth_required
from storefront.utils.helpers import get_guest_token
from datetime import datetime
import re
import logging

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


# ==================== RATE LIMITING ====================

auth_limit = limiter.limit("5 per minute", error_message="Trop de tentatives. Réessayez dans 1 minute.")
register_limit = limiter.limit("3 per hour", error_message="Trop d'inscriptions. Réessayez plus tard.")

# ==================== VALIDATION ====================

def validate_email(email: str) -> bool:
    """Valide le format email"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_password(password: str) -> tuple:
    """
    Valide la complexité du mot de passe
    Retourne (is_valid, error_message)
    """
    if len(password) < 8:
        return False, 'Le mot de passe doit contenir au moins 8 caractères'
    if len(password) > 128:
        return False, 'Le mot de passe est trop long (max 128 caractères)'
    if not re.search(r'[A-Za-z]', password) or not re.search(r'\d', password):
        return False, 'Le mot de passe doit contenir au moins une lettre et un chiffre'
    return True, ''


def create_token(user):
    """Token d'accès avec le rôle en claim"""
    return create_access_token(identity=user.id, additional_claims={'role': user.role})


def merge_guest_carts(user, guest_token):
    """Fusionne les paniers invités (b2c et b2b) dans ceux du compte"""
    if not guest_token:
        return
    for storefront in ('b2c', 'b2b'):
        cart = get_cart(storefront, user=None, guest_token=guest_token)
        cart.set_owner(user.id)


PROFILE_FIELDS = ['first_name', 'last_name', 'phone', 'company', 'siret', 'ruc',
                  'address', 'postal_code', 'city', 'country']


# ==================== ROUTES ====================

@auth_bp.route('/register', methods=['POST'])
@register_limit
def register():
    """Inscription d'un nouveau client (b2c) ou professionnel (b2b)"""
    data = request.get_json(silent=True) or {}

    for field in ['email', 'password']:
        if not data.get(field):
            return jsonify({'error': f'{field} is required', 'code': 'VALIDATION_ERROR'}), 400

    email = data['email'].strip().lower()
    if not validate_email(email):
        return jsonify({'error': 'Format email invalide', 'code': 'VALIDATION_ERROR'}), 400

    is_valid, error_msg = validate_password(data['password'])
    if not is_valid:
        return jsonify({'error': error_msg, 'code': 'VALIDATION_ERROR'}), 400

    role = (data.get('role') or 'b2c').lower()
    if not UserRole.is_valid(role):
        return jsonify({'error': 'Rôle invalide', 'code': 'VALIDATION_ERROR'}), 400

    if role == 'b2b' and not (data.get('company') or '').strip():
        return jsonify({'error': 'company is required', 'code': 'VALIDATION_ERROR'}), 400

    region = (data.get('region') or '').lower() or None
    if region and not Region.is_valid(region):
        return jsonify({'error': 'Région invalide', 'code': 'VALIDATION_ERROR'}), 400

    if User.query.filter_by(email=email).first():
        return jsonify({'error': 'Email already registered', 'code': 'CONFLICT'}), 409

    try:
        user = User(email=email, role=role, region=region, validated=(role == 'b2c'))
        for field in PROFILE_FIELDS:
            value = data.get(field)
            if isinstance(value, str):
                setattr(user, field, value.strip() or None)
        user.set_password(data['password'])

        db.session.add(user)
        db.session.commit()

        merge_guest_carts(user, data.get('guest_token') or get_guest_token())

        logger.info(f"Nouveau compte {role}: {user.email}")
        return jsonify({
            'message': 'Registration successful',
            'user': user.to_dict(),
            'access_token': create_token(user)
        }), 201

    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration error: {e}")
        return jsonify({'error': 'Erreur lors de l\'inscription', 'code': 'INTERNAL_ERROR'}), 500


@auth_bp.route('/login', methods=['POST'])
@auth_limit
def login():
    """Connexion utilisateur, avec fusion optionnelle du panier invité"""
    data = request.get_json(silent=True) or {}

    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    if not email or not password:
        return jsonify({'error': 'Email and password are required', 'code': 'VALIDATION_ERROR'}), 400

    user = User.query.filter_by(email=email).first()

    # Message générique pour éviter l'énumération d'utilisateurs
    if not user or not user.check_password(password):
        logger.info(f"Échec de connexion pour {email}")
        return jsonify({'error': 'Email ou mot de passe incorrect', 'code': 'UNAUTHORIZED'}), 401

    if not user.is_active:
        return jsonify({'error': 'Compte désactivé', 'code': 'FORBIDDEN'}), 403

    user.last_login = datetime.utcnow()
    db.session.commit()

    guest_token = data.get('guest_token') or get_guest_token()
    merge_guest_carts(user, guest_token)

    return jsonify({
        'user': user.to_dict(),
        'access_token': create_token(user)
    })


@auth_bp.route('/me', methods=['GET'])
@auth_required
def get_current_user():
    """Récupérer le profil de l'utilisateur connecté"""
    return jsonify({'user': g.user.to_dict()})


@auth_bp.route('/me', methods=['PUT'])
@auth_required
def update_profile():
    """Mettre à jour le profil (adresse enregistrée, région...)"""
    user = g.user
    data = request.get_json(silent=True) or {}

    for field in PROFILE_FIELDS:
        if field in data:
            value = data[field]
            setattr(user, field, value.strip() or None if isinstance(value, str) else None)

    if 'region' in data:
        region = (data['region'] or '').lower() or None
        if region and not Region.is_valid(region):
            return jsonify({'error': 'Région invalide', 'code': 'VALIDATION_ERROR'}), 400
        user.region = region

    db.session.commit()

    return jsonify({
        'message': 'Profile updated',
        'user': user.to_dict()
    })
