from functools import wraps
from flask import request, jsonify, g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request, get_jwt
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from storefront.models import User
from storefront import db
import logging

logger = logging.getLogger(__name__)


def _load_user(user_id):
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        return None
    return user


def auth_required(fn):
    """
    Décorateur qui vérifie:
    1. JWT valide
    2. User existant et actif

    Stocke user et user_role dans g pour accès facile
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        # Skip JWT verification for OPTIONS (CORS preflight)
        if request.method == 'OPTIONS':
            return fn(*args, **kwargs)

        try:
            verify_jwt_in_request()
        except (JWTExtendedException, PyJWTError) as e:
            logger.debug(f"JWT verification failed: {e}")
            return jsonify({'error': 'Token invalide', 'code': 'UNAUTHORIZED'}), 401

        user_id = get_jwt_identity()
        user = _load_user(user_id)

        if not user:
            return jsonify({'error': 'Utilisateur non trouvé', 'code': 'NOT_FOUND'}), 404

        g.user = user
        g.user_role = get_jwt().get('role', user.role)

        return fn(*args, **kwargs)

    return wrapper


def auth_optional(fn):
    """
    Comme auth_required mais laisse passer les invités:
    g.user vaut None si aucun token n'est fourni
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        g.user = None
        g.user_role = None

        if request.method == 'OPTIONS':
            return fn(*args, **kwargs)

        try:
            verify_jwt_in_request(optional=True)
        except (JWTExtendedException, PyJWTError) as e:
            logger.debug(f"JWT verification failed: {e}")
            return jsonify({'error': 'Token invalide', 'code': 'UNAUTHORIZED'}), 401

        user_id = get_jwt_identity()
        if user_id:
            g.user = _load_user(user_id)
            if g.user:
                g.user_role = g.user.role

        return fn(*args, **kwargs)

    return wrapper


def b2b_required(fn):
    """Décorateur pour les routes réservées aux comptes pro validés"""
    @wraps(fn)
    @auth_required
    def wrapper(*args, **kwargs):
        if request.method == 'OPTIONS':
            return '', 200

        if g.user.role != 'b2b':
            return jsonify({'error': 'Compte professionnel requis', 'code': 'INSUFFICIENT_ROLE'}), 403

        if not g.user.validated:
            logger.warning(f"Compte pro non validé: user {g.user.id} ({g.user.email})")
            return jsonify({'error': 'Compte professionnel en attente de validation', 'code': 'ACCOUNT_NOT_VALIDATED'}), 403

        return fn(*args, **kwargs)

    return wrapper
