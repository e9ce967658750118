"""
Application Flask - Mishki Storefront Backend
API REST de la boutique B2C/B2B: catalogue, panier, commande, factures
"""

from flask import Flask, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from config import config
import logging
import os

db = SQLAlchemy()
jwt = JWTManager()
migrate = Migrate()

logger = logging.getLogger(__name__)


def client_ip():
    """
    Clé du rate limiting: IP du client (premier saut de X-Forwarded-For
    derrière un proxy). Les preflight CORS partagent une clé commune.
    """
    if request.method == 'OPTIONS':
        return 'preflight'

    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return get_remote_address() or request.headers.get('X-Real-IP') or '127.0.0.1'


limiter = Limiter(
    key_func=client_ip,
    default_limits=["5000 per day", "500 per hour"],
    storage_uri=os.environ.get('REDIS_URL', 'memory://')
)


BLUEPRINTS = [
    # (module, blueprint, préfixe)
    ('storefront.routes.auth', 'auth_bp', '/api/auth'),
    ('storefront.routes.catalog', 'catalog_bp', '/api/products'),
    ('storefront.routes.cart', 'cart_bp', '/api/cart'),
    ('storefront.routes.checkout', 'checkout_bp', '/api/checkout'),
    ('storefront.routes.paypal', 'paypal_bp', '/api/paypal'),
    ('storefront.routes.invoices', 'invoices_bp', '/api'),
    ('storefront.routes.newsletter', 'newsletter_bp', '/api/newsletter'),
]

HTTP_ERRORS = {
    400: ('Requête invalide', 'BAD_REQUEST'),
    401: ('Authentification requise', 'UNAUTHORIZED'),
    403: ('Accès refusé', 'FORBIDDEN'),
    404: ('Ressource introuvable', 'NOT_FOUND'),
    405: ('Méthode non autorisée', 'METHOD_NOT_ALLOWED'),
    409: ('Conflit', 'CONFLICT'),
    422: ('Données non traitables', 'UNPROCESSABLE_ENTITY'),
    429: ('Trop de requêtes. Réessayez plus tard.', 'RATE_LIMITED'),
    500: ('Erreur interne du serveur', 'INTERNAL_ERROR'),
}


def register_blueprints(app):
    from importlib import import_module

    for module_name, attr, prefix in BLUEPRINTS:
        blueprint = getattr(import_module(module_name), attr)
        app.register_blueprint(blueprint, url_prefix=prefix)


def register_error_handlers(app):
    """Réponses JSON {error, code} pour les erreurs HTTP et métier"""
    from storefront.services.errors import StorefrontError

    @app.errorhandler(StorefrontError)
    def storefront_error(error):
        if error.status_code >= 500:
            logger.error(f"{error.code}: {error.message}")
        return error.to_dict(), error.status_code

    def make_handler(status, message, code):
        def handler(error):
            if status >= 500:
                logger.error(f"Erreur interne: {error}")
            return {'error': message, 'code': code}, status
        return handler

    for status, (message, code) in HTTP_ERRORS.items():
        app.register_error_handler(status, make_handler(status, message, code))


def create_app(config_name='default'):
    """
    Factory de l'application

    Args:
        config_name: development, production ou testing

    Returns:
        Flask app configurée
    """
    app = Flask(__name__)
    settings = config[config_name]
    app.config.from_object(settings)

    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if hasattr(settings, 'init_app'):
        settings.init_app(app)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    CORS(app, resources={
        r"/api/*": {
            "origins": app.config.get('CORS_ORIGINS'),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": app.config.get('CORS_ALLOW_HEADERS'),
            "expose_headers": app.config.get('CORS_EXPOSE_HEADERS'),
            "supports_credentials": app.config.get('CORS_SUPPORTS_CREDENTIALS', True)
        }
    })

    @app.after_request
    def security_headers(response):
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
        if not app.debug and not app.testing:
            response.headers.setdefault('Strict-Transport-Security', 'max-age=31536000; includeSubDomains')
        return response

    register_blueprints(app)
    register_error_handlers(app)

    @app.route('/api/health')
    def health_check():
        """Vérification de santé (load balancer)"""
        return {'status': 'healthy', 'service': 'storefront', 'version': '1.0.0'}

    if os.environ.get('AUTO_CREATE_DB', 'false').lower() == 'true':
        with app.app_context():
            db.create_all()

    logger.info(f"Boutique démarrée ({config_name})")

    return app
