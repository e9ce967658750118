"""
Configuration Mishki Storefront Backend
=======================================

Variables d'environnement supportées:
-------------------------------------
FLASK_ENV           : development | production | testing (défaut: development)
SECRET_KEY          : Clé secrète Flask (OBLIGATOIRE en production)
JWT_SECRET_KEY      : Clé secrète JWT (OBLIGATOIRE en production)
DATABASE_URL        : URL PostgreSQL (OBLIGATOIRE en production)

CORS_ORIGINS        : Origines autorisées, séparées par virgule
CORS_ALLOW_ALL      : "true" pour autoriser toutes les origines (dev uniquement!)

JWT_ACCESS_HOURS    : Durée du token d'accès en heures (défaut: 24)

LOG_LEVEL           : Niveau de log (DEBUG, INFO, WARNING, ERROR)

SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASS / SMTP_FROM
                    : Transport SMTP pour l'envoi des factures
INVOICE_EMAIL_ENDPOINT
                    : URL de l'endpoint d'envoi des factures (optionnel).
                      Si absent, l'envoi se fait dans le process.

PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET / PAYPAL_SANDBOX
                    : Identifiants API PayPal (Orders v2)

B2B_MIN_QTY         : Quantité minimale par ligne côté pro (défaut: 100)
FRONTEND_URL        : URL publique du site (liens dans les emails)
SELLER_*            : Coordonnées du vendeur imprimées sur les factures
"""

import os
from datetime import timedelta

DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-production'
DEFAULT_JWT_SECRET_KEY = 'jwt-secret-key-change-in-production'


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    return int(os.environ.get(name, default))


def cors_origins_from_env():
    """Origines CORS: '*' si CORS_ALLOW_ALL, sinon la liste CORS_ORIGINS"""
    if env_bool('CORS_ALLOW_ALL'):
        return '*'

    raw = os.environ.get('CORS_ORIGINS', '')
    origins = [o.strip() for o in raw.split(',') if o.strip()]
    return origins or ['http://localhost:3000', 'http://127.0.0.1:3000', 'https://mishki.com']


class Config:
    """Configuration commune"""

    SECRET_KEY = os.environ.get('SECRET_KEY') or DEFAULT_SECRET_KEY

    # JWT (header Authorization: Bearer <token>)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or DEFAULT_JWT_SECRET_KEY
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=env_int('JWT_ACCESS_HOURS', 24))
    JWT_TOKEN_LOCATION = ['headers']

    # Base de données
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True, 'pool_recycle': 300}

    # CORS (X-Guest-Token identifie le panier invité)
    CORS_ORIGINS = cors_origins_from_env()
    CORS_SUPPORTS_CREDENTIALS = True
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Guest-Token']
    CORS_EXPOSE_HEADERS = ['Content-Disposition']

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Email (factures)
    SMTP_HOST = os.environ.get('SMTP_HOST')
    SMTP_PORT = env_int('SMTP_PORT', 587)
    SMTP_USER = os.environ.get('SMTP_USER')
    SMTP_PASS = os.environ.get('SMTP_PASS')
    SMTP_FROM = os.environ.get('SMTP_FROM', 'facturation@mishki.com')
    INVOICE_EMAIL_ENDPOINT = os.environ.get('INVOICE_EMAIL_ENDPOINT')
    INVOICE_EMAIL_TIMEOUT = env_int('INVOICE_EMAIL_TIMEOUT', 15)
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'https://mishki.com')

    # PayPal
    PAYPAL_CLIENT_ID = os.environ.get('PAYPAL_CLIENT_ID')
    PAYPAL_CLIENT_SECRET = os.environ.get('PAYPAL_CLIENT_SECRET')
    PAYPAL_SANDBOX = env_bool('PAYPAL_SANDBOX', True)

    # Règles métier
    B2B_MIN_QTY = env_int('B2B_MIN_QTY', 100)

    # Vendeur (en-tête des factures)
    SELLER_NAME = os.environ.get('SELLER_NAME', 'MISHKI LAB')
    SELLER_ADDRESS_LINES = ['5 Rue du Printemps', '88000 Jeuxey', 'France']
    SELLER_SIRET = os.environ.get('SELLER_SIRET', '92089652300011')
    SELLER_APE = os.environ.get('SELLER_APE', '2042Z')
    SELLER_RUC = os.environ.get('SELLER_RUC')
    SELLER_EMAIL = os.environ.get('SELLER_EMAIL', 'facturation@mishki.com')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///storefront.db'


class ProductionConfig(Config):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_ENGINE_OPTIONS = dict(Config.SQLALCHEMY_ENGINE_OPTIONS, pool_size=10, max_overflow=20)

    @classmethod
    def init_app(cls, app):
        """Refuse de démarrer avec des secrets par défaut"""
        problems = []

        if not os.environ.get('DATABASE_URL'):
            problems.append('DATABASE_URL must be set in production')

        for name, default in (('SECRET_KEY', DEFAULT_SECRET_KEY), ('JWT_SECRET_KEY', DEFAULT_JWT_SECRET_KEY)):
            value = os.environ.get(name, '')
            if not value or value == default:
                problems.append(f'{name} must be set to a secure value in production')
            elif len(value) < 32:
                problems.append(f'{name} should be at least 32 characters')

        if env_bool('CORS_ALLOW_ALL'):
            problems.append('CORS_ALLOW_ALL must not be true in production')

        if problems:
            raise ValueError('Production configuration errors:\n- ' + '\n- '.join(problems))


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    SMTP_HOST = None
    SMTP_USER = None
    SMTP_PASS = None
    INVOICE_EMAIL_ENDPOINT = None
    PAYPAL_CLIENT_ID = None
    PAYPAL_CLIENT_SECRET = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
