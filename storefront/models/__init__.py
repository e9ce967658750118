"""
Modèles de l'application
Export centralisé de tous les modèles SQLAlchemy
"""

from storefront.models.enums import (
    Storefront, UserRole, Region, PaymentStatus, PaymentProvider, DeliveryType
)
from storefront.models.user import User
from storefront.models.product import Product
from storefront.models.order import Order, OrderLine
from storefront.models.payment import Payment
from storefront.models.cart import CartSlot
from storefront.models.newsletter import NewsletterSubscription

__all__ = [
    # Enums
    'Storefront',
    'UserRole',
    'Region',
    'PaymentStatus',
    'PaymentProvider',
    'DeliveryType',
    # Models
    'User',
    'Product',
    'Order',
    'OrderLine',
    'Payment',
    'CartSlot',
    'NewsletterSubscription',
]
