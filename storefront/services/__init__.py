"""
Services de l'application
Logique métier réutilisable
"""

from storefront.services.cart_service import CartStore, get_cart
from storefront.services.checkout_service import CheckoutService
from storefront.services.order_service import OrderService
from storefront.services.quick_order_service import QuickOrderService
from storefront.services.invoice_service import InvoiceService, InvoiceData
from storefront.services.pdf_invoice_service import InvoicePDFRenderer
from storefront.services.email_service import InvoiceMailer, InvoiceNotifier
from storefront.services.paypal_service import PayPalProvider

__all__ = [
    'CartStore',
    'get_cart',
    'CheckoutService',
    'OrderService',
    'QuickOrderService',
    'InvoiceService',
    'InvoiceData',
    'InvoicePDFRenderer',
    'InvoiceMailer',
    'InvoiceNotifier',
    'PayPalProvider'
]
