"""
Service PayPal - API Orders v2
==============================

Création et capture des commandes PayPal côté serveur.
L'identifiant de la commande PayPal capturée devient le payment_id
enregistré sur la commande Mishki.

Usage:
    provider = PayPalProvider.from_config(current_app.config)
    result = provider.create_order(Decimal('24.00'), 'EUR')
    capture = provider.capture_order(result['paypal_order_id'])
"""

import logging
import requests

from storefront.services.errors import PaymentError
from storefront.utils.helpers import round2

logger = logging.getLogger(__name__)


class PayPalProvider:
    """
    Provider PayPal

    Credentials requis:
        - client_id: Client ID de l'application REST
        - client_secret: Secret de l'application REST
    """

    SANDBOX_URL = 'https://api-m.sandbox.paypal.com'
    PRODUCTION_URL = 'https://api-m.paypal.com'

    def __init__(self, client_id: str, client_secret: str, sandbox: bool = True):
        if not client_id or not client_secret:
            raise PaymentError('PayPal configuration is missing')
        self.client_id = client_id
        self.client_secret = client_secret
        self.sandbox = sandbox

    @classmethod
    def from_config(cls, config) -> 'PayPalProvider':
        return cls(
            client_id=config.get('PAYPAL_CLIENT_ID'),
            client_secret=config.get('PAYPAL_CLIENT_SECRET'),
            sandbox=config.get('PAYPAL_SANDBOX', True)
        )

    def _get_base_url(self):
        return self.SANDBOX_URL if self.sandbox else self.PRODUCTION_URL

    def _get_access_token(self):
        """Obtient un token OAuth2 (client credentials)"""
        try:
            response = requests.post(
                f'{self._get_base_url()}/v1/oauth2/token',
                auth=(self.client_id, self.client_secret),
                headers={'Accept': 'application/json'},
                data={'grant_type': 'client_credentials'},
                timeout=15
            )

            if response.status_code == 200:
                return response.json().get('access_token')

            logger.error(f"PayPal auth error: {response.status_code} {response.text}")
            return None
        except requests.RequestException as e:
            logger.exception(f"PayPal auth error: {e}")
            return None

    def _headers(self, access_token):
        return {
            'Authorization': f'Bearer {access_token}',
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }

    def create_order(self, amount, currency: str = 'EUR', description: str = None) -> dict:
        """Crée une commande PayPal (intent CAPTURE, une seule unité d'achat)"""
        try:
            access_token = self._get_access_token()
            if not access_token:
                return {'success': False, 'error': 'Failed to authenticate with PayPal API'}

            purchase_unit = {
                'amount': {
                    'currency_code': currency.upper(),
                    'value': f"{round2(amount):.2f}"
                }
            }
            if description:
                purchase_unit['description'] = description[:127]

            response = requests.post(
                f'{self._get_base_url()}/v2/checkout/orders',
                headers=self._headers(access_token),
                json={'intent': 'CAPTURE', 'purchase_units': [purchase_unit]},
                timeout=30
            )

            result = response.json()

            if response.status_code in (200, 201) and result.get('id'):
                return {
                    'success': True,
                    'paypal_order_id': result['id'],
                    'status': result.get('status'),
                }

            logger.error(f"PayPal create_order error: {result}")
            return {
                'success': False,
                'error': result.get('message', 'PayPal error')
            }

        except (requests.RequestException, ValueError) as e:
            logger.exception(f"PayPal create_order error: {e}")
            return {'success': False, 'error': str(e)}

    def capture_order(self, paypal_order_id: str) -> dict:
        """Capture une commande approuvée par l'acheteur"""
        try:
            access_token = self._get_access_token()
            if not access_token:
                return {'success': False, 'error': 'Failed to authenticate with PayPal API'}

            response = requests.post(
                f'{self._get_base_url()}/v2/checkout/orders/{paypal_order_id}/capture',
                headers=self._headers(access_token),
                timeout=30
            )

            result = response.json()
            status = (result.get('status') or '').upper()

            if response.status_code in (200, 201) and status == 'COMPLETED':
                return {
                    'success': True,
                    'payment_id': result.get('id', paypal_order_id),
                    'status': status,
                }

            logger.error(f"PayPal capture error: {result}")
            return {
                'success': False,
                'status': status or None,
                'error': result.get('message', 'PayPal capture failed')
            }

        except (requests.RequestException, ValueError) as e:
            logger.exception(f"PayPal capture_order error: {e}")
            return {'success': False, 'error': str(e)}
