"""
Erreurs métier de la boutique
Chaque erreur porte le code HTTP et le code applicatif renvoyés par les routes
"""


class StorefrontError(Exception):
    """Erreur métier de base"""
    status_code = 400
    code = 'STOREFRONT_ERROR'

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class CheckoutValidationError(StorefrontError):
    """Informations de commande incomplètes"""
    status_code = 400
    code = 'VALIDATION_ERROR'

    def __init__(self, message=None, missing_fields=None):
        super().__init__(message)
        self.missing_fields = list(missing_fields or [])

    def to_dict(self):
        data = super().to_dict()
        data['missing_fields'] = self.missing_fields
        return data


class StockError(StorefrontError):
    """Stock insuffisant"""
    status_code = 409
    code = 'STOCK_INSUFFICIENT'

    def __init__(self, reference, requested=None, available=None, message=None):
        if message is None:
            if available is None:
                message = f"Produit introuvable: {reference}"
            else:
                message = f"Stock insuffisant pour {reference} (demandé {requested}, dispo {available})"
        super().__init__(message)
        self.reference = reference
        self.requested = requested
        self.available = available

    def to_dict(self):
        data = super().to_dict()
        data['reference'] = self.reference
        return data


class StockConflictError(StorefrontError):
    """Le stock a été modifié par une autre commande, veuillez réessayer"""
    status_code = 409
    code = 'STOCK_CONFLICT'

    def __init__(self, reference=None, message=None):
        super().__init__(message)
        self.reference = reference


class PaymentError(StorefrontError):
    """Erreur du prestataire de paiement"""
    status_code = 502
    code = 'PAYMENT_ERROR'


class EmailConfigurationError(StorefrontError):
    """SMTP configuration is missing"""
    status_code = 500
    code = 'EMAIL_NOT_CONFIGURED'


class InvoiceRenderError(StorefrontError):
    """Impossible de générer la facture PDF"""
    status_code = 500
    code = 'INVOICE_RENDER_FAILED'
