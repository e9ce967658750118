"""
Enums - Types énumérés pour les modèles
=======================================

Centralise les types énumérés de la boutique pour éviter les "magic strings"
et garantir la cohérence des données.
"""

import enum


class Storefront(enum.Enum):
    """Vitrine d'origine d'un panier ou d'une commande"""
    B2C = 'b2c'   # Particuliers
    B2B = 'b2b'   # Professionnels

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in [s.value for s in cls]


class UserRole(enum.Enum):
    """Rôles des comptes clients"""
    B2C = 'b2c'
    B2B = 'b2b'

    @classmethod
    def is_valid(cls, role: str) -> bool:
        return role in [r.value for r in cls]


class Region(enum.Enum):
    """Régions de facturation"""
    FR = 'fr'   # France / UE (TVA)
    PE = 'pe'   # Pérou (IGV)

    @classmethod
    def is_valid(cls, region: str) -> bool:
        return region in [r.value for r in cls]


class PaymentStatus(enum.Enum):
    """Statuts de paiement d'une commande"""
    PAYEE = 'payee'              # Payée
    EN_ATTENTE = 'en_attente'    # En attente
    RETARD = 'retard'            # En retard

    @classmethod
    def get_label(cls, status: str, lang: str = 'fr') -> str:
        """Retourne le label traduit d'un statut"""
        labels = {
            'fr': {
                'payee': 'Payée',
                'en_attente': 'En attente',
                'retard': 'En retard',
            },
            'es': {
                'payee': 'Pagada',
                'en_attente': 'Pendiente',
                'retard': 'Vencida',
            }
        }
        return labels.get(lang, labels['fr']).get(status, status)

    @classmethod
    def is_valid(cls, status: str) -> bool:
        return status in [s.value for s in cls]


class PaymentProvider(enum.Enum):
    """Moyens de paiement acceptés"""
    PAYPAL = 'paypal'
    CARD = 'card'

    @classmethod
    def is_valid(cls, provider: str) -> bool:
        return provider in [p.value for p in cls]


class DeliveryType(enum.Enum):
    """Modes de livraison proposés au checkout"""
    STANDARD = 'standard'
    EXPRESS = 'express'
    PICKUP = 'pickup'
