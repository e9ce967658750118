"""
Service Commande rapide (B2B)
=============================

Saisie par référence produit, quantité minimale par ligne.
Chaque ligne est confrontée au stock: la quantité est ramenée au stock
disponible et un message bloque le passage en paiement.
"""

import logging
from collections import Counter
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import func

from storefront.models import Product, Order
from storefront.services.checkout_service import apply_remise, compute_totals, resolve_region
from storefront.services.errors import CheckoutValidationError
from storefront.services.order_service import normalize_order_lines
from storefront.utils.helpers import round2

logger = logging.getLogger(__name__)

DEFAULT_MIN_QTY = 100


def normalize_reference(reference: str) -> str:
    return (reference or '').strip().lower()


def enforce_line_stock(quantity: int, stock: Optional[int], min_qty: int = DEFAULT_MIN_QTY) -> Tuple[int, Optional[str]]:
    """
    Ramène la quantité d'une ligne au stock disponible.

    Returns:
        (quantité retenue, message bloquant ou None)
    """
    requested = max(min_qty, int(quantity or 0))

    if stock is None:
        return requested, None
    if stock <= 0:
        return 0, 'Stock épuisé'
    if stock < min_qty:
        return stock, f"Stock insuffisant (min {min_qty}, dispo {stock})"
    if requested > stock:
        return stock, f"Stock max: {stock}"
    return requested, None


def normalize_entries(entries) -> List[dict]:
    """
    Saisies {reference, quantity} validées: quantité entière positive ou absente.

    Raises:
        CheckoutValidationError: saisie qui n'est pas un objet ou quantité invalide
    """
    normalized = []
    for index, entry in enumerate(entries or []):
        if not isinstance(entry, dict):
            raise CheckoutValidationError(
                f"Ligne {index + 1}: objet {{reference, quantity}} attendu", missing_fields=['entries']
            )

        quantity = entry.get('quantity')
        if quantity not in (None, ''):
            try:
                quantity = int(quantity)
            except (TypeError, ValueError):
                raise CheckoutValidationError(
                    f"Ligne {index + 1}: quantité invalide", missing_fields=['quantity']
                )
            if quantity < 0:
                raise CheckoutValidationError(
                    f"Ligne {index + 1}: quantité invalide", missing_fields=['quantity']
                )

        normalized.append({'reference': str(entry.get('reference') or ''), 'quantity': quantity or 0})
    return normalized


def lookup_products(references: List[str]) -> dict:
    """Recherche des produits actifs par référence, insensible à la casse"""
    wanted = {normalize_reference(ref) for ref in references if normalize_reference(ref)}
    if not wanted:
        return {}

    products = Product.query.filter(
        func.lower(Product.reference).in_(list(wanted)),
        Product.is_active.is_(True)
    ).all()
    return {normalize_reference(p.reference): p for p in products}


class QuickOrderService:
    """
    Préparation des brouillons de commande rapide

    Usage:
        draft = QuickOrderService().prepare([{'reference': 'SER-01', 'quantity': 120}], user)
        if draft['has_stock_issues']:
            ...
    """

    def __init__(self, min_qty: int = None):
        self.min_qty = min_qty or current_app.config.get('B2B_MIN_QTY', DEFAULT_MIN_QTY)

    def prepare(self, entries: List[dict], user=None, region: str = None) -> dict:
        """
        Construit le brouillon: lignes au prix remisé, totaux, messages de stock.
        Une référence inconnue ou un message de stock bloque la commande.
        """
        entries = normalize_entries(entries)
        remise = user.remise if user else 0
        products = lookup_products([e.get('reference', '') for e in entries])

        lines = []
        messages = {}
        errors = []

        for entry in entries:
            raw_reference = (entry.get('reference') or '').strip()
            if not raw_reference:
                continue

            product = products.get(normalize_reference(raw_reference))
            if product is None:
                errors.append({'reference': raw_reference.upper(), 'error': 'Référence inconnue'})
                continue

            quantity, message = enforce_line_stock(entry.get('quantity'), product.stock, self.min_qty)
            if message:
                messages[product.reference] = message

            unit_price = apply_remise(product.price_ht, remise)
            lines.append({
                'reference': product.reference,
                'name': product.name,
                'image': product.image,
                'quantity': quantity,
                'stock': product.stock,
                'unit_price_ht': unit_price,
                'total_ht': round2(unit_price * quantity),
            })

        resolved_region = resolve_region(region or (user.region if user else None))
        totals = compute_totals(lines, resolved_region) if lines else None

        has_stock_issues = bool(messages)
        can_checkout = bool(lines) and not errors and not has_stock_issues

        return {
            'lines': lines,
            'totals': totals,
            'region': resolved_region,
            'stock_messages': messages,
            'errors': errors,
            'has_stock_issues': has_stock_issues,
            'can_checkout': can_checkout,
        }

    def frequent_references(self, user_id: str, limit: int = 12) -> List[str]:
        """Références les plus commandées par un client (suggestions)"""
        counts = Counter()
        for order in Order.query.filter_by(user_id=user_id).all():
            for line in normalize_order_lines(order.to_dict()):
                if line['reference']:
                    counts[normalize_reference(line['reference'])] += line['quantity']
        return [reference for reference, _ in counts.most_common(limit)]
