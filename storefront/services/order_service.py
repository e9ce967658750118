"""
Service Commandes
=================

Enregistre une commande, ses lignes et son paiement dans une seule
transaction. Pour les commandes rapides B2B, le stock des produits
référencés est réservé dans cette même transaction:

1. lecture des produits (verrou FOR UPDATE si la base le permet)
2. validation de toutes les lignes, sans aucune écriture
3. décrémentation conditionnelle sur la version lue

Si une décrémentation ne trouve plus sa ligne (commande concurrente),
toute la transaction est annulée et StockConflictError est levée.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update

from storefront import db
from storefront.models import Order, OrderLine, Payment, Product, PaymentStatus, PaymentProvider
from storefront.services.errors import StockError, StockConflictError, StorefrontError
from storefront.utils.helpers import round2

logger = logging.getLogger(__name__)


# Clés acceptées dans les anciens documents de commande
LINE_LIST_KEYS = ('lines', 'items', 'orderItems')
QUANTITY_KEYS = ('quantity', 'quantite', 'qty')
UNIT_PRICE_KEYS = ('unitPriceHT', 'unit_price_ht', 'price', 'prixHT')
NAME_KEYS = ('name', 'nom', 'description')
REFERENCE_KEYS = ('reference', 'code', 'slug')


def _first(data: dict, keys, default=None):
    for key in keys:
        value = data.get(key)
        if value is not None and value != '':
            return value
    return default


def normalize_order_lines(raw) -> List[dict]:
    """
    Ramène une commande (ou une liste de lignes) au format canonique:
    {reference, name, quantity, unit_price_ht, total_ht}

    Seule fonction du système qui connaît les variantes historiques
    (lines/items/orderItems, quantite, prixHT, nom...).
    """
    if raw is None:
        return []

    if isinstance(raw, dict):
        entries = []
        for key in LINE_LIST_KEYS:
            if isinstance(raw.get(key), list):
                entries = raw[key]
                break
    else:
        entries = list(raw)

    lines = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        quantity = int(_first(entry, QUANTITY_KEYS, 0) or 0)
        unit_price = round2(_first(entry, UNIT_PRICE_KEYS, 0))
        reference = _first(entry, REFERENCE_KEYS)
        lines.append({
            'reference': str(reference) if reference is not None else None,
            'name': str(_first(entry, NAME_KEYS, '')),
            'quantity': quantity,
            'unit_price_ht': unit_price,
            'total_ht': round2(unit_price * quantity),
        })
    return lines


def buyer_from_user(user, email: str = None) -> dict:
    """Copie les informations acheteur dénormalisées sur la commande"""
    if user is None:
        return {'id': None, 'email': email}
    return {
        'id': user.id,
        'email': user.email or email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'company': user.company,
        'siret': user.siret,
        'ruc': user.ruc,
        'remise': user.remise or 0,
    }


@dataclass
class StockReservation:
    """Quantité à réserver sur un produit, avec la version lue"""
    product_id: str
    reference: str
    quantity: int
    version: int


class OrderService:
    """
    Persistance des commandes et paiements

    Usage:
        order_id = OrderService().create_order_and_payment(
            buyer=buyer_from_user(user),
            lines=lines,
            totals=totals,
            provider='paypal',
            payment_id='PAYPAL-ORDER-ID',
            region='fr',
            storefront='b2b',
            reserve_stock=True
        )
    """

    # ==================== STOCK ====================

    def read_stock_snapshot(self, lines: List[dict]) -> List[StockReservation]:
        """
        Phase de lecture: agrège les quantités par référence, lit les produits
        et valide toutes les lignes. Les lignes sans référence produit ne
        réservent rien. Lève StockError sans rien écrire.
        """
        quantities = OrderedDict()
        for line in lines:
            reference = line.get('reference')
            if not reference:
                continue
            quantities[reference] = quantities.get(reference, 0) + int(line['quantity'])

        if not quantities:
            return []

        products = (
            Product.query
            .filter(Product.reference.in_(list(quantities.keys())))
            .with_for_update()
            .populate_existing()
            .all()
        )
        by_reference = {p.reference: p for p in products}

        snapshot = []
        for reference, quantity in quantities.items():
            product = by_reference.get(reference)
            if product is None or not product.is_active:
                raise StockError(reference)
            if quantity > product.stock:
                raise StockError(reference, requested=quantity, available=product.stock)
            snapshot.append(StockReservation(
                product_id=product.id,
                reference=reference,
                quantity=quantity,
                version=product.version
            ))
        return snapshot

    def apply_stock_snapshot(self, snapshot: List[StockReservation]) -> None:
        """
        Phase d'écriture: décrémente chaque produit seulement si sa version
        n'a pas changé depuis la lecture. Ne commit pas.
        """
        for reservation in snapshot:
            result = db.session.execute(
                update(Product)
                .where(
                    Product.id == reservation.product_id,
                    Product.version == reservation.version,
                    Product.stock >= reservation.quantity
                )
                .values(
                    stock=Product.stock - reservation.quantity,
                    version=Product.version + 1
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning(f"Conflit de stock sur {reservation.reference} (version {reservation.version})")
                raise StockConflictError(reservation.reference)

    # ==================== COMMANDE ====================

    def create_order_and_payment(
        self,
        buyer: Optional[dict],
        lines: List[dict],
        totals: dict,
        provider: str,
        payment_id: str = None,
        status: str = 'payee',
        shipping: dict = None,
        region: str = 'fr',
        storefront: str = 'b2c',
        reserve_stock: bool = False,
        due_date=None
    ) -> str:
        """
        Crée la commande, ses lignes et le paiement en une transaction.

        Returns:
            str: Identifiant de la commande
        """
        if not lines:
            raise StorefrontError('La commande ne contient aucune ligne')
        if not PaymentProvider.is_valid(provider):
            raise StorefrontError(f"Moyen de paiement inconnu: {provider}")
        if not PaymentStatus.is_valid(status):
            raise StorefrontError(f"Statut de paiement inconnu: {status}")

        subtotal = round2(totals['subtotal'])
        tax = round2(totals['tax'])
        total = round2(totals['total'])
        if subtotal + tax != total:
            raise StorefrontError('Montants incohérents (HT + taxe != TTC)')

        buyer = buyer or {}

        try:
            if reserve_stock:
                snapshot = self.read_stock_snapshot(lines)
                self.apply_stock_snapshot(snapshot)

            order = Order(
                user_id=buyer.get('id'),
                email=buyer.get('email'),
                first_name=buyer.get('first_name'),
                last_name=buyer.get('last_name'),
                company=buyer.get('company'),
                siret=buyer.get('siret'),
                ruc=buyer.get('ruc'),
                remise=buyer.get('remise') or 0,
                storefront=storefront,
                subtotal=subtotal,
                tax=tax,
                total=total,
                currency=totals.get('currency', 'EUR'),
                payment_status=status,
                payment_provider=provider,
                payment_id=payment_id,
                shipping=shipping,
                region=region,
                created_at=datetime.utcnow()
            )

            for position, line in enumerate(lines):
                unit_price = round2(line['unit_price_ht'])
                quantity = int(line['quantity'])
                order.lines.append(OrderLine(
                    position=position,
                    reference=line.get('reference'),
                    name=line.get('name') or '',
                    quantity=quantity,
                    unit_price_ht=unit_price,
                    total_ht=round2(line.get('total_ht', unit_price * quantity))
                ))

            db.session.add(order)
            db.session.flush()

            payment = Payment(
                order_id=order.id,
                user_id=buyer.get('id'),
                subtotal=subtotal,
                tax=tax,
                total=total,
                currency=order.currency,
                status=status,
                provider=provider,
                payment_id=payment_id,
                due_date=due_date,
                created_at=order.created_at
            )
            db.session.add(payment)

            db.session.commit()

        except Exception:
            db.session.rollback()
            raise

        logger.info(
            f"Commande {order.id} créée ({storefront}, {provider}, {total} {order.currency}, "
            f"stock réservé: {reserve_stock})"
        )
        return order.id

    def get_order(self, order_id: str) -> Optional[Order]:
        return db.session.get(Order, order_id)
