"""
Service Panier
==============

Panier B2C/B2B persistant par identité (utilisateur connecté ou invité).

Le stockage est injecté (`CartStorage`): en mémoire pour les tests,
table `cart_slots` en production. Chaque mutation réécrit la liste
complète des articles dans l'emplacement courant.

Clés d'emplacement:
    cart:<vitrine>:user:<uid>
    cart:<vitrine>:guest[:<token>]
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict

from storefront.utils.helpers import round2, to_decimal

logger = logging.getLogger(__name__)


def cart_key(storefront: str, owner_id: str = None, guest_token: str = None) -> str:
    """Construit la clé d'emplacement d'un panier"""
    if owner_id:
        return f"cart:{storefront}:user:{owner_id}"
    if guest_token:
        return f"cart:{storefront}:guest:{guest_token}"
    return f"cart:{storefront}:guest"


def _normalize_item(item: dict, quantity: int = None) -> dict:
    """Copie un article au format canonique du panier"""
    data = {
        'id': str(item['id']),
        'name': item.get('name') or '',
        'price': float(round2(item.get('price', 0))),
        'image': item.get('image') or '',
        'quantity': int(quantity if quantity is not None else item.get('quantity', 1)),
    }
    if item.get('reference'):
        data['reference'] = item['reference']
    return data


def merge_carts(a: List[dict], b: List[dict]) -> List[dict]:
    """
    Fusionne deux paniers: les quantités d'un même id sont additionnées,
    l'ordre de première apparition est conservé, jamais de doublon.
    """
    merged: Dict[str, dict] = {}
    for item in list(a or []) + list(b or []):
        item_id = str(item['id'])
        if item_id in merged:
            merged[item_id]['quantity'] += int(item.get('quantity', 0))
        else:
            merged[item_id] = _normalize_item(item)
    return list(merged.values())


# ==================== STOCKAGES ====================

class CartStorage:
    """Interface de stockage des emplacements de panier"""

    def load(self, key: str) -> List[dict]:
        raise NotImplementedError

    def save(self, key: str, items: List[dict]) -> None:
        raise NotImplementedError


class MemoryCartStorage(CartStorage):
    """Stockage en mémoire (tests, scripts)"""

    def __init__(self):
        self.slots: Dict[str, List[dict]] = {}

    def load(self, key):
        return [dict(item) for item in self.slots.get(key, [])]

    def save(self, key, items):
        self.slots[key] = [dict(item) for item in items]


class DatabaseCartStorage(CartStorage):
    """Stockage dans la table cart_slots"""

    def load(self, key):
        from storefront.models import CartSlot
        from storefront import db

        slot = db.session.get(CartSlot, key)
        if not slot or not isinstance(slot.items, list):
            return []
        return [dict(item) for item in slot.items]

    def save(self, key, items):
        from storefront.models import CartSlot
        from storefront import db

        slot = db.session.get(CartSlot, key)
        if slot is None:
            slot = CartSlot(key=key)
            db.session.add(slot)
        slot.items = [dict(item) for item in items]
        db.session.commit()


# ==================== PANIER ====================

class CartStore:
    """
    Panier d'une vitrine pour l'identité courante

    Usage:
        cart = CartStore(MemoryCartStorage(), storefront='b2b', min_quantity=100)
        cart.add_item({'id': 'p1', 'name': 'Sérum', 'price': 12.5})
        cart.set_owner('user-42')
    """

    def __init__(self, storage: CartStorage, owner_id: str = None, min_quantity: int = 1,
                 storefront: str = 'b2c', guest_token: str = None):
        self.storage = storage
        self.storefront = storefront
        self.min_quantity = max(1, int(min_quantity or 1))
        self.guest_token = guest_token
        self.owner_id = owner_id
        self.items: List[dict] = self.storage.load(self.key)
        self.checkout_items: List[dict] = []

    @property
    def key(self) -> str:
        return cart_key(self.storefront, self.owner_id, self.guest_token)

    @property
    def guest_key(self) -> str:
        return cart_key(self.storefront, None, self.guest_token)

    @property
    def item_count(self) -> int:
        return sum(int(item['quantity']) for item in self.items)

    @property
    def subtotal(self) -> Decimal:
        return round2(sum((to_decimal(item['price']) * int(item['quantity']) for item in self.items), Decimal('0')))

    def _persist(self):
        self.storage.save(self.key, self.items)

    def _find(self, item_id) -> Optional[dict]:
        item_id = str(item_id)
        for item in self.items:
            if item['id'] == item_id:
                return item
        return None

    def get_items(self) -> List[dict]:
        return [dict(item) for item in self.items]

    def add_item(self, item: dict, quantity: int = 1) -> dict:
        """Ajoute un article ou cumule sa quantité s'il est déjà présent"""
        quantity = int(quantity or 1)
        if quantity < 1:
            raise ValueError('La quantité doit être positive')

        existing = self._find(item['id'])
        if existing:
            existing['quantity'] += quantity
            line = existing
        else:
            line = _normalize_item(item, max(self.min_quantity, quantity))
            self.items.append(line)

        self._persist()
        return dict(line)

    def update_quantity(self, item_id, quantity: int) -> Optional[dict]:
        """Met à jour la quantité, jamais en dessous du minimum de la vitrine"""
        line = self._find(item_id)
        if not line:
            return None
        line['quantity'] = max(self.min_quantity, int(quantity))
        self._persist()
        return dict(line)

    def remove_item(self, item_id) -> bool:
        before = len(self.items)
        self.items = [item for item in self.items if item['id'] != str(item_id)]
        self._persist()
        return len(self.items) != before

    def remove_items(self, ids) -> None:
        ids = {str(i) for i in ids or []}
        if not ids:
            return
        self.items = [item for item in self.items if item['id'] not in ids]
        self._persist()

    def clear(self) -> None:
        self.items = []
        self._persist()

    def set_owner(self, owner_id: Optional[str]) -> None:
        """
        Change l'identité du panier.

        Connexion: le panier invité est fusionné avec le panier utilisateur
        (ou avec les articles en mémoire d'un autre compte si ce dernier
        est vide), le résultat
        est enregistré côté utilisateur et l'emplacement invité est vidé.
        Déconnexion: on repart d'un panier invité vide.
        """
        if owner_id:
            guest_items = self.storage.load(self.guest_key)
            user_items = self.storage.load(cart_key(self.storefront, owner_id))
            if not user_items and self.key != self.guest_key:
                # Les articles en mémoire d'un invité sont déjà ceux du slot invité
                user_items = self.items
            merged = merge_carts(guest_items, user_items)

            self.owner_id = owner_id
            self.items = merged
            self.storage.save(self.key, merged)
            self.storage.save(self.guest_key, [])
            logger.debug(f"Panier {self.storefront} fusionné pour {owner_id}: {len(merged)} lignes")
            return

        self.owner_id = None
        self.items = []
        self.storage.save(self.guest_key, [])

    def prepare_checkout(self, selection: List[dict]) -> List[dict]:
        """Conserve la sélection d'articles à payer (sous-ensemble du panier)"""
        self.checkout_items = [_normalize_item(item) for item in selection or []]
        return self.checkout_items

    def paid(self, ids) -> None:
        """Retire du panier uniquement les lignes payées"""
        self.remove_items(ids)
        self.checkout_items = []


def get_cart(storefront: str, user=None, guest_token: str = None) -> CartStore:
    """Panier de la requête courante, stocké en base"""
    from flask import current_app

    min_quantity = current_app.config.get('B2B_MIN_QTY', 100) if storefront == 'b2b' else 1
    return CartStore(
        DatabaseCartStorage(),
        owner_id=user.id if user else None,
        min_quantity=min_quantity,
        storefront=storefront,
        guest_token=guest_token,
    )
