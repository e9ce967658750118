"""
Routes Catalogue
Produits partagés par les vitrines B2C et B2B
"""

from flask import Blueprint, request, jsonify, g
from storefront.models import Product
from storefront.services.quick_order_service import (
    QuickOrderService, lookup_products, normalize_reference
)
from storefront.utils.decorators import auth_optional
import logging

catalog_bp = Blueprint('catalog', __name__)
logger = logging.getLogger(__name__)


@catalog_bp.route('', methods=['GET'])
def list_products():
    """
    Liste des produits actifs

    Query params:
        - category: Filtrer par catégorie
        - q: Recherche sur le nom ou la référence
    """
    query = Product.query.filter(Product.is_active.is_(True))

    category = request.args.get('category')
    if category:
        query = query.filter(Product.category == category)

    search = (request.args.get('q') or '').strip()
    if search:
        like = f"%{search}%"
        query = query.filter(Product.name.ilike(like) | Product.reference.ilike(like))

    products = query.order_by(Product.name).all()
    return jsonify({'products': [p.to_dict() for p in products]})


@catalog_bp.route('/lookup', methods=['GET'])
@auth_optional
def lookup():
    """
    Recherche par références (commande rapide): ?refs=SER-01,CRE-02

    Un professionnel connecté reçoit aussi ses références fréquentes.
    """
    refs = [r for r in (request.args.get('refs') or '').split(',') if r.strip()]
    user = g.user
    is_pro = user is not None and user.is_b2b

    if not refs and not is_pro:
        return jsonify({'error': 'refs is required', 'code': 'VALIDATION_ERROR'}), 400

    found = lookup_products(refs)
    missing = [r.strip().upper() for r in refs if normalize_reference(r) not in found]

    response = {
        'products': [p.to_dict() for p in found.values()],
        'missing': missing
    }
    if is_pro:
        response['frequent'] = QuickOrderService().frequent_references(user.id)

    return jsonify(response)


@catalog_bp.route('/<slug>', methods=['GET'])
def get_product(slug):
    """Détail d'un produit"""
    product = Product.query.filter_by(slug=slug, is_active=True).first()
    if not product:
        return jsonify({'error': 'Produit non trouvé', 'code': 'NOT_FOUND'}), 404
    return jsonify({'product': product.to_dict()})
